"""
Combine the results of the business-as-usual and optimal cases, group multiple PV arrays, and write the
results files of a scenario.

############################ LICENSE INFORMATION ############################
This file is part of the E3 DEROPT Model.

Copyright (C) 2019 Energy and Environmental Economics, Inc.
For contact information, go to www.ethree.com

The E3 DEROPT Model is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

The E3 DEROPT Model is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with the E3 DEROPT Model (in the file LICENSE.TXT). If not,
see <http://www.gnu.org/licenses/>.
#############################################################################
"""

import copy
import os

import numpy as np
import pandas as pd

from deropt import fileio

# business-as-usual results copied into the combined results with a _bau suffix
BAU_OUTPUTS = {
    'Financial': [
        'lcc',
        'lifecycle_om_costs_after_tax',
        'lifecycle_fuel_costs_after_tax',
        'lifecycle_chp_standby_cost_after_tax',
        'lifecycle_elecbill_after_tax',
        'lifecycle_outage_cost',
        'year_one_om_costs_before_tax',
        'year_one_fuel_costs_before_tax',
    ],
    'ElectricTariff': [
        'year_one_energy_cost',
        'year_one_demand_cost',
        'year_one_fixed_cost',
        'year_one_min_charge_adder',
        'year_one_bill',
        'year_one_export_benefit',
        'year_one_coincident_peak_cost',
        'lifecycle_energy_cost',
        'lifecycle_demand_cost',
        'lifecycle_fixed_cost',
        'lifecycle_min_charge_adder',
        'lifecycle_export_benefit',
        'lifecycle_coincident_peak_cost',
    ],
    'ElectricUtility': [
        'year_one_energy_supplied_kwh',
    ],
    'Generator': [
        'year_one_fuel_used_gal',
        'year_one_fuel_cost',
        'lifecycle_fuel_cost_after_tax',
    ],
    'ExistingBoiler': [
        'year_one_fuel_used_mmbtu',
        'year_one_fuel_cost',
        'lifecycle_fuel_cost_after_tax',
    ],
}


def combine_results(bau, opt):
    """
    Optimal case results with selected business-as-usual results added under <key>_bau.
    :param bau: business-as-usual results
    :param opt: optimal case results
    :return: combined results
    """
    combined = copy.deepcopy(opt)

    for category, keys in BAU_OUTPUTS.items():
        if category not in bau:
            continue
        target = combined.setdefault(category, {})
        for key in keys:
            if key in bau[category]:
                target[key + '_bau'] = bau[category][key]

    # business-as-usual zeros for categories that only exist in the optimal case
    for category in ('Financial', 'ElectricTariff'):
        for key in BAU_OUTPUTS[category]:
            combined[category].setdefault(key + '_bau', 0.0)

    if bau['status'] != opt['status']:
        print("WARNING: business-as-usual case finished with status '{}' and the optimal case with '{}'.".format(
            bau['status'], opt['status']))
        combined['status'] = 'timed-out'
    combined['solver_seconds_bau'] = bau['solver_seconds']

    return combined


def organize_multiple_pv_results(p, d):
    """
    Group the results of the PV arrays under one PV category: total sizes, energies and dispatch series,
    plus an arrays list with the results of each array.
    A single array named PV is left as it is.
    :param p: Inputs
    :param d: results keyed on PV array names
    :return: d
    """
    if len(p.techs.pv) == 0 or (len(p.techs.pv) == 1 and p.techs.pv[0] == 'PV'):
        return d

    arrays = []
    for t in p.techs.pv:
        array = d.pop(t)
        array['name'] = t
        arrays.append(array)

    grouped = {}
    for key, val in arrays[0].items():
        if key == 'name':
            continue
        if key.endswith('_series_kw'):
            grouped[key] = [round(float(v), 3) for v in np.sum([a[key] for a in arrays], axis=0)]
        else:
            grouped[key] = round(sum(a[key] for a in arrays), 2)
    grouped['arrays'] = arrays
    d['PV'] = grouped
    return d


def dispatch_table(d):
    """
    Every dispatch time series of a results dictionary as one column named <category>.<key>;
    PV arrays are named <category>.<array name>.<key>.
    :param d: results
    :return: pandas DataFrame indexed by time step
    """
    columns = {}
    for category, r in d.items():
        if not isinstance(r, dict):
            continue
        for key, val in r.items():
            if key.endswith('_series_kw') or key.endswith('_series_pct') or key.endswith('_per_hour'):
                columns['{}.{}'.format(category, key)] = val
        for array in r.get('arrays', []):
            for key, val in array.items():
                if key.endswith('_series_kw'):
                    columns['{}.{}.{}'.format(category, array['name'], key)] = val

    table = pd.DataFrame(columns)
    table.index = pd.RangeIndex(1, len(table) + 1, name='time_step')
    return table


def write_results(d, results_directory):
    """
    Write results.json and the dispatch time series to dispatch.csv.
    :param d: results
    :param results_directory:
    :return:
    """
    print('Writing results files...')
    if not os.path.exists(results_directory):
        os.makedirs(results_directory)

    fileio.jsonwriter(os.path.join(results_directory, 'results.json'), d)
    dispatch_table(d).to_csv(os.path.join(results_directory, 'dispatch.csv'))
    print('...results written to {}.'.format(results_directory))
