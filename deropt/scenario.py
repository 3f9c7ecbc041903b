"""
Scenario parameter objects, built from a nested scenario dictionary.

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
from collections import namedtuple

import numpy as np

from deropt import fileio
from deropt.financial import effective_cost

KWH_PER_MMBTU = 293.07107
DAYS_PER_MONTH = [31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]
HOURS_PER_YEAR = 8760

# IRS publication 946
MACRS_FIVE_YEAR = [0.2, 0.32, 0.192, 0.1152, 0.1152, 0.0576]
MACRS_SEVEN_YEAR = [0.1429, 0.2449, 0.1749, 0.1249, 0.0893, 0.0892, 0.0893, 0.0446]

PROFILE_DIRECTORY_VARIABLE = 'DEROPT_PROFILE_DIRECTORY'


def check_bounds(object_name, bounds):
    """
    Check every argument against its allowed range and raise once, naming all violations.
    :param object_name: name used in the error message
    :param bounds: iterable of (argument name, value, lower bound, upper bound); None bounds are not checked
    :return:
    """
    invalid_args = []
    for arg_name, value, lower, upper in bounds:
        if lower is not None and value < lower:
            invalid_args.append("{} = {}, must be >= {}".format(arg_name, value, lower))
        if upper is not None and value > upper:
            invalid_args.append("{} = {}, must be <= {}".format(arg_name, value, upper))
    if len(invalid_args) > 0:
        raise ValueError("Invalid {} argument values: {}".format(object_name, invalid_args))


def month_of_time_steps(time_steps_per_hour=1):
    """Calendar month (1-12) of each time step in a non-leap year."""
    return np.repeat(np.arange(1, 13), np.array(DAYS_PER_MONTH) * 24 * time_steps_per_hour)


def time_steps_by_month(time_steps_per_hour=1):
    """1-based time steps in each calendar month."""
    months = month_of_time_steps(time_steps_per_hour)
    return [[int(ts) + 1 for ts in np.where(months == mth)[0]] for mth in range(1, 13)]


def to_time_series(value, n_time_steps, time_steps_per_hour=1, name='value'):
    """
    Expand a scalar, 12 monthly values, an hourly series, or a per-time-step series
    into one value per time step.
    """
    arr = np.atleast_1d(np.array(value, dtype=float))
    if arr.size == 1:
        return np.full(n_time_steps, arr[0])
    if arr.size == n_time_steps:
        return arr
    if arr.size == 12 and n_time_steps == HOURS_PER_YEAR * time_steps_per_hour:
        return arr[month_of_time_steps(time_steps_per_hour) - 1]
    if arr.size * time_steps_per_hour == n_time_steps:
        return np.repeat(arr, time_steps_per_hour)
    raise ValueError("{} has {} values; expected 1, 12, or {}".format(name, arr.size, n_time_steps))


def macrs_schedule(financial, macrs_option_years):
    if macrs_option_years == 5:
        return financial.macrs_five_year
    if macrs_option_years == 7:
        return financial.macrs_seven_year
    return []


class Site:
    def __init__(self, latitude, longitude, land_acres=None, roof_squarefeet=None, min_resil_timesteps=0, node=1):
        check_bounds('Site', [
            ('latitude', latitude, -90, 90),
            ('longitude', longitude, -180, 180),
            ('min_resil_timesteps', min_resil_timesteps, 0, None),
        ])
        self.latitude = latitude
        self.longitude = longitude
        self.land_acres = land_acres
        self.roof_squarefeet = roof_squarefeet
        self.min_resil_timesteps = int(min_resil_timesteps)
        self.node = node


class Settings:
    """Per-run options."""
    def __init__(self, run_bau=True, add_soc_incentive=True, solver_name='appsi_highs', time_limit_seconds=None,
                 tee=False, time_steps_per_hour=1):
        if time_steps_per_hour not in (1, 2, 4):
            raise ValueError("time_steps_per_hour must be one of 1, 2, or 4, not {}".format(time_steps_per_hour))
        self.run_bau = run_bau
        self.add_soc_incentive = add_soc_incentive
        self.solver_name = solver_name
        self.time_limit_seconds = time_limit_seconds
        self.tee = tee
        self.time_steps_per_hour = time_steps_per_hour


class Financial:
    """
    Tax, discount, and escalation assumptions.
    When third_party_ownership is False the offtaker's tax and discount rates are used throughout.
    """
    def __init__(self, om_cost_escalation_pct=0.025, elec_cost_escalation_pct=0.023,
                 generator_fuel_cost_escalation_pct=0.027, chp_fuel_cost_escalation_pct=0.034,
                 boiler_fuel_cost_escalation_pct=0.034, offtaker_tax_pct=0.26, offtaker_discount_pct=0.083,
                 third_party_ownership=False, owner_tax_pct=0.26, owner_discount_pct=0.083, analysis_years=25,
                 value_of_lost_load_per_kwh=1.0, microgrid_upgrade_cost_pct=0.3,
                 macrs_five_year=None, macrs_seven_year=None):
        check_bounds('Financial', [
            ('offtaker_tax_pct', offtaker_tax_pct, 0, 1),
            ('offtaker_discount_pct', offtaker_discount_pct, 0, 1),
            ('owner_tax_pct', owner_tax_pct, 0, 1),
            ('owner_discount_pct', owner_discount_pct, 0, 1),
            ('analysis_years', analysis_years, 1, 75),
            ('microgrid_upgrade_cost_pct', microgrid_upgrade_cost_pct, 0, 1),
            ('om_cost_escalation_pct', om_cost_escalation_pct, -1, 1),
            ('elec_cost_escalation_pct', elec_cost_escalation_pct, -1, 1),
        ])
        if not third_party_ownership:
            owner_tax_pct = offtaker_tax_pct
            owner_discount_pct = offtaker_discount_pct

        self.om_cost_escalation_pct = om_cost_escalation_pct
        self.elec_cost_escalation_pct = elec_cost_escalation_pct
        self.generator_fuel_cost_escalation_pct = generator_fuel_cost_escalation_pct
        self.chp_fuel_cost_escalation_pct = chp_fuel_cost_escalation_pct
        self.boiler_fuel_cost_escalation_pct = boiler_fuel_cost_escalation_pct
        self.offtaker_tax_pct = offtaker_tax_pct
        self.offtaker_discount_pct = offtaker_discount_pct
        self.third_party_ownership = third_party_ownership
        self.owner_tax_pct = owner_tax_pct
        self.owner_discount_pct = owner_discount_pct
        self.analysis_years = int(analysis_years)
        self.value_of_lost_load_per_kwh = value_of_lost_load_per_kwh
        self.microgrid_upgrade_cost_pct = microgrid_upgrade_cost_pct
        self.macrs_five_year = list(MACRS_FIVE_YEAR if macrs_five_year is None else macrs_five_year)
        self.macrs_seven_year = list(MACRS_SEVEN_YEAR if macrs_seven_year is None else macrs_seven_year)


ElectricLoad = namedtuple('ElectricLoad', [
    'loads_kw', 'critical_loads_kw', 'loads_kw_is_net', 'critical_loads_kw_is_net', 'year'
])


def reference_profile(name, city='', annual_kwh=None, profile_directory=None):
    """
    Read a reference load profile named <name>_<city>.csv (or <name>.csv) from profile_directory,
    scaled to annual_kwh when given.
    """
    if profile_directory is None:
        profile_directory = os.environ.get(PROFILE_DIRECTORY_VARIABLE)
    if profile_directory is None:
        raise ValueError(
            "Reference load profiles require a profile directory: set ElectricLoad.reference_profile_directory "
            "or the {} environment variable.".format(PROFILE_DIRECTORY_VARIABLE)
        )
    file_name = "{}_{}.csv".format(name, city) if city else "{}.csv".format(name)
    profile = fileio.seriesfromfile(os.path.join(profile_directory, file_name))
    if annual_kwh is not None:
        profile = profile / profile.sum() * annual_kwh
    return profile


def build_electric_load(loads_kw=None, doe_reference_name=None, blended_doe_reference_names=None,
                        blended_doe_reference_percents=None, city='', annual_kwh=None, critical_loads_kw=None,
                        critical_load_pct=0.5, loads_kw_is_net=True, critical_loads_kw_is_net=False, year=2017,
                        reference_profile_directory=None, time_steps_per_hour=1, existing_production_kw=None):
    """
    Build an ElectricLoad: choose the load source, expand it to the model time steps, derive the critical load,
    and add existing on-site production back to loads that were measured net of it.
    :return: ElectricLoad with read-only numpy arrays
    """
    n_time_steps = HOURS_PER_YEAR * time_steps_per_hour

    if loads_kw is not None and len(loads_kw) > 0:
        loads = np.array(loads_kw, dtype=float)
    elif doe_reference_name:
        loads = reference_profile(doe_reference_name, city, annual_kwh, reference_profile_directory)
    elif (blended_doe_reference_names is not None and len(blended_doe_reference_names) > 1 and
          blended_doe_reference_percents is not None and
          len(blended_doe_reference_names) == len(blended_doe_reference_percents)):
        if abs(sum(blended_doe_reference_percents) - 1.0) > 1.0e-3:
            raise ValueError("blended_doe_reference_percents must sum to 1, not {}".format(
                sum(blended_doe_reference_percents)))
        loads = np.zeros(HOURS_PER_YEAR)
        for name, pct in zip(blended_doe_reference_names, blended_doe_reference_percents):
            profile = reference_profile(name, city, None, reference_profile_directory)
            loads = loads + pct * profile
        if annual_kwh is not None:
            loads = loads / loads.sum() * annual_kwh
    else:
        raise ValueError(
            "Cannot construct ElectricLoad. You must provide either [loads_kw], [doe_reference_name, city], "
            "[doe_reference_name], or [blended_doe_reference_names, blended_doe_reference_percents] "
            "with matching lengths."
        )

    if len(loads) == HOURS_PER_YEAR and time_steps_per_hour > 1:
        print('Repeating electric loads in each hour to match the time_steps_per_hour.')
        loads = np.repeat(loads, time_steps_per_hour)
    if len(loads) != n_time_steps:
        raise ValueError("Electric load has {} values; expected {} for {} time steps per hour.".format(
            len(loads), n_time_steps, time_steps_per_hour))

    if critical_loads_kw is not None and len(critical_loads_kw) > 0:
        critical = to_time_series(critical_loads_kw, n_time_steps, time_steps_per_hour, 'critical_loads_kw')
    else:
        critical = critical_load_pct * loads

    if existing_production_kw is not None:
        if loads_kw_is_net:
            loads = loads + existing_production_kw
        if critical_loads_kw_is_net:
            critical = critical + existing_production_kw

    loads.setflags(write=False)
    critical.setflags(write=False)
    return ElectricLoad(loads, critical, loads_kw_is_net, critical_loads_kw_is_net, year)


class ElecStorage:
    """Electric (battery) storage inputs."""
    def __init__(self, min_kw=0.0, max_kw=1.0e4, min_kwh=0.0, max_kwh=1.0e6, internal_efficiency_pct=0.975,
                 inverter_efficiency_pct=0.96, rectifier_efficiency_pct=0.96, soc_min_pct=0.2, soc_init_pct=0.5,
                 can_grid_charge=True, installed_cost_per_kw=840.0, installed_cost_per_kwh=420.0,
                 replace_cost_per_kw=410.0, replace_cost_per_kwh=200.0, inverter_replacement_year=10,
                 battery_replacement_year=10, macrs_option_years=7, macrs_bonus_pct=1.0, macrs_itc_reduction=0.5,
                 total_itc_pct=0.0, total_rebate_per_kw=0.0, total_rebate_per_kwh=0.0):
        check_bounds('ElecStorage', [
            ('min_kw', min_kw, 0, None),
            ('max_kw', max_kw, 0, None),
            ('min_kwh', min_kwh, 0, None),
            ('max_kwh', max_kwh, 0, None),
            ('internal_efficiency_pct', internal_efficiency_pct, 0, 1),
            ('inverter_efficiency_pct', inverter_efficiency_pct, 0, 1),
            ('rectifier_efficiency_pct', rectifier_efficiency_pct, 0, 1),
            ('soc_min_pct', soc_min_pct, 0, 1),
            ('soc_init_pct', soc_init_pct, 0, 1),
            ('installed_cost_per_kw', installed_cost_per_kw, 0, None),
            ('installed_cost_per_kwh', installed_cost_per_kwh, 0, None),
            ('replace_cost_per_kw', replace_cost_per_kw, 0, None),
            ('replace_cost_per_kwh', replace_cost_per_kwh, 0, None),
            ('inverter_replacement_year', inverter_replacement_year, 0, 75),
            ('battery_replacement_year', battery_replacement_year, 0, 75),
            ('macrs_bonus_pct', macrs_bonus_pct, 0, 1),
            ('macrs_itc_reduction', macrs_itc_reduction, 0, 1),
            ('total_itc_pct', total_itc_pct, 0, 1),
            ('total_rebate_per_kw', total_rebate_per_kw, 0, None),
            ('total_rebate_per_kwh', total_rebate_per_kwh, 0, None),
        ])
        if macrs_option_years not in (0, 5, 7):
            raise ValueError("Invalid ElecStorage argument values: ['macrs_option_years = {}, must be 0, 5, or 7']"
                             .format(macrs_option_years))
        self.min_kw = min_kw
        self.max_kw = max_kw
        self.min_kwh = min_kwh
        self.max_kwh = max_kwh
        self.internal_efficiency_pct = internal_efficiency_pct
        self.inverter_efficiency_pct = inverter_efficiency_pct
        self.rectifier_efficiency_pct = rectifier_efficiency_pct
        self.soc_min_pct = soc_min_pct
        self.soc_init_pct = soc_init_pct
        self.can_grid_charge = can_grid_charge
        self.installed_cost_per_kw = installed_cost_per_kw
        self.installed_cost_per_kwh = installed_cost_per_kwh
        self.replace_cost_per_kw = replace_cost_per_kw
        self.replace_cost_per_kwh = replace_cost_per_kwh
        self.inverter_replacement_year = inverter_replacement_year
        self.battery_replacement_year = battery_replacement_year
        self.macrs_option_years = macrs_option_years
        self.macrs_bonus_pct = macrs_bonus_pct
        self.macrs_itc_reduction = macrs_itc_reduction
        self.total_itc_pct = total_itc_pct
        self.total_rebate_per_kw = total_rebate_per_kw
        self.total_rebate_per_kwh = total_rebate_per_kwh

    @property
    def charge_efficiency(self):
        return self.rectifier_efficiency_pct * self.internal_efficiency_pct ** 0.5

    @property
    def discharge_efficiency(self):
        return self.inverter_efficiency_pct * self.internal_efficiency_pct ** 0.5


# storage type identifier -> constructor
STORAGE_TYPES = {
    'elec': ElecStorage,
}

# scenario dictionary key -> storage type identifier
SCENARIO_STORAGE_KEYS = {
    'ElecStorage': 'elec',
}


class Storage:
    """
    All storage types in a scenario, with every parameter indexed on the storage type.
    Installed costs are the effective (after incentive) costs used in the objective.
    """
    def __init__(self, storage_inputs, financial):
        self.types = []
        self.raw_inputs = {}
        self.min_kw = {}
        self.max_kw = {}
        self.min_kwh = {}
        self.max_kwh = {}
        self.charge_efficiency = {}
        self.discharge_efficiency = {}
        self.grid_charge_efficiency = {}
        self.soc_min_pct = {}
        self.soc_init_pct = {}
        self.installed_cost_per_kw = {}
        self.installed_cost_per_kwh = {}
        self.can_grid_charge = []

        for storage_type, input_dict in storage_inputs.items():
            if storage_type not in STORAGE_TYPES:
                raise KeyError("Unknown storage type '{}'; supported storage types are {}".format(
                    storage_type, sorted(STORAGE_TYPES.keys())))
            s = STORAGE_TYPES[storage_type](**input_dict)

            self.types.append(storage_type)
            self.raw_inputs[storage_type] = s
            self.min_kw[storage_type] = s.min_kw
            self.max_kw[storage_type] = s.max_kw
            self.min_kwh[storage_type] = s.min_kwh
            self.max_kwh[storage_type] = s.max_kwh
            self.charge_efficiency[storage_type] = s.charge_efficiency
            self.discharge_efficiency[storage_type] = s.discharge_efficiency
            self.grid_charge_efficiency[storage_type] = s.charge_efficiency
            self.soc_min_pct[storage_type] = s.soc_min_pct
            self.soc_init_pct[storage_type] = s.soc_init_pct
            if s.can_grid_charge:
                self.can_grid_charge.append(storage_type)

            schedule = macrs_schedule(financial, s.macrs_option_years)
            self.installed_cost_per_kw[storage_type] = effective_cost(
                itc_basis=s.installed_cost_per_kw,
                replacement_cost=s.replace_cost_per_kw,
                replacement_year=s.inverter_replacement_year,
                discount_rate=financial.owner_discount_pct,
                tax_rate=financial.owner_tax_pct,
                itc=s.total_itc_pct,
                macrs_schedule=schedule,
                macrs_bonus_pct=s.macrs_bonus_pct,
                macrs_itc_reduction=s.macrs_itc_reduction,
                rebate_per_kw=s.total_rebate_per_kw
            )
            self.installed_cost_per_kwh[storage_type] = effective_cost(
                itc_basis=s.installed_cost_per_kwh,
                replacement_cost=s.replace_cost_per_kwh,
                replacement_year=s.battery_replacement_year,
                discount_rate=financial.owner_discount_pct,
                tax_rate=financial.owner_tax_pct,
                itc=s.total_itc_pct,
                macrs_schedule=schedule,
                macrs_bonus_pct=s.macrs_bonus_pct,
                macrs_itc_reduction=s.macrs_itc_reduction
            ) - s.total_rebate_per_kwh


class Technology:
    """Size limits, costs, incentives, and export permissions shared by every technology."""
    def __init__(self, name, existing_kw=0.0, min_kw=0.0, max_kw=1.0e9, installed_cost_per_kw=0.0,
                 tech_sizes_for_cost_curve=None, om_cost_per_kw=0.0, om_cost_per_kwh=0.0, can_curtail=True,
                 can_net_meter=False, can_wholesale=False, can_export_beyond_nem_limit=False,
                 federal_itc_pct=0.0, macrs_option_years=0, macrs_bonus_pct=0.0, macrs_itc_reduction=0.5,
                 rebate_per_kw=0.0, production_incentive_per_kwh=0.0, production_incentive_max_benefit=1.0e9,
                 production_incentive_years=1, production_incentive_max_kw=1.0e9, degradation_pct=0.0):
        bounds = [
            ('existing_kw', existing_kw, 0, None),
            ('min_kw', min_kw, 0, None),
            ('max_kw', max_kw, min_kw, None),
            ('om_cost_per_kw', om_cost_per_kw, 0, None),
            ('om_cost_per_kwh', om_cost_per_kwh, 0, None),
            ('federal_itc_pct', federal_itc_pct, 0, 1),
            ('macrs_bonus_pct', macrs_bonus_pct, 0, 1),
            ('macrs_itc_reduction', macrs_itc_reduction, 0, 1),
            ('rebate_per_kw', rebate_per_kw, 0, None),
            ('production_incentive_per_kwh', production_incentive_per_kwh, 0, None),
            ('production_incentive_years', production_incentive_years, 0, 100),
            ('degradation_pct', degradation_pct, 0, 1),
        ]
        if np.ndim(installed_cost_per_kw) == 0:
            bounds.append(('installed_cost_per_kw', installed_cost_per_kw, 0, None))
        else:
            bounds += [('installed_cost_per_kw', c, 0, None) for c in installed_cost_per_kw]
        check_bounds(name, bounds)

        if np.ndim(installed_cost_per_kw) > 0:
            if tech_sizes_for_cost_curve is None or len(tech_sizes_for_cost_curve) != len(installed_cost_per_kw):
                raise ValueError(
                    "{}: a list of installed_cost_per_kw requires tech_sizes_for_cost_curve of the same length"
                    .format(name))
            if any(np.diff(tech_sizes_for_cost_curve) <= 0):
                raise ValueError("{}: tech_sizes_for_cost_curve must be strictly increasing".format(name))
        if macrs_option_years not in (0, 5, 7):
            raise ValueError("Invalid {} argument values: ['macrs_option_years = {}, must be 0, 5, or 7']".format(
                name, macrs_option_years))

        self.name = name
        self.existing_kw = existing_kw
        self.min_kw = min_kw
        self.max_kw = max_kw
        self.installed_cost_per_kw = installed_cost_per_kw
        self.tech_sizes_for_cost_curve = tech_sizes_for_cost_curve
        self.om_cost_per_kw = om_cost_per_kw
        self.om_cost_per_kwh = om_cost_per_kwh
        self.can_curtail = can_curtail
        self.can_net_meter = can_net_meter
        self.can_wholesale = can_wholesale
        self.can_export_beyond_nem_limit = can_export_beyond_nem_limit
        self.federal_itc_pct = federal_itc_pct
        self.macrs_option_years = macrs_option_years
        self.macrs_bonus_pct = macrs_bonus_pct
        self.macrs_itc_reduction = macrs_itc_reduction
        self.rebate_per_kw = rebate_per_kw
        self.production_incentive_per_kwh = production_incentive_per_kwh
        self.production_incentive_max_benefit = production_incentive_max_benefit
        self.production_incentive_years = production_incentive_years
        self.production_incentive_max_kw = production_incentive_max_kw
        self.degradation_pct = degradation_pct

    @property
    def has_cost_curve(self):
        return np.ndim(self.installed_cost_per_kw) > 0

    @property
    def has_production_incentive(self):
        return self.production_incentive_per_kwh > 0


class PV(Technology):
    def __init__(self, name='PV', location='both', production_factor_series=None, kw_per_square_foot=0.01,
                 acres_per_kw=6.0e-3, installed_cost_per_kw=1600.0, om_cost_per_kw=16.0, degradation_pct=0.005,
                 can_net_meter=True, can_wholesale=True, can_export_beyond_nem_limit=True, federal_itc_pct=0.26,
                 macrs_option_years=5, macrs_bonus_pct=0.0, **kwargs):
        super().__init__(name, installed_cost_per_kw=installed_cost_per_kw, om_cost_per_kw=om_cost_per_kw,
                         degradation_pct=degradation_pct, can_net_meter=can_net_meter, can_wholesale=can_wholesale,
                         can_export_beyond_nem_limit=can_export_beyond_nem_limit, federal_itc_pct=federal_itc_pct,
                         macrs_option_years=macrs_option_years, macrs_bonus_pct=macrs_bonus_pct, **kwargs)
        if location not in ('both', 'roof', 'ground'):
            raise ValueError("{}: location must be one of 'both', 'roof', or 'ground', not '{}'".format(
                name, location))
        if production_factor_series is None:
            raise ValueError("{}: production_factor_series is required".format(name))
        self.location = location
        self.production_factor_series = production_factor_series
        self.kw_per_square_foot = kw_per_square_foot
        self.acres_per_kw = acres_per_kw


class Wind(Technology):
    def __init__(self, name='Wind', production_factor_series=None, installed_cost_per_kw=3013.0,
                 om_cost_per_kw=40.0, can_net_meter=True, can_wholesale=True, can_export_beyond_nem_limit=True,
                 federal_itc_pct=0.26, macrs_option_years=5, macrs_bonus_pct=0.0, **kwargs):
        super().__init__(name, installed_cost_per_kw=installed_cost_per_kw, om_cost_per_kw=om_cost_per_kw,
                         can_net_meter=can_net_meter, can_wholesale=can_wholesale,
                         can_export_beyond_nem_limit=can_export_beyond_nem_limit, federal_itc_pct=federal_itc_pct,
                         macrs_option_years=macrs_option_years, macrs_bonus_pct=macrs_bonus_pct, **kwargs)
        if production_factor_series is None:
            raise ValueError("{}: production_factor_series is required".format(name))
        self.production_factor_series = production_factor_series


class Generator(Technology):
    """Diesel generator; fuel in gallons."""
    def __init__(self, name='Generator', max_kw=1.0e6, installed_cost_per_kw=500.0, om_cost_per_kw=10.0,
                 om_cost_per_kwh=0.0, fuel_cost_per_gallon=3.0, fuel_slope_gal_per_kwh=0.076,
                 fuel_intercept_gal_per_hr=0.0, fuel_avail_gal=660.0, min_turn_down_pct=0.0,
                 only_runs_during_grid_outage=True, sells_energy_back_to_grid=False, can_curtail=False, **kwargs):
        super().__init__(name, max_kw=max_kw, installed_cost_per_kw=installed_cost_per_kw,
                         om_cost_per_kw=om_cost_per_kw, om_cost_per_kwh=om_cost_per_kwh, can_curtail=can_curtail,
                         can_net_meter=sells_energy_back_to_grid, can_wholesale=sells_energy_back_to_grid,
                         can_export_beyond_nem_limit=sells_energy_back_to_grid, **kwargs)
        check_bounds(name, [
            ('fuel_cost_per_gallon', fuel_cost_per_gallon, 0, None),
            ('fuel_slope_gal_per_kwh', fuel_slope_gal_per_kwh, 0, None),
            ('fuel_intercept_gal_per_hr', fuel_intercept_gal_per_hr, 0, None),
            ('fuel_avail_gal', fuel_avail_gal, 0, None),
            ('min_turn_down_pct', min_turn_down_pct, 0, 1),
        ])
        self.fuel_cost_per_gallon = fuel_cost_per_gallon
        self.fuel_slope_gal_per_kwh = fuel_slope_gal_per_kwh
        self.fuel_intercept_gal_per_hr = fuel_intercept_gal_per_hr
        self.fuel_avail_gal = fuel_avail_gal
        self.min_turn_down_pct = min_turn_down_pct
        self.only_runs_during_grid_outage = only_runs_during_grid_outage
        self.sells_energy_back_to_grid = sells_energy_back_to_grid


class CHP(Technology):
    """Combined heat and power; fuel cost per MMBtu, fuel use modeled in kWh of fuel energy."""
    def __init__(self, fuel_cost_per_mmbtu, name='CHP', max_kw=1.0e4, installed_cost_per_kw=3000.0,
                 om_cost_per_kw=0.0, om_cost_per_kwh=0.01, om_cost_per_hr_per_kw_rated=0.0,
                 elec_effic_full_load=0.35, elec_effic_half_load=0.32, thermal_effic_full_load=0.45,
                 thermal_effic_half_load=0.47, min_turn_down_pct=0.5, standby_rate_per_kw_per_month=0.0,
                 supplementary_firing_capital_cost_per_kw=150.0, supplementary_firing_max_steam_ratio=1.0,
                 supplementary_firing_efficiency=0.92, can_curtail=False, macrs_option_years=5, **kwargs):
        super().__init__(name, max_kw=max_kw, installed_cost_per_kw=installed_cost_per_kw,
                         om_cost_per_kw=om_cost_per_kw, om_cost_per_kwh=om_cost_per_kwh, can_curtail=can_curtail,
                         macrs_option_years=macrs_option_years, **kwargs)
        check_bounds(name, [
            ('fuel_cost_per_mmbtu', fuel_cost_per_mmbtu, 0, None),
            ('om_cost_per_hr_per_kw_rated', om_cost_per_hr_per_kw_rated, 0, None),
            ('elec_effic_full_load', elec_effic_full_load, 0.01, 1),
            ('elec_effic_half_load', elec_effic_half_load, 0.01, 1),
            ('thermal_effic_full_load', thermal_effic_full_load, 0, 1),
            ('thermal_effic_half_load', thermal_effic_half_load, 0, 1),
            ('min_turn_down_pct', min_turn_down_pct, 0, 1),
            ('standby_rate_per_kw_per_month', standby_rate_per_kw_per_month, 0, None),
            ('supplementary_firing_capital_cost_per_kw', supplementary_firing_capital_cost_per_kw, 0, None),
            ('supplementary_firing_max_steam_ratio', supplementary_firing_max_steam_ratio, 1, None),
            ('supplementary_firing_efficiency', supplementary_firing_efficiency, 0.01, 1),
        ])
        self.fuel_cost_per_mmbtu = fuel_cost_per_mmbtu
        self.om_cost_per_hr_per_kw_rated = om_cost_per_hr_per_kw_rated
        self.elec_effic_full_load = elec_effic_full_load
        self.elec_effic_half_load = elec_effic_half_load
        self.thermal_effic_full_load = thermal_effic_full_load
        self.thermal_effic_half_load = thermal_effic_half_load
        self.min_turn_down_pct = min_turn_down_pct
        self.standby_rate_per_kw_per_month = standby_rate_per_kw_per_month
        self.supplementary_firing_capital_cost_per_kw = supplementary_firing_capital_cost_per_kw
        self.supplementary_firing_max_steam_ratio = supplementary_firing_max_steam_ratio
        self.supplementary_firing_efficiency = supplementary_firing_efficiency


class ExistingBoiler(Technology):
    """Existing boiler serving the heating load; no capital cost, fuel cost per MMBtu."""
    def __init__(self, fuel_cost_per_mmbtu, name='ExistingBoiler', efficiency=0.8, max_thermal_kw=None):
        super().__init__(name, can_curtail=False)
        check_bounds(name, [
            ('fuel_cost_per_mmbtu', fuel_cost_per_mmbtu, 0, None),
            ('efficiency', efficiency, 0.01, 1),
        ])
        self.fuel_cost_per_mmbtu = fuel_cost_per_mmbtu
        self.efficiency = efficiency
        self.max_thermal_kw = max_thermal_kw


class HeatingLoad:
    def __init__(self, fuel_loads_mmbtu_per_hour, boiler_efficiency, time_steps_per_hour=1):
        fuel = to_time_series(fuel_loads_mmbtu_per_hour, HOURS_PER_YEAR * time_steps_per_hour,
                              time_steps_per_hour, 'fuel_loads_mmbtu_per_hour')
        if any(fuel < 0):
            raise ValueError("fuel_loads_mmbtu_per_hour must be non-negative")
        self.fuel_loads_mmbtu_per_hour = fuel
        self.loads_kw = fuel * KWH_PER_MMBTU * boiler_efficiency


class ElectricUtility:
    """Grid interconnection, deterministic grid outage, and stochastic outage scenarios."""
    def __init__(self, allow_simultaneous_export_import=True, net_metering_limit_kw=0.0,
                 interconnection_limit_kw=1.0e9, outage_start_time_step=0, outage_end_time_step=0,
                 outage_durations=None, outage_probabilities=None, outage_start_time_steps=None):
        check_bounds('ElectricUtility', [
            ('net_metering_limit_kw', net_metering_limit_kw, 0, None),
            ('interconnection_limit_kw', interconnection_limit_kw, 0, None),
            ('outage_start_time_step', outage_start_time_step, 0, None),
            ('outage_end_time_step', outage_end_time_step, outage_start_time_step, None),
        ])
        self.allow_simultaneous_export_import = allow_simultaneous_export_import
        self.net_metering_limit_kw = net_metering_limit_kw
        self.interconnection_limit_kw = interconnection_limit_kw
        self.outage_start_time_step = outage_start_time_step
        self.outage_end_time_step = outage_end_time_step

        self.outage_durations = [int(d) for d in (outage_durations or [])]
        self.outage_start_time_steps = [int(t) for t in (outage_start_time_steps or [])]
        if self.outage_durations and not self.outage_start_time_steps:
            raise ValueError("outage_durations require outage_start_time_steps")
        if outage_probabilities is None and self.outage_durations:
            outage_probabilities = [1.0 / len(self.outage_durations)] * len(self.outage_durations)
        self.outage_probabilities = list(outage_probabilities or [])
        if len(self.outage_probabilities) != len(self.outage_durations):
            raise ValueError("outage_probabilities must have one value per outage duration")
        if self.outage_durations and abs(sum(self.outage_probabilities) - 1.0) > 1.0e-3:
            raise ValueError("outage_probabilities must sum to 1")
        self.scenarios = list(range(1, len(self.outage_durations) + 1))
        self.outage_time_steps = list(range(1, max(self.outage_durations) + 1)) if self.outage_durations else []


class ElectricTariff:
    """
    Electric rate structure expanded to the model time steps.
    Energy rates are indexed [time step, tier]; demand rates are indexed [month or ratchet, tier];
    export rates are stored negative so that export reduces the bill.
    """
    def __init__(self, d, time_steps_per_hour=1, net_metering=False, n_time_steps=None):
        if n_time_steps is None:
            n_time_steps = HOURS_PER_YEAR * time_steps_per_hour
        self.time_steps_monthly = time_steps_by_month(time_steps_per_hour)

        # energy
        if 'tiered_energy_rates' in d:
            energy_rate_specs = d['tiered_energy_rates']
        elif 'energy_rates' in d:
            energy_rate_specs = [d['energy_rates']]
        else:
            raise ValueError("ElectricTariff requires either energy_rates or tiered_energy_rates")
        self.energy_rates = np.column_stack([
            to_time_series(spec, n_time_steps, time_steps_per_hour, 'energy_rates') for spec in energy_rate_specs
        ])
        self.n_energy_tiers = self.energy_rates.shape[1]
        self.energy_tier_limits = self._tier_limits(d.get('energy_tier_limits_kwh', []), self.n_energy_tiers,
                                                    'energy_tier_limits_kwh')

        # monthly demand
        if 'tiered_monthly_demand_rates' in d:
            self.monthly_demand_rates = np.column_stack([
                to_time_series(spec, 12, name='monthly_demand_rates') for spec in d['tiered_monthly_demand_rates']
            ])
        elif 'monthly_demand_rates' in d:
            self.monthly_demand_rates = to_time_series(d['monthly_demand_rates'], 12,
                                                       name='monthly_demand_rates').reshape(12, 1)
        else:
            self.monthly_demand_rates = np.zeros((0, 1))
        self.n_monthly_demand_tiers = self.monthly_demand_rates.shape[1]
        self.monthly_demand_tier_limits = self._tier_limits(d.get('monthly_demand_tier_limits_kw', []),
                                                            self.n_monthly_demand_tiers,
                                                            'monthly_demand_tier_limits_kw')

        # time-of-use demand
        self.tou_demand_ratchet_time_steps = [list(r) for r in d.get('tou_demand_ratchet_time_steps', [])]
        if 'tiered_tou_demand_rates' in d:
            self.tou_demand_rates = np.array(d['tiered_tou_demand_rates'], dtype=float).reshape(
                len(d['tiered_tou_demand_rates']), -1)
        else:
            self.tou_demand_rates = np.array(d.get('tou_demand_rates', []), dtype=float).reshape(-1, 1)
        if self.tou_demand_rates.shape[0] != len(self.tou_demand_ratchet_time_steps):
            raise ValueError("tou_demand_rates must have one entry per tou_demand_ratchet_time_steps ratchet")
        self.n_tou_demand_tiers = self.tou_demand_rates.shape[1]
        self.tou_demand_tier_limits = self._tier_limits(d.get('tou_demand_tier_limits_kw', []),
                                                        self.n_tou_demand_tiers, 'tou_demand_tier_limits_kw')

        self.fixed_monthly_charge = d.get('fixed_monthly_charge', 0.0)
        self.annual_min_charge = d.get('annual_min_charge', 0.0)
        self.min_monthly_charge = d.get('min_monthly_charge', 0.0)

        self.demand_lookback_percent = d.get('demand_lookback_percent', 0.0)
        self.demand_lookback_months = list(d.get('demand_lookback_months', []))
        self.demand_lookback_range = int(d.get('demand_lookback_range', 0))

        self.coincident_peak_load_active_time_steps = [
            list(p) for p in d.get('coincident_peak_load_active_time_steps', [])
        ]
        self.coincident_peak_load_charge_per_kw = list(d.get('coincident_peak_load_charge_per_kw', []))
        if len(self.coincident_peak_load_charge_per_kw) != len(self.coincident_peak_load_active_time_steps):
            raise ValueError("coincident_peak_load_charge_per_kw must have one value per coincident peak period")
        self.coincpeak_periods = list(range(1, len(self.coincident_peak_load_active_time_steps) + 1))

        check_bounds('ElectricTariff', [
            ('fixed_monthly_charge', self.fixed_monthly_charge, 0, None),
            ('annual_min_charge', self.annual_min_charge, 0, None),
            ('min_monthly_charge', self.min_monthly_charge, 0, None),
            ('demand_lookback_percent', self.demand_lookback_percent, 0, 1),
            ('demand_lookback_range', self.demand_lookback_range, 0, 12),
        ])

        # export compensation bins
        self.export_rates = {}
        wholesale = to_time_series(d.get('wholesale_rate', 0.0), n_time_steps, time_steps_per_hour,
                                   'wholesale_rate')
        excess = to_time_series(d.get('export_rate_beyond_net_metering_limit', 0.0), n_time_steps,
                                time_steps_per_hour, 'export_rate_beyond_net_metering_limit')
        if net_metering:
            self.export_rates['NEM'] = -1.0 * self.energy_rates[:, 0]
        if any(wholesale != 0):
            self.export_rates['WHL'] = -1.0 * wholesale
        if net_metering and any(excess != 0):
            self.export_rates['EXC'] = -1.0 * excess
        self.export_bins = list(self.export_rates.keys())

    @staticmethod
    def _tier_limits(limits, n_tiers, name):
        """Width of each tier; the last tier is unbounded (None) unless given."""
        limits = list(limits)
        if len(limits) not in (n_tiers - 1, n_tiers):
            raise ValueError("{} must have {} or {} values, not {}".format(name, n_tiers - 1, n_tiers, len(limits)))
        if len(limits) == n_tiers - 1:
            limits.append(None)
        return limits


class Scenario:
    """All inputs of one site, built from a nested scenario dictionary."""
    def __init__(self, d):
        if 'ElectricTariff' not in d:
            raise ValueError("Scenario requires an ElectricTariff")
        if 'ElectricLoad' not in d:
            raise ValueError("Scenario requires an ElectricLoad")

        self.settings = Settings(**d.get('Settings', {}))
        self.site = Site(**d.get('Site', {'latitude': 0.0, 'longitude': 0.0}))
        self.financial = Financial(**d.get('Financial', {}))
        time_steps_per_hour = self.settings.time_steps_per_hour
        n_time_steps = HOURS_PER_YEAR * time_steps_per_hour

        pv_inputs = d.get('PV', [])
        if isinstance(pv_inputs, dict):
            pv_inputs = [pv_inputs]
        self.pvs = [PV(**pv) for pv in pv_inputs]
        if len(set(pv.name for pv in self.pvs)) != len(self.pvs):
            raise ValueError("Each PV must have a unique name")
        self.wind = Wind(**d['Wind']) if 'Wind' in d else None
        self.generator = Generator(**d['Generator']) if 'Generator' in d else None

        self.existing_boiler = None
        self.heating_load = None
        self.chp = None
        if 'HeatingLoad' in d or 'ExistingBoiler' in d or 'CHP' in d:
            if 'HeatingLoad' not in d or 'ExistingBoiler' not in d:
                raise ValueError("CHP and ExistingBoiler require both a HeatingLoad and an ExistingBoiler")
            self.existing_boiler = ExistingBoiler(**d['ExistingBoiler'])
            self.heating_load = HeatingLoad(d['HeatingLoad']['fuel_loads_mmbtu_per_hour'],
                                            self.existing_boiler.efficiency, time_steps_per_hour)
            if 'CHP' in d:
                self.chp = CHP(**d['CHP'])

        existing_production_kw = None
        for pv in self.pvs:
            if pv.existing_kw > 0:
                pf = to_time_series(pv.production_factor_series, n_time_steps, time_steps_per_hour,
                                    'production_factor_series')
                if existing_production_kw is None:
                    existing_production_kw = np.zeros(n_time_steps)
                existing_production_kw = existing_production_kw + pv.existing_kw * pf

        self.electric_load = build_electric_load(time_steps_per_hour=time_steps_per_hour,
                                                 existing_production_kw=existing_production_kw,
                                                 **d['ElectricLoad'])
        self.electric_utility = ElectricUtility(**d.get('ElectricUtility', {}))
        self.electric_tariff = ElectricTariff(d['ElectricTariff'], time_steps_per_hour,
                                              net_metering=self.electric_utility.net_metering_limit_kw > 0)

        storage_inputs = {}
        for key, storage_type in SCENARIO_STORAGE_KEYS.items():
            storage_inputs[storage_type] = d.get(key, {'max_kw': 0.0, 'max_kwh': 0.0})
        self.storage = Storage(storage_inputs, self.financial)


def _fix_to_existing(tech_dict):
    fixed = dict(tech_dict)
    fixed['min_kw'] = fixed['max_kw'] = fixed.get('existing_kw', 0.0)
    return fixed


def bau_scenario_dict(d):
    """
    Business-as-usual copy of scenario dictionary d: only existing technologies (sized at their existing_kw),
    no new storage, no CHP, and no stochastic outages.
    """
    bau = copy.deepcopy(d)

    pv_inputs = bau.pop('PV', [])
    if isinstance(pv_inputs, dict):
        pv_inputs = [pv_inputs]
    pvs = [_fix_to_existing(pv) for pv in pv_inputs if pv.get('existing_kw', 0) > 0]
    if len(pvs) > 0:
        bau['PV'] = pvs

    for key in ('Wind', 'Generator'):
        tech = bau.pop(key, None)
        if tech is not None and tech.get('existing_kw', 0) > 0:
            bau[key] = _fix_to_existing(tech)

    bau.pop('CHP', None)
    for key in SCENARIO_STORAGE_KEYS:
        bau[key] = {'max_kw': 0.0, 'max_kwh': 0.0}

    utility = bau.get('ElectricUtility', {})
    for key in ('outage_durations', 'outage_probabilities', 'outage_start_time_steps'):
        utility.pop(key, None)

    return bau
