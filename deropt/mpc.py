"""
Rolling horizon (model predictive control) dispatch: technology and storage sizes are given, the horizon has
any number of time steps, and costs are those of the horizon alone.

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

import numpy as np
from pyomo.environ import Constraint

from deropt import export_results
from deropt import model_formulation
from deropt.load_data import TechLists, PV_LOCATIONS
from deropt.run_opt import solve
from deropt.scenario import (PV, Wind, Generator, Storage, Financial, Settings, ElectricUtility, check_bounds,
                             SCENARIO_STORAGE_KEYS)

STORAGE_INPUT_KEYS = ('internal_efficiency_pct', 'inverter_efficiency_pct', 'rectifier_efficiency_pct',
                      'soc_min_pct', 'soc_init_pct', 'can_grid_charge')


def _fixed_size(tech_dict):
    """Technology inputs with the size fixed at size_kw."""
    inputs = dict(tech_dict)
    size_kw = inputs.pop('size_kw', 0.0)
    inputs['existing_kw'] = inputs['min_kw'] = inputs['max_kw'] = size_kw
    return inputs


class MPCElectricTariff:
    """
    Rates over the horizon. Monthly demand rates apply to the months of the horizon, each with its time steps;
    previous peak demands floor the peaks of this horizon.
    Export compensation is one bin: NEM with net metering, WHL otherwise.
    """
    def __init__(self, d, n_time_steps):
        energy_rates = np.array(d['energy_rates'], dtype=float)
        if len(energy_rates) != n_time_steps:
            raise ValueError("energy_rates has {} values; expected one per time step ({})".format(
                len(energy_rates), n_time_steps))
        self.energy_rates = energy_rates.reshape(-1, 1)
        self.n_energy_tiers = 1

        self.monthly_demand_rates = np.array(d.get('monthly_demand_rates', []), dtype=float).reshape(-1, 1)
        self.time_steps_monthly = [list(ts) for ts in d.get('time_steps_monthly', [])]
        if len(self.time_steps_monthly) != len(self.monthly_demand_rates):
            raise ValueError("time_steps_monthly must have one list of time steps per monthly demand rate")
        self.monthly_previous_peak_demands = list(d.get('monthly_previous_peak_demands',
                                                        [0.0] * len(self.monthly_demand_rates)))

        self.tou_demand_rates = np.array(d.get('tou_demand_rates', []), dtype=float).reshape(-1, 1)
        self.tou_demand_ratchet_time_steps = [list(r) for r in d.get('tou_demand_ratchet_time_steps', [])]
        if len(self.tou_demand_ratchet_time_steps) != len(self.tou_demand_rates):
            raise ValueError("tou_demand_rates must have one entry per tou_demand_ratchet_time_steps ratchet")
        self.tou_previous_peak_demands = list(d.get('tou_previous_peak_demands',
                                                    [0.0] * len(self.tou_demand_rates)))

        check_bounds('MPCElectricTariff',
                     [('monthly_previous_peak_demands', v, 0, None) for v in self.monthly_previous_peak_demands]
                     + [('tou_previous_peak_demands', v, 0, None) for v in self.tou_previous_peak_demands])

        self.net_metering = d.get('net_metering', False)
        export_rates = np.array(d.get('export_rates', [0.0] * n_time_steps), dtype=float)
        self.export_rates = {}
        if any(export_rates != 0):
            self.export_rates['NEM' if self.net_metering else 'WHL'] = -1.0 * export_rates
        self.export_bins = list(self.export_rates.keys())


class MPCScenario:
    """All inputs of a rolling horizon problem, built from a nested dictionary."""
    def __init__(self, d):
        self.settings = Settings(**d.get('Settings', {}))

        loads = d['ElectricLoad']
        self.loads_kw = np.array(loads['loads_kw'], dtype=float)
        self.n_time_steps = len(self.loads_kw)
        self.critical_loads_kw = np.array(loads.get('critical_loads_kw', self.loads_kw), dtype=float)

        pv_inputs = d.get('PV', [])
        if isinstance(pv_inputs, dict):
            pv_inputs = [pv_inputs]
        self.pvs = [PV(**_fixed_size(pv)) for pv in pv_inputs]
        self.wind = Wind(**_fixed_size(d['Wind'])) if 'Wind' in d else None
        self.generator = Generator(**_fixed_size(d['Generator'])) if 'Generator' in d else None

        self.electric_utility = ElectricUtility(**d.get('ElectricUtility', {}))
        if len(self.electric_utility.outage_durations) > 0:
            print("WARNING: Stochastic outages are not modeled in rolling horizon mode and are ignored.")
        self.electric_tariff = MPCElectricTariff(d['ElectricTariff'], self.n_time_steps)

        storage_inputs = {}
        for key, storage_type in SCENARIO_STORAGE_KEYS.items():
            given = d.get(key, {})
            size_kw = given.get('size_kw', 0.0)
            size_kwh = given.get('size_kwh', 0.0)
            inputs = {k: given[k] for k in STORAGE_INPUT_KEYS if k in given}
            inputs.update({'min_kw': size_kw, 'max_kw': size_kw, 'min_kwh': size_kwh, 'max_kwh': size_kwh})
            storage_inputs[storage_type] = inputs
        self.storage = Storage(storage_inputs, Financial())


class MPCInputs:
    """
    Model coefficients of a rolling horizon problem, with the attribute names of load_data.Inputs.
    Costs are not discounted or taxed: present worth factors are 1 and tax rates are 0.
    """
    def __init__(self, s):
        self.s = s
        self.settings = s.settings
        tariff = s.electric_tariff
        utility = s.electric_utility

        # ----- time -----
        self.time_steps_per_hour = s.settings.time_steps_per_hour
        self.hours_per_timestep = 1.0 / self.time_steps_per_hour
        self.n_time_steps = s.n_time_steps
        self.time_steps = list(range(1, self.n_time_steps + 1))
        self.months = list(range(1, len(tariff.monthly_demand_rates) + 1))
        self.time_steps_monthly = tariff.time_steps_monthly
        self.ratchets = list(range(1, len(tariff.tou_demand_ratchet_time_steps) + 1))
        if utility.outage_start_time_step > 0:
            outage_steps = set(range(utility.outage_start_time_step, utility.outage_end_time_step + 1))
        else:
            outage_steps = set()
        self.time_steps_without_grid = [ts for ts in self.time_steps if ts in outage_steps]
        self.time_steps_with_grid = [ts for ts in self.time_steps if ts not in outage_steps]

        # ----- loads -----
        self.elec_load = s.loads_kw
        self.critical_load = s.critical_loads_kw
        self.heating_load = np.zeros(self.n_time_steps)

        # ----- financial -----
        self.offtaker_tax_pct = 0.0
        self.owner_tax_pct = 0.0
        self.pwf_e = 1.0
        self.pwf_om = 1.0
        self.third_party_factor = 1.0

        # ----- technologies -----
        self.tech_objects = {}
        for tech in s.pvs + [s.wind, s.generator]:
            if tech is not None:
                self.tech_objects[tech.name] = tech
        self.techs = TechLists(s.pvs, s.wind, s.generator, None, None)
        self.techs.no_curtail = [t for t in self.techs.all if not self.tech_objects[t].can_curtail]

        self.existing_sizes = {t: self.tech_objects[t].existing_kw for t in self.techs.all}
        self.min_sizes = dict(self.existing_sizes)
        self.max_sizes = dict(self.existing_sizes)
        self.om_cost_per_kw = {t: 0.0 for t in self.techs.all}
        self.om_cost_per_kwh = {t: self.tech_objects[t].om_cost_per_kwh for t in self.techs.all}

        self.production_factor = {}
        self.levelization_factor = {}
        for t in self.techs.all:
            if t in self.techs.gen:
                pf = np.ones(self.n_time_steps)
            else:
                pf = np.array(self.tech_objects[t].production_factor_series, dtype=float)
                if len(pf) != self.n_time_steps:
                    raise ValueError("{} production_factor_series has {} values; expected {}".format(
                        t, len(pf), self.n_time_steps))
            for ts in self.time_steps:
                self.production_factor[t, ts] = float(pf[ts - 1])
            self.levelization_factor[t] = 1.0

        self.fuel_cost_per_unit = {t: self.tech_objects[t].fuel_cost_per_gallon for t in self.techs.gen}
        self.pwf_fuel = {t: 1.0 for t in self.techs.gen}

        # ----- exports -----
        self.export_bins = tariff.export_bins
        self.export_rates = tariff.export_rates
        self.export_bins_by_tech = {t: [] for t in self.techs.elec}
        for t in self.techs.elec:
            tech = self.tech_objects[t]
            for u in self.export_bins:
                if (u == 'NEM' and tech.can_net_meter) or (u == 'WHL' and tech.can_wholesale):
                    self.export_bins_by_tech[t].append(u)
        self.techs_by_exportbin = {u: [t for t in self.techs.elec if u in self.export_bins_by_tech[t]]
                                   for u in self.export_bins}
        self.tech_export_bins = [(t, u) for t in self.techs.elec for u in self.export_bins_by_tech[t]]
        # largest combined output of the exporting technologies
        self.max_export_kw = sum(self.max_sizes[t] * max(self.production_factor[t, ts] for ts in self.time_steps)
                                 for t in self.techs.elec if len(self.export_bins_by_tech[t]) > 0)
        self.big_m_export_kw = min(self.max_export_kw, utility.interconnection_limit_kw)

        # sizes are fixed, so only the site's sizes limit net metering
        self.net_metering_limit_kw = sum(self.max_sizes[t] for t in self.techs.elec)
        self.interconnection_limit_kw = utility.interconnection_limit_kw
        self.allow_simultaneous_export_import = utility.allow_simultaneous_export_import

        self.pv_locations = PV_LOCATIONS
        self.pv_to_location = {(t, loc): 0 for t in self.techs.pv for loc in PV_LOCATIONS}
        self.maxsize_pv_locations = {}

        # ----- storage -----
        self.storage = s.storage

        # ----- tariff -----
        self.energy_rates = tariff.energy_rates
        self.energy_tiers = [1]
        self.monthly_demand_rates = tariff.monthly_demand_rates
        self.monthly_demand_tiers = [1]
        self.monthly_previous_peak_demands = tariff.monthly_previous_peak_demands
        self.tou_demand_rates = tariff.tou_demand_rates
        self.tou_demand_tiers = [1]
        self.tou_demand_ratchet_time_steps = tariff.tou_demand_ratchet_time_steps
        self.tou_previous_peak_demands = tariff.tou_previous_peak_demands
        self.fixed_monthly_charge = 0.0
        self.annual_min_charge = 0.0
        self.min_monthly_charge = 0.0
        self.demand_lookback_percent = 0.0
        self.coincpeak_periods = []

        grid_chargeable_kw = sum(self.storage.max_kw[b] for b in self.storage.can_grid_charge)
        self.big_m_grid_kw = float(max(self.elec_load)) + grid_chargeable_kw
        # a single tier of every rate, limited only by the grid big-M
        self.energy_tier_limits = [self.big_m_grid_kw * self.hours_per_timestep * self.n_time_steps]
        self.monthly_demand_tier_limits = [self.big_m_grid_kw]
        self.tou_demand_tier_limits = [self.big_m_grid_kw]

        # ----- outages -----
        self.outage_scenarios = []
        self.min_resil_timesteps = 0


def add_previous_peak_constraints(ctx):
    """Peak demands of the horizon are at least the peaks already set earlier in the same month or ratchet."""
    m = ctx.m
    p = ctx.p

    def previous_monthly_peak_rule(model, mth):
        return model.Peak_Demand_Month_kW[mth, 1] >= p.monthly_previous_peak_demands[mth - 1]

    def previous_tou_peak_rule(model, r):
        return model.Peak_Demand_TOU_kW[r, 1] >= p.tou_previous_peak_demands[r - 1]

    ctx.add('Previous_Monthly_Peak_Demand', Constraint(m.MONTHS, rule=previous_monthly_peak_rule))
    ctx.add('Previous_TOU_Peak_Demand', Constraint(m.RATCHETS, rule=previous_tou_peak_rule))
    return ctx


def build_mpc_model(p):
    """
    Build the rolling horizon model: the single-site formulation with fixed sizes, no capital costs, and
    previous peak demand floors.
    :param p: MPCInputs
    :return: ConcreteModel
    """
    print('Building rolling horizon model...')
    ctx = model_formulation.build_deropt(p, sizes_fixed=True)
    ctx = add_previous_peak_constraints(ctx)
    ctx = model_formulation.add_objective(ctx)
    print('...model built.')
    return ctx.m


def run_mpc(d):
    """
    Solve a rolling horizon problem.
    :param d: rolling horizon scenario dictionary
    :return: results dictionary, or the unsolved model when the solve is not optimal
    """
    p = MPCInputs(MPCScenario(d))
    model = build_mpc_model(p)
    status, solver_seconds = solve(model, p.settings)
    if status == "not optimal":
        return model

    results = export_results.mpc_results(model, p)
    results['status'] = status
    results['solver_seconds'] = solver_seconds
    return results
