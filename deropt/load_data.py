#!/usr/bin/env python

"""
This script loads model data: it turns a Scenario into the index sets and coefficients used to build the model.

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

from deropt.financial import annuity, effective_cost, levelization_factor
from deropt.scenario import (KWH_PER_MMBTU, HOURS_PER_YEAR, Scenario, bau_scenario_dict, macrs_schedule,
                             to_time_series)

PV_LOCATIONS = ['roof', 'ground', 'both']


class TechLists:
    """Technology names grouped by the role they play in the model."""
    def __init__(self, pvs, wind, generator, chp, boiler):
        self.pv = [pv.name for pv in pvs]
        self.wind = [wind.name] if wind is not None else []
        self.gen = [generator.name] if generator is not None else []
        self.chp = [chp.name] if chp is not None else []
        self.boiler = [boiler.name] if boiler is not None else []

        self.elec = self.pv + self.wind + self.gen + self.chp
        self.all = self.elec + self.boiler
        self.thermal = self.chp + self.boiler
        self.fuel_burning = self.gen + self.chp + self.boiler
        self.no_turndown = self.pv + self.wind
        # technologies that can serve the critical load while islanded
        self.mg = self.pv + self.wind + self.gen

        # filled in by Inputs once the technology objects are known
        self.no_curtail = []
        self.segmented = []
        self.pbi = []


def cost_curve_segments(sizes, costs_per_kw, max_kw, cost_ratio, rebate_per_kw):
    """
    Piecewise-linear capital cost segments through (size, size * cost_per_kw) breakpoints, starting at zero.

    Args:
        sizes (list): sizes at which costs_per_kw apply, strictly increasing
        costs_per_kw (list): installed cost per kW at each size
        max_kw (float): the last segment is extended to this size
        cost_ratio (float): effective (after incentive) cost per dollar of installed cost
        rebate_per_kw (float): rebate subtracted from every segment slope

    Returns:
        list: (min size, max size, slope, y-intercept) per segment
    """
    x = [float(s) for s in sizes]
    y = [float(s) * float(c) for s, c in zip(sizes, costs_per_kw)]
    if x[0] > 0:
        x = [0.0] + x
        y = [0.0] + y

    segments = []
    for i in range(len(x) - 1):
        slope = (y[i + 1] - y[i]) / (x[i + 1] - x[i])
        yint = y[i] - slope * x[i]
        segments.append([x[i], x[i + 1], max(slope * cost_ratio - rebate_per_kw, 0.0), yint * cost_ratio])
    segments[-1][1] = max(segments[-1][1], max_kw)
    return [tuple(s) for s in segments]


class Inputs:
    """
    Model coefficients derived from a Scenario.
    Time-step indexed data use 1-based time steps; per-technology data are dictionaries keyed on technology name.
    """
    def __init__(self, s):
        self.s = s
        self.settings = s.settings
        fin = s.financial
        tariff = s.electric_tariff
        utility = s.electric_utility

        # ----- time -----
        self.time_steps_per_hour = s.settings.time_steps_per_hour
        self.hours_per_timestep = 1.0 / self.time_steps_per_hour
        self.n_time_steps = HOURS_PER_YEAR * self.time_steps_per_hour
        self.time_steps = list(range(1, self.n_time_steps + 1))
        self.months = list(range(1, 13))
        self.time_steps_monthly = tariff.time_steps_monthly
        self.ratchets = list(range(1, len(tariff.tou_demand_ratchet_time_steps) + 1))

        if utility.outage_start_time_step > 0:
            outage_steps = set(range(utility.outage_start_time_step, utility.outage_end_time_step + 1))
        else:
            outage_steps = set()
        self.time_steps_without_grid = [ts for ts in self.time_steps if ts in outage_steps]
        self.time_steps_with_grid = [ts for ts in self.time_steps if ts not in outage_steps]

        # ----- loads -----
        self.elec_load = np.array(s.electric_load.loads_kw)
        self.critical_load = np.array(s.electric_load.critical_loads_kw)
        self.heating_load = s.heating_load.loads_kw if s.heating_load is not None else np.zeros(self.n_time_steps)

        # ----- financial -----
        years = fin.analysis_years
        self.analysis_years = years
        self.offtaker_tax_pct = fin.offtaker_tax_pct
        self.owner_tax_pct = fin.owner_tax_pct
        self.pwf_e = annuity(years, fin.elec_cost_escalation_pct, fin.offtaker_discount_pct)
        self.pwf_om = annuity(years, fin.om_cost_escalation_pct, fin.owner_discount_pct)
        if fin.third_party_ownership:
            pwf_offtaker = annuity(years, 0.0, fin.offtaker_discount_pct)
            pwf_owner = annuity(years, 0.0, fin.owner_discount_pct)
            self.third_party_factor = (pwf_offtaker * (1 - fin.offtaker_tax_pct)) / \
                                      (pwf_owner * (1 - fin.owner_tax_pct))
        else:
            self.third_party_factor = 1.0
        self.value_of_lost_load = to_time_series(fin.value_of_lost_load_per_kwh, self.n_time_steps,
                                                 self.time_steps_per_hour, 'value_of_lost_load_per_kwh')
        self.microgrid_upgrade_cost_pct = fin.microgrid_upgrade_cost_pct

        # ----- technologies -----
        self.tech_objects = {}
        for tech in s.pvs + [s.wind, s.generator, s.chp, s.existing_boiler]:
            if tech is not None:
                self.tech_objects[tech.name] = tech
        self.techs = TechLists(s.pvs, s.wind, s.generator, s.chp, s.existing_boiler)
        self.techs.no_curtail = [t for t in self.techs.all if not self.tech_objects[t].can_curtail]
        self.techs.segmented = [t for t in self.techs.all if self.tech_objects[t].has_cost_curve]
        self.techs.pbi = [t for t in self.techs.elec if self.tech_objects[t].has_production_incentive]

        self.existing_sizes = {}
        self.min_sizes = {}
        self.max_sizes = {}
        self.om_cost_per_kw = {}
        self.om_cost_per_kwh = {}
        self.cap_cost_slope = {}
        for t in self.techs.all:
            tech = self.tech_objects[t]
            self.existing_sizes[t] = tech.existing_kw
            self.min_sizes[t] = max(tech.min_kw, tech.existing_kw)
            self.max_sizes[t] = max(tech.max_kw, tech.existing_kw)
            self.om_cost_per_kw[t] = tech.om_cost_per_kw
            self.om_cost_per_kwh[t] = tech.om_cost_per_kwh
            if t in self.techs.segmented:
                self.cap_cost_slope[t] = 0.0
            else:
                self.cap_cost_slope[t] = effective_cost(
                    itc_basis=tech.installed_cost_per_kw,
                    replacement_cost=0.0,
                    replacement_year=years,
                    discount_rate=fin.owner_discount_pct,
                    tax_rate=fin.owner_tax_pct,
                    itc=tech.federal_itc_pct,
                    macrs_schedule=macrs_schedule(fin, tech.macrs_option_years),
                    macrs_bonus_pct=tech.macrs_bonus_pct,
                    macrs_itc_reduction=tech.macrs_itc_reduction,
                    rebate_per_kw=tech.rebate_per_kw
                )

        # the existing boiler is sized to serve the heating load and carries no capital cost
        for t in self.techs.boiler:
            boiler = self.tech_objects[t]
            size = boiler.max_thermal_kw if boiler.max_thermal_kw is not None else float(max(self.heating_load))
            self.existing_sizes[t] = self.min_sizes[t] = self.max_sizes[t] = size

        self._init_cost_curves(fin)
        self._init_production(fin)
        self._init_fuel(fin)
        self._init_production_incentives(fin)
        self._init_exports(tariff, utility)
        self._init_pv_locations(s.site)

        # ----- storage -----
        self.storage = s.storage

        # ----- tariff -----
        self.energy_rates = tariff.energy_rates
        self.energy_tiers = list(range(1, tariff.n_energy_tiers + 1))
        self.monthly_demand_rates = tariff.monthly_demand_rates
        self.monthly_demand_tiers = list(range(1, tariff.n_monthly_demand_tiers + 1))
        self.tou_demand_rates = tariff.tou_demand_rates
        self.tou_demand_tiers = list(range(1, tariff.n_tou_demand_tiers + 1))
        self.tou_demand_ratchet_time_steps = tariff.tou_demand_ratchet_time_steps
        self.fixed_monthly_charge = tariff.fixed_monthly_charge
        self.annual_min_charge = tariff.annual_min_charge
        self.min_monthly_charge = tariff.min_monthly_charge
        self.demand_lookback_percent = tariff.demand_lookback_percent
        self.demand_lookback_months = tariff.demand_lookback_months
        self.demand_lookback_range = tariff.demand_lookback_range
        self.coincpeak_periods = tariff.coincpeak_periods
        self.coincident_peak_load_active_time_steps = tariff.coincident_peak_load_active_time_steps
        self.coincident_peak_load_charge_per_kw = tariff.coincident_peak_load_charge_per_kw

        grid_chargeable_kw = sum(self.storage.max_kw[b] for b in self.storage.can_grid_charge)
        self.big_m_grid_kw = float(max(self.elec_load)) + grid_chargeable_kw
        self.energy_tier_limits = self._tier_limits_kwh(tariff.energy_tier_limits)
        self.monthly_demand_tier_limits = [l if l is not None else self.big_m_grid_kw
                                           for l in tariff.monthly_demand_tier_limits]
        self.tou_demand_tier_limits = [l if l is not None else self.big_m_grid_kw
                                       for l in tariff.tou_demand_tier_limits]

        # ----- electric utility -----
        self.allow_simultaneous_export_import = utility.allow_simultaneous_export_import
        self.net_metering_limit_kw = utility.net_metering_limit_kw
        self.interconnection_limit_kw = utility.interconnection_limit_kw

        # ----- stochastic outages -----
        self.outage_scenarios = utility.scenarios
        self.outage_durations = dict(zip(utility.scenarios, utility.outage_durations))
        self.outage_probabilities = dict(zip(utility.scenarios, utility.outage_probabilities))
        self.outage_start_time_steps = utility.outage_start_time_steps
        self.outage_time_steps = utility.outage_time_steps
        self.min_resil_timesteps = s.site.min_resil_timesteps

    def _init_cost_curves(self, fin):
        self.n_segs_by_tech = {}
        self.seg_min_size = {}
        self.seg_max_size = {}
        self.seg_slope = {}
        self.seg_yint = {}
        for t in self.techs.segmented:
            tech = self.tech_objects[t]
            cost_ratio = effective_cost(
                itc_basis=1.0,
                replacement_cost=0.0,
                replacement_year=fin.analysis_years,
                discount_rate=fin.owner_discount_pct,
                tax_rate=fin.owner_tax_pct,
                itc=tech.federal_itc_pct,
                macrs_schedule=macrs_schedule(fin, tech.macrs_option_years),
                macrs_bonus_pct=tech.macrs_bonus_pct,
                macrs_itc_reduction=tech.macrs_itc_reduction
            )
            segments = cost_curve_segments(tech.tech_sizes_for_cost_curve, tech.installed_cost_per_kw,
                                           self.max_sizes[t], cost_ratio, tech.rebate_per_kw)
            self.n_segs_by_tech[t] = len(segments)
            for k, (seg_min, seg_max, slope, yint) in enumerate(segments, start=1):
                self.seg_min_size[t, k] = seg_min
                self.seg_max_size[t, k] = seg_max
                self.seg_slope[t, k] = slope
                self.seg_yint[t, k] = yint
            self.cap_cost_slope[t] = self.seg_slope[t, 1]

    def _init_production(self, fin):
        self.production_factor = {}
        self.levelization_factor = {}
        for t in self.techs.all:
            tech = self.tech_objects[t]
            if t in self.techs.pv or t in self.techs.wind:
                pf = to_time_series(tech.production_factor_series, self.n_time_steps, self.time_steps_per_hour,
                                    '{} production_factor_series'.format(t))
            else:
                pf = np.ones(self.n_time_steps)
            for ts in self.time_steps:
                self.production_factor[t, ts] = float(pf[ts - 1])

            if tech.degradation_pct > 0:
                self.levelization_factor[t] = levelization_factor(fin.analysis_years, fin.elec_cost_escalation_pct,
                                                                  fin.offtaker_discount_pct, tech.degradation_pct)
            else:
                self.levelization_factor[t] = 1.0

    def _init_fuel(self, fin):
        """
        Generator fuel is in gallons. CHP and boiler fuel is in kWh of fuel energy, so their fuel costs
        are converted from $/MMBtu to $/kWh.
        """
        years = fin.analysis_years
        self.fuel_cost_per_unit = {}
        self.pwf_fuel = {}
        for t in self.techs.gen:
            gen = self.tech_objects[t]
            self.fuel_cost_per_unit[t] = gen.fuel_cost_per_gallon
            self.pwf_fuel[t] = annuity(years, fin.generator_fuel_cost_escalation_pct, fin.offtaker_discount_pct)
        for t in self.techs.chp:
            self.fuel_cost_per_unit[t] = self.tech_objects[t].fuel_cost_per_mmbtu / KWH_PER_MMBTU
            self.pwf_fuel[t] = annuity(years, fin.chp_fuel_cost_escalation_pct, fin.offtaker_discount_pct)
        for t in self.techs.boiler:
            self.fuel_cost_per_unit[t] = self.tech_objects[t].fuel_cost_per_mmbtu / KWH_PER_MMBTU
            self.pwf_fuel[t] = annuity(years, fin.boiler_fuel_cost_escalation_pct, fin.offtaker_discount_pct)

        self.boiler_efficiency = {t: self.tech_objects[t].efficiency for t in self.techs.boiler}

        # CHP fuel burn and thermal production per kW of size at full and half load
        self.chp_fuel_burn_slope = {}
        self.chp_fuel_burn_intercept = {}
        self.chp_thermal_prod_slope = {}
        self.chp_thermal_prod_intercept = {}
        self.chp_thermal_prod_full_load = {}
        for t in self.techs.chp:
            chp = self.tech_objects[t]
            fuel_full = 1.0 / chp.elec_effic_full_load
            fuel_half = 0.5 / chp.elec_effic_half_load
            thermal_full = chp.thermal_effic_full_load / chp.elec_effic_full_load
            thermal_half = 0.5 * chp.thermal_effic_half_load / chp.elec_effic_half_load
            self.chp_fuel_burn_slope[t], self.chp_fuel_burn_intercept[t] = _two_point_line(fuel_full, fuel_half)
            self.chp_thermal_prod_slope[t], self.chp_thermal_prod_intercept[t] = \
                _two_point_line(thermal_full, thermal_half)
            self.chp_thermal_prod_full_load[t] = thermal_full

    def _init_production_incentives(self, fin):
        self.pwf_prod_incent = {}
        self.production_incentive_rate = {}
        self.max_production_incentive = {}
        self.max_size_for_prod_incent = {}
        for t in self.techs.pbi:
            tech = self.tech_objects[t]
            self.pwf_prod_incent[t] = annuity(tech.production_incentive_years, -1 * tech.degradation_pct,
                                              fin.owner_discount_pct)
            self.production_incentive_rate[t] = tech.production_incentive_per_kwh
            self.max_production_incentive[t] = tech.production_incentive_max_benefit
            self.max_size_for_prod_incent[t] = tech.production_incentive_max_kw

    def _init_exports(self, tariff, utility):
        self.export_bins = list(tariff.export_bins)
        self.export_rates = tariff.export_rates
        self.export_bins_by_tech = {}
        for t in self.techs.elec:
            tech = self.tech_objects[t]
            bins = []
            if tech.can_net_meter and 'NEM' in self.export_bins:
                bins.append('NEM')
            if tech.can_wholesale and 'WHL' in self.export_bins:
                bins.append('WHL')
            if tech.can_export_beyond_nem_limit and 'EXC' in self.export_bins:
                bins.append('EXC')
            self.export_bins_by_tech[t] = bins
        self.techs_by_exportbin = {u: [t for t in self.techs.elec if u in self.export_bins_by_tech[t]]
                                   for u in self.export_bins}
        self.tech_export_bins = [(t, u) for t in self.techs.elec for u in self.export_bins_by_tech[t]]

        # largest combined output of the exporting technologies
        self.max_export_kw = sum(self.max_sizes[t] * max(self.production_factor[t, ts] for ts in self.time_steps)
                                 for t in self.techs.elec if len(self.export_bins_by_tech[t]) > 0)
        self.big_m_export_kw = min(self.max_export_kw, utility.interconnection_limit_kw)

    def _init_pv_locations(self, site):
        self.pv_locations = PV_LOCATIONS
        self.pv_to_location = {}
        for t in self.techs.pv:
            for loc in PV_LOCATIONS:
                self.pv_to_location[t, loc] = 1 if self.tech_objects[t].location == loc else 0

        self.maxsize_pv_locations = {}
        if len(self.techs.pv) > 0:
            first_pv = self.tech_objects[self.techs.pv[0]]
            roof_kw = site.roof_squarefeet * first_pv.kw_per_square_foot \
                if site.roof_squarefeet is not None else None
            ground_kw = site.land_acres / first_pv.acres_per_kw if site.land_acres is not None else None
            self.maxsize_pv_locations['roof'] = roof_kw
            self.maxsize_pv_locations['ground'] = ground_kw
            if roof_kw is not None and ground_kw is not None:
                self.maxsize_pv_locations['both'] = roof_kw + ground_kw
            else:
                self.maxsize_pv_locations['both'] = None

    def _tier_limits_kwh(self, limits):
        """Monthly tier limits in kWh; an unbounded last tier is limited by the grid big-M."""
        big_m_month_kwh = self.big_m_grid_kw * self.hours_per_timestep * max(
            len(ts) for ts in self.time_steps_monthly)
        return [l if l is not None else big_m_month_kwh for l in limits]

    def initial_capital_cost(self, t, purchase_kw):
        """Installed cost, before incentives, of purchase_kw of technology t."""
        tech = self.tech_objects[t]
        if t in self.techs.boiler:
            return 0.0
        if tech.has_cost_curve:
            sizes = [0.0] + [float(s) for s in tech.tech_sizes_for_cost_curve]
            costs = [0.0] + [float(s) * float(c) for s, c in zip(tech.tech_sizes_for_cost_curve,
                                                                 tech.installed_cost_per_kw)]
            if purchase_kw > sizes[-1]:
                return costs[-1] + (purchase_kw - sizes[-1]) * tech.installed_cost_per_kw[-1]
            return float(np.interp(purchase_kw, sizes, costs))
        return purchase_kw * tech.installed_cost_per_kw


def _two_point_line(value_full_load, value_half_load):
    """Slope and intercept of the line through (1, value_full_load) and (0.5, value_half_load), intercept >= 0."""
    slope = (value_full_load - value_half_load) / 0.5
    intercept = value_full_load - slope
    if intercept < 0:
        return value_full_load, 0.0
    return slope, intercept


def load_inputs(d):
    """
    Build model inputs from a scenario dictionary.
    :param d: scenario dictionary
    :return: Inputs
    """
    return Inputs(Scenario(d))


def load_bau_inputs(d):
    """
    Build business-as-usual model inputs from a scenario dictionary.
    :param d: scenario dictionary
    :return: Inputs
    """
    return Inputs(Scenario(bau_scenario_dict(d)))
