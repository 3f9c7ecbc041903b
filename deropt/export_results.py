"""
Results of a solved model: lifecycle and year one costs, sizes, and dispatch time series, organized by category.

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

from pyomo.environ import value

from deropt.production_constraints import tech_exports
from deropt.scenario import KWH_PER_MMBTU


def round_series(series, digits=3):
    return [round(float(v), digits) for v in series]


def deropt_results(m, p):
    """
    Collect the results of a solved single-site model (or the block of one node).
    Exceptions raised while collecting results propagate to the caller.
    :param m: solved model or node block
    :param p: Inputs
    :return: dictionary of result categories
    """
    print('Exporting results...')
    d = {}

    add_financial_results(m, p, d)
    add_electric_tariff_results(m, p, d)
    add_electric_utility_results(m, p, d)
    add_electric_load_results(m, p, d)

    if 'elec' in p.storage.types:
        add_elec_storage_results(m, p, d)

    for t in p.techs.pv:
        add_pv_results(m, p, d, t)
    for t in p.techs.wind:
        add_wind_results(m, p, d, t)
    for t in p.techs.gen:
        add_generator_results(m, p, d, t)
    for t in p.techs.chp:
        add_chp_results(m, p, d, t)
    for t in p.techs.boiler:
        add_boiler_results(m, p, d, t)

    if len(p.outage_scenarios) > 0:
        add_outage_results(m, p, d)

    print('...results exported.')
    return d


def add_financial_results(m, p, d):
    """
    Lifecycle costs after tax and the initial capital cost of the purchased technologies and storage.
    :param m: solved model
    :param p: Inputs
    :param d: results dictionary
    :return:
    """
    owner = 1 - p.owner_tax_pct
    offtaker = 1 - p.offtaker_tax_pct
    r = {}

    r['lcc'] = round(value(m.Costs), 2)
    r['lifecycle_capital_costs'] = round(value(m.Total_Tech_Cap_Costs + m.Total_Storage_Cap_Costs), 2)
    r['lifecycle_om_costs_after_tax'] = round(value(
        m.Total_Per_Unit_Size_OM_Costs + m.Total_Per_Unit_Prod_OM_Costs + m.Total_Hourly_OM_Costs) * owner, 2)
    r['lifecycle_fuel_costs_after_tax'] = round(value(m.Total_Fuel_Costs) * offtaker, 2)
    r['lifecycle_chp_standby_cost_after_tax'] = round(value(m.Total_CHP_Standby_Charges) * offtaker, 2)
    r['lifecycle_elecbill_after_tax'] = round(value(m.Total_Elec_Bill) * offtaker, 2)
    r['lifecycle_production_incentive_after_tax'] = round(value(m.Total_Production_Incentive) * owner, 2)
    r['lifecycle_outage_cost'] = round(value(m.Total_Outage_Costs), 2)

    # year one O&M and fuel costs feed the pro forma cash flows
    r['year_one_om_costs_before_tax'] = round(value(
        m.Total_Per_Unit_Size_OM_Costs + m.Total_Per_Unit_Prod_OM_Costs + m.Total_Hourly_OM_Costs)
        / (p.third_party_factor * p.pwf_om), 2)
    r['year_one_fuel_costs_before_tax'] = round(sum(
        p.fuel_cost_per_unit[t] * sum(value(m.Fuel_Usage[t, ts]) for ts in m.TIME_STEPS)
        for t in p.techs.fuel_burning
    ), 2)

    initial_capital_costs = sum(
        p.initial_capital_cost(t, value(m.Purchase_Size_kW[t])) for t in p.techs.all
    )
    for b in p.storage.types:
        raw = p.storage.raw_inputs[b]
        initial_capital_costs += raw.installed_cost_per_kw * value(m.Storage_Power_kW[b]) \
            + raw.installed_cost_per_kwh * value(m.Storage_Energy_kWh[b])
    r['initial_capital_costs'] = round(initial_capital_costs, 2)

    d['Financial'] = r


def add_electric_tariff_results(m, p, d):
    """
    Lifecycle costs are after tax; year one costs are the lifecycle costs divided by pwf_e.
    Fixed costs and export benefits are rounded to whole dollars in year one, and the coincident peak cost
    is not part of the year one bill.
    :param m: solved model
    :param p: Inputs
    :param d: results dictionary
    :return:
    """
    offtaker = 1 - p.offtaker_tax_pct
    r = {}

    energy = value(m.Total_Energy_Charges_Util)
    r['lifecycle_energy_cost'] = round(energy * offtaker, 2)
    r['year_one_energy_cost'] = round(energy / p.pwf_e, 2)

    demand = value(m.Total_Demand_Charges)
    r['lifecycle_demand_cost'] = round(demand * offtaker, 2)
    r['year_one_demand_cost'] = round(demand / p.pwf_e, 2)

    fixed = value(m.Total_Fixed_Charges)
    r['lifecycle_fixed_cost'] = round(fixed * offtaker, 2)
    r['year_one_fixed_cost'] = round(fixed / p.pwf_e, 0)

    min_charge_adder = value(m.Min_Charge_Adder)
    r['lifecycle_min_charge_adder'] = round(min_charge_adder * offtaker, 2)
    r['year_one_min_charge_adder'] = round(min_charge_adder / p.pwf_e, 2)

    r['year_one_bill'] = r['year_one_energy_cost'] + r['year_one_demand_cost'] + r['year_one_fixed_cost'] \
        + r['year_one_min_charge_adder']

    export_benefit = value(m.Total_Export_Benefit)
    r['lifecycle_export_benefit'] = -1 * round(export_benefit * offtaker, 2)
    r['year_one_export_benefit'] = -1 * round(export_benefit / p.pwf_e, 0)

    r['lifecycle_coincident_peak_cost'] = round(value(m.Total_CP_Charges), 2)
    r['year_one_coincident_peak_cost'] = round(r['lifecycle_coincident_peak_cost'] / p.pwf_e, 2)

    d['ElectricTariff'] = r


def grid_series(m):
    """Grid purchases summed over tiers, and grid purchases that charge storage, in every time step."""
    purchases = [sum(value(m.Grid_Purchase_kW[ts, tier]) for tier in m.ENERGY_TIERS) for ts in m.TIME_STEPS]
    to_battery = [sum(value(m.Grid_To_Storage_kW[b, ts]) for b in m.STORAGE_TYPES) for ts in m.TIME_STEPS]
    return purchases, to_battery


def add_electric_utility_results(m, p, d):
    """Energy supplied by the grid over all energy tiers, split into grid to load and grid to storage."""
    r = {}
    purchases, to_battery = grid_series(m)

    r['year_one_energy_supplied_kwh'] = round(p.hours_per_timestep * sum(purchases), 2)
    r['year_one_to_load_series_kw'] = round_series([g - b for g, b in zip(purchases, to_battery)])
    r['year_one_to_battery_series_kw'] = round_series(to_battery)

    d['ElectricUtility'] = r


def add_electric_load_results(m, p, d):
    r = {}
    r['load_series_kw'] = round_series(p.elec_load)
    r['critical_load_series_kw'] = round_series(p.critical_load)
    r['annual_calculated_kwh'] = round(p.hours_per_timestep * float(sum(p.elec_load)), 2)
    d['ElectricLoad'] = r


def add_elec_storage_results(m, p, d, prefix='year_one_'):
    """Storage size, state of charge as a fraction of energy capacity, and discharge to load."""
    r = {}
    size_kwh = value(m.Storage_Energy_kWh['elec'])
    r['size_kw'] = round(value(m.Storage_Power_kW['elec']), 2)
    r['size_kwh'] = round(size_kwh, 2)

    if size_kwh > 0:
        soc = [value(m.Stored_Energy_kWh['elec', ts]) / size_kwh for ts in m.TIME_STEPS]
    else:
        soc = [0.0 for ts in m.TIME_STEPS]
    r[prefix + 'soc_series_pct'] = round_series(soc)
    r[prefix + 'to_load_series_kw'] = round_series(
        [value(m.Discharge_From_Storage_kW['elec', ts]) for ts in m.TIME_STEPS])

    d['ElecStorage'] = r


def tech_dispatch_series(m, p, t):
    """
    Production of electric technology t split into storage charging, exports, curtailment and production
    serving the load, in every time step.
    :param m: solved model
    :param p: Inputs
    :param t: technology
    :return: (to_battery, to_grid, curtailed, to_load) lists
    """
    to_battery, to_grid, curtailed, to_load = [], [], [], []
    for ts in m.TIME_STEPS:
        production = p.production_factor[t, ts] * p.levelization_factor[t] * value(m.Rated_Production_kW[t, ts])
        battery = sum(value(m.Production_To_Storage_kW[b, t, ts]) for b in m.STORAGE_TYPES)
        grid = value(tech_exports(m, p, t, ts))
        curtail = value(m.Curtail_kW[t, ts])
        to_battery.append(battery)
        to_grid.append(grid)
        curtailed.append(curtail)
        to_load.append(production - battery - grid - curtail)
    return to_battery, to_grid, curtailed, to_load


def add_tech_dispatch_results(m, p, r, t, prefix):
    to_battery, to_grid, curtailed, to_load = tech_dispatch_series(m, p, t)
    r[prefix + 'to_battery_series_kw'] = round_series(to_battery)
    r[prefix + 'to_grid_series_kw'] = round_series(to_grid)
    r[prefix + 'curtailed_production_series_kw'] = round_series(curtailed)
    r[prefix + 'to_load_series_kw'] = round_series(to_load)
    return r


def year_one_energy_produced(m, p, t):
    return p.hours_per_timestep * sum(
        p.production_factor[t, ts] * value(m.Rated_Production_kW[t, ts]) for ts in m.TIME_STEPS
    )


def add_pv_results(m, p, d, t, prefix='year_one_'):
    """
    Results of one PV array, keyed on its name. Multiple arrays are grouped under PV by
    create_results_summary.organize_multiple_pv_results.
    """
    r = {}
    r['size_kw'] = round(value(m.Size_kW[t]), 2)
    energy = year_one_energy_produced(m, p, t)
    r[prefix + 'energy_produced_kwh'] = round(energy, 0)
    if prefix:
        r['average_annual_energy_produced_kwh'] = round(energy * p.levelization_factor[t], 0)
    add_tech_dispatch_results(m, p, r, t, prefix)
    d[t] = r


def add_wind_results(m, p, d, t, prefix='year_one_'):
    r = {}
    r['size_kw'] = round(value(m.Size_kW[t]), 2)
    r[prefix + 'energy_produced_kwh'] = round(year_one_energy_produced(m, p, t), 0)
    add_tech_dispatch_results(m, p, r, t, prefix)
    d['Wind'] = r


def add_generator_results(m, p, d, t, prefix='year_one_'):
    """Generator size, fuel use and costs, variable O&M, and dispatch."""
    r = {}
    fuel_gal = sum(value(m.Fuel_Usage[t, ts]) for ts in m.TIME_STEPS)
    fuel_cost = p.fuel_cost_per_unit[t] * fuel_gal
    variable_om = p.om_cost_per_kwh[t] * p.hours_per_timestep * sum(
        value(m.Rated_Production_kW[t, ts]) for ts in m.TIME_STEPS)

    r['size_kw'] = round(value(m.Size_kW[t]), 2)
    r[prefix + 'fuel_used_gal'] = round(fuel_gal, 2)
    r[prefix + 'fuel_cost'] = round(fuel_cost, 2)
    r[prefix + 'variable_om_cost'] = round(variable_om, 2)
    if prefix:
        r['lifecycle_fuel_cost_after_tax'] = round(p.pwf_fuel[t] * fuel_cost * (1 - p.offtaker_tax_pct), 2)
        r['lifecycle_variable_om_cost_after_tax'] = round(
            p.third_party_factor * p.pwf_om * variable_om * (1 - p.owner_tax_pct), 2)
        r['year_one_fixed_om_cost'] = round(p.om_cost_per_kw[t] * value(m.Size_kW[t]), 2)
    r[prefix + 'energy_produced_kwh'] = round(year_one_energy_produced(m, p, t), 0)
    add_tech_dispatch_results(m, p, r, t, prefix)
    d['Generator'] = r


def add_chp_results(m, p, d, t):
    """CHP size, fuel use, electric and thermal production, and heat sent to the heating load or wasted."""
    r = {}
    thermal_to_load = [
        value(m.Thermal_Production_kW[t, ts] + m.Supplementary_Thermal_Production_kW[t, ts]
              - m.Thermal_Waste_kW[t, ts]) / KWH_PER_MMBTU
        for ts in m.TIME_STEPS
    ]
    thermal_to_waste = [value(m.Thermal_Waste_kW[t, ts]) / KWH_PER_MMBTU for ts in m.TIME_STEPS]
    fuel_mmbtu = sum(value(m.Fuel_Usage[t, ts]) for ts in m.TIME_STEPS) / KWH_PER_MMBTU

    r['size_kw'] = round(value(m.Size_kW[t]), 2)
    r['size_supplemental_firing_kw'] = round(value(m.Supplementary_Firing_Size_kW[t]), 2)
    r['year_one_fuel_used_mmbtu'] = round(fuel_mmbtu, 3)
    r['year_one_fuel_cost'] = round(fuel_mmbtu * p.tech_objects[t].fuel_cost_per_mmbtu, 2)
    r['lifecycle_fuel_cost_after_tax'] = round(
        p.pwf_fuel[t] * fuel_mmbtu * p.tech_objects[t].fuel_cost_per_mmbtu * (1 - p.offtaker_tax_pct), 2)
    r['year_one_electric_energy_produced_kwh'] = round(year_one_energy_produced(m, p, t), 0)
    r['year_one_thermal_energy_produced_mmbtu'] = round(p.hours_per_timestep * sum(thermal_to_load), 3)
    r['year_one_thermal_to_load_series_mmbtu_per_hour'] = round_series(thermal_to_load, 5)
    r['year_one_thermal_to_waste_series_mmbtu_per_hour'] = round_series(thermal_to_waste, 5)
    add_tech_dispatch_results(m, p, r, t, 'year_one_')
    d['CHP'] = r


def add_boiler_results(m, p, d, t):
    r = {}
    fuel_mmbtu = sum(value(m.Fuel_Usage[t, ts]) for ts in m.TIME_STEPS) / KWH_PER_MMBTU
    thermal = [value(m.Thermal_Production_kW[t, ts]) / KWH_PER_MMBTU for ts in m.TIME_STEPS]

    r['year_one_fuel_used_mmbtu'] = round(fuel_mmbtu, 3)
    r['year_one_fuel_cost'] = round(fuel_mmbtu * p.tech_objects[t].fuel_cost_per_mmbtu, 2)
    r['lifecycle_fuel_cost_after_tax'] = round(
        p.pwf_fuel[t] * fuel_mmbtu * p.tech_objects[t].fuel_cost_per_mmbtu * (1 - p.offtaker_tax_pct), 2)
    r['year_one_thermal_production_series_mmbtu_per_hour'] = round_series(thermal, 5)
    d['ExistingBoiler'] = r


def add_outage_results(m, p, d):
    """
    Expected and per-scenario outage costs, microgrid sizes and upgrade costs, and the unserved load of every
    (outage scenario, outage start) pair.
    :param m: solved model
    :param p: Inputs
    :param d: results dictionary
    :return:
    """
    r = {}
    r['expected_outage_cost'] = round(value(m.Expected_Outage_Cost), 2)
    r['max_outage_cost_per_outage_duration'] = [round(value(m.Max_Outage_Cost[s]), 2) for s in m.OUTAGE_SCENARIOS]
    r['microgrid_upgrade_cost'] = round(value(m.MG_Tech_Upgrade_Cost + m.MG_Storage_Upgrade_Cost), 2)
    r['mg_storage_used'] = bool(round(value(m.MG_Storage_Used)))
    r['mg_size_kw'] = {t: round(value(m.MG_Size_kW[t]), 2) + 0.0 for t in m.MG_TECHS}
    r['expected_mg_fuel_used_gal'] = round(value(m.Expected_MG_Fuel_Used), 2)
    r['expected_mg_fuel_cost'] = round(value(m.Expected_MG_Fuel_Cost), 2)
    r['unserved_load_per_outage'] = [
        [round(p.hours_per_timestep * sum(value(m.Unserved_Load_kW[s, tz, ts])
                                          for ts in p.outage_time_steps if ts <= p.outage_durations[s]), 2)
         for tz in m.OUTAGE_START_TIME_STEPS]
        for s in m.OUTAGE_SCENARIOS
    ]
    d['Outages'] = r


# ---------- rolling horizon ----------

def mpc_results(m, p):
    """
    Results of a solved rolling horizon model. There is a single horizon, so keys carry no year_one_ or
    lifecycle_ prefix.
    :param m: solved model
    :param p: MPCInputs
    :return: dictionary of result categories
    """
    d = {}
    add_mpc_electric_tariff_results(m, p, d)
    add_mpc_electric_utility_results(m, p, d)
    if 'elec' in p.storage.types:
        add_elec_storage_results(m, p, d, prefix='')
    for t in p.techs.pv:
        add_pv_results(m, p, d, t, prefix='')
    for t in p.techs.wind:
        add_wind_results(m, p, d, t, prefix='')
    for t in p.techs.gen:
        add_generator_results(m, p, d, t, prefix='')
    return d


def add_mpc_electric_tariff_results(m, p, d):
    r = {}
    r['energy_cost'] = round(value(m.Total_Energy_Charges_Util), 2)
    r['demand_cost'] = round(value(m.Total_Demand_Charges), 2)
    r['export_benefit'] = -1 * round(value(m.Total_Export_Benefit), 0)
    d['ElectricTariff'] = r


def add_mpc_electric_utility_results(m, p, d):
    """Grid to storage is only reported when the site has storage power capacity."""
    r = {}
    purchases, to_battery = grid_series(m)

    r['energy_supplied_kwh'] = round(p.hours_per_timestep * sum(purchases), 2)
    if p.storage.max_kw.get('elec', 0) > 0:
        r['to_battery_series_kw'] = round_series(to_battery)
    else:
        to_battery = [0.0 for g in purchases]
    r['to_load_series_kw'] = round_series([g - b for g, b in zip(purchases, to_battery)])

    d['ElectricUtility'] = r
