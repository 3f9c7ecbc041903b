"""
Microgrid constraints for stochastic grid outages: unserved load, islanded production and storage dispatch,
generator fuel during outages, upgrade costs, and the expected outage cost.

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

from pyomo.environ import Constraint, Expression


def outage_time_step(p, tz, ts):
    """Time step of the year that is ts time steps into an outage starting at tz, wrapping around the year end."""
    return (tz + ts - 2) % p.n_time_steps + 1


def add_unserved_load_constraints(ctx):
    """Critical load not served by microgrid production and storage is unserved, up to the critical load itself."""
    m = ctx.m
    p = ctx.p

    def unserved_load_rule(model, s, tz, ts):
        yr_ts = outage_time_step(p, tz, ts)
        return (
            model.Unserved_Load_kW[s, tz, ts]
            >=
            float(p.critical_load[yr_ts - 1])
            - sum(p.production_factor[t, yr_ts] * p.levelization_factor[t] * model.MG_Rated_Production_kW[t, s, tz, ts]
                  - sum(model.MG_Production_To_Storage_kW[b, t, s, tz, ts] for b in model.STORAGE_TYPES)
                  - model.MG_Curtail_kW[t, s, tz, ts]
                  for t in model.MG_TECHS)
            - sum(model.MG_Discharge_From_Storage_kW[b, s, tz, ts] for b in model.STORAGE_TYPES)
        )

    def max_unserved_load_rule(model, s, tz, ts):
        return model.Unserved_Load_kW[s, tz, ts] <= float(p.critical_load[outage_time_step(p, tz, ts) - 1])

    ctx.add('Unserved_Load', Constraint(m.OUTAGE_STEPS, rule=unserved_load_rule))
    ctx.add('Max_Unserved_Load', Constraint(m.OUTAGE_STEPS, rule=max_unserved_load_rule))
    return ctx


def add_outage_cost_constraints(ctx):
    """
    The outage cost of a scenario is the highest value of lost load over all outage start times, and the
    microgrid upgrade costs are a fraction of the capital cost of the technologies and storage it uses.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p
    s = p.storage

    def max_outage_cost_rule(model, scen, tz):
        return (
            model.Max_Outage_Cost[scen]
            >=
            p.pwf_e * p.hours_per_timestep * sum(
                float(p.value_of_lost_load[outage_time_step(p, tz, ts) - 1]) * model.Unserved_Load_kW[scen, tz, ts]
                for ts in p.outage_time_steps if ts <= p.outage_durations[scen]
            )
        )

    ctx.add('Max_Outage_Cost_Floor', Constraint(m.OUTAGE_STARTS, rule=max_outage_cost_rule))
    ctx.add('Expected_Outage_Cost', Expression(expr=sum(
        p.outage_probabilities[scen] * m.Max_Outage_Cost[scen] for scen in m.OUTAGE_SCENARIOS
    )))

    def tech_upgrade_cost_rule(model):
        # segmented cost curve technologies are priced at the slope of their first segment
        return (
            model.MG_Tech_Upgrade_Cost
            ==
            p.microgrid_upgrade_cost_pct * p.third_party_factor
            * sum(p.cap_cost_slope[t] * model.MG_Size_kW[t] for t in model.MG_TECHS)
        )

    storage_capital_cost = p.third_party_factor * sum(
        s.installed_cost_per_kw[b] * m.Storage_Power_kW[b] + s.installed_cost_per_kwh[b] * m.Storage_Energy_kWh[b]
        for b in m.STORAGE_TYPES
    )
    max_storage_upgrade_cost = p.microgrid_upgrade_cost_pct * p.third_party_factor * sum(
        s.installed_cost_per_kw[b] * s.max_kw[b] + s.installed_cost_per_kwh[b] * s.max_kwh[b]
        for b in s.types
    )

    def storage_upgrade_cost_rule(model):
        return (
            model.MG_Storage_Upgrade_Cost
            >=
            p.microgrid_upgrade_cost_pct * storage_capital_cost
            - max_storage_upgrade_cost * (1 - model.MG_Storage_Used)
        )

    ctx.add('MG_Tech_Upgrade_Cost_Definition', Constraint(rule=tech_upgrade_cost_rule))
    ctx.add('MG_Storage_Upgrade_Cost_Floor', Constraint(rule=storage_upgrade_cost_rule))
    return ctx


def add_mg_production_constraints(ctx):
    m = ctx.m
    p = ctx.p
    no_turndown = set(p.techs.no_turndown)

    def mg_production_rule(model, t, s, tz, ts):
        yr_ts = outage_time_step(p, tz, ts)
        return (
            sum(model.MG_Production_To_Storage_kW[b, t, s, tz, ts] for b in model.STORAGE_TYPES)
            + model.MG_Curtail_kW[t, s, tz, ts]
            <=
            p.production_factor[t, yr_ts] * p.levelization_factor[t] * model.MG_Rated_Production_kW[t, s, tz, ts]
        )

    def mg_rated_production_rule(model, t, s, tz, ts):
        """Renewables run at their microgrid size; dispatchable technologies can run below it."""
        if t in no_turndown:
            return model.MG_Rated_Production_kW[t, s, tz, ts] == model.MG_Size_kW[t]
        return model.MG_Rated_Production_kW[t, s, tz, ts] <= model.MG_Size_kW[t]

    ctx.add('MG_Production_Limit', Constraint(m.MG_TECHS, m.OUTAGE_STEPS, rule=mg_production_rule))
    ctx.add('MG_Rated_Production_Size', Constraint(m.MG_TECHS, m.OUTAGE_STEPS, rule=mg_rated_production_rule))
    return ctx


def add_mg_size_constraints(ctx):
    """A technology's microgrid size is part of its size and is zero unless the technology is used in the microgrid."""
    m = ctx.m
    p = ctx.p

    def mg_size_rule(model, t):
        return model.MG_Size_kW[t] <= model.Size_kW[t]

    def mg_tech_used_rule(model, t):
        return model.MG_Size_kW[t] <= p.max_sizes[t] * model.MG_Tech_Used[t]

    ctx.add('MG_Size_Max', Constraint(m.MG_TECHS, rule=mg_size_rule))
    ctx.add('MG_Tech_Used_Size', Constraint(m.MG_TECHS, rule=mg_tech_used_rule))
    return ctx


def add_mg_storage_dispatch_constraints(ctx):
    """
    Storage state of charge during an outage starts from the state of charge at the outage start and follows
    the same recursion and limits as normal operation.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p
    s = p.storage

    def mg_initial_soc_rule(model, b, scen, tz):
        return model.MG_Stored_Energy_kWh[b, scen, tz, 0] <= model.Stored_Energy_kWh[b, tz - 1]

    def mg_soc_rule(model, b, scen, tz, ts):
        return (
            model.MG_Stored_Energy_kWh[b, scen, tz, ts]
            ==
            model.MG_Stored_Energy_kWh[b, scen, tz, ts - 1]
            + p.hours_per_timestep * (
                s.charge_efficiency[b] * sum(model.MG_Production_To_Storage_kW[b, t, scen, tz, ts]
                                             for t in model.MG_TECHS)
                - model.MG_Discharge_From_Storage_kW[b, scen, tz, ts] / s.discharge_efficiency[b]
            )
        )

    def mg_min_soc_rule(model, b, scen, tz, ts):
        return model.MG_Stored_Energy_kWh[b, scen, tz, ts] >= s.soc_min_pct[b] * model.Storage_Energy_kWh[b]

    def mg_max_soc_rule(model, b, scen, tz, ts):
        return model.MG_Stored_Energy_kWh[b, scen, tz, ts] <= model.Storage_Energy_kWh[b]

    def mg_charge_rule(model, b, scen, tz, ts):
        return (
            sum(model.MG_Production_To_Storage_kW[b, t, scen, tz, ts] for t in model.MG_TECHS)
            <=
            model.Storage_Power_kW[b]
        )

    def mg_discharge_rule(model, b, scen, tz, ts):
        return model.MG_Discharge_From_Storage_kW[b, scen, tz, ts] <= model.Storage_Power_kW[b]

    def mg_charge_used_rule(model, b, scen, tz, ts):
        return (
            sum(model.MG_Production_To_Storage_kW[b, t, scen, tz, ts] for t in model.MG_TECHS)
            <=
            s.max_kw[b] * model.MG_Storage_Used
        )

    def mg_discharge_used_rule(model, b, scen, tz, ts):
        return model.MG_Discharge_From_Storage_kW[b, scen, tz, ts] <= s.max_kw[b] * model.MG_Storage_Used

    ctx.add('MG_Initial_State_Of_Charge', Constraint(m.STORAGE_TYPES, m.OUTAGE_STARTS, rule=mg_initial_soc_rule))
    ctx.add('MG_State_Of_Charge', Constraint(m.STORAGE_TYPES, m.OUTAGE_STEPS, rule=mg_soc_rule))
    ctx.add('MG_Min_State_Of_Charge', Constraint(m.STORAGE_TYPES, m.OUTAGE_STEPS, rule=mg_min_soc_rule))
    ctx.add('MG_Max_State_Of_Charge', Constraint(m.STORAGE_TYPES, m.OUTAGE_STEPS, rule=mg_max_soc_rule))
    ctx.add('MG_Storage_Charge_Power', Constraint(m.STORAGE_TYPES, m.OUTAGE_STEPS, rule=mg_charge_rule))
    ctx.add('MG_Storage_Discharge_Power', Constraint(m.STORAGE_TYPES, m.OUTAGE_STEPS, rule=mg_discharge_rule))
    ctx.add('MG_Storage_Charge_Used', Constraint(m.STORAGE_TYPES, m.OUTAGE_STEPS, rule=mg_charge_used_rule))
    ctx.add('MG_Storage_Discharge_Used', Constraint(m.STORAGE_TYPES, m.OUTAGE_STEPS, rule=mg_discharge_used_rule))
    return ctx


def add_cannot_have_mg_with_only_pvwind_constraints(ctx):
    """PV and wind can only be part of the microgrid together with storage or a generator."""
    m = ctx.m
    p = ctx.p
    renewables = [t for t in p.techs.mg if t in p.techs.no_turndown]

    def renewables_need_firm_rule(model, t):
        if t not in renewables:
            return Constraint.Skip
        return (
            model.MG_Tech_Used[t]
            <=
            model.MG_Storage_Used + sum(model.MG_Tech_Used[g] for g in model.MG_GEN_TECHS)
        )

    ctx.add('MG_Renewables_Need_Storage_Or_Generator', Constraint(m.MG_TECHS, rule=renewables_need_firm_rule))
    return ctx


def add_mg_fuel_burn_constraints(ctx):
    """
    Generator fuel burned during each outage, limited by the fuel available, and the expected cost of the
    fuel burned in the longest-burning outage of each scenario.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p
    gens = {t: p.tech_objects[t] for t in p.techs.gen}

    def mg_fuel_used_rule(model, t, scen, tz):
        return (
            model.MG_Fuel_Used[t, scen, tz]
            >=
            p.hours_per_timestep * sum(
                gens[t].fuel_slope_gal_per_kwh * model.MG_Rated_Production_kW[t, scen, tz, ts]
                + gens[t].fuel_intercept_gal_per_hr * model.MG_Gen_Is_On[t, scen, tz, ts]
                for ts in p.outage_time_steps if ts <= p.outage_durations[scen]
            )
        )

    def mg_fuel_avail_rule(model, scen, tz):
        return (
            sum(model.MG_Fuel_Used[t, scen, tz] for t in model.MG_GEN_TECHS)
            <=
            sum(gens[t].fuel_avail_gal for t in model.MG_GEN_TECHS)
        )

    def mg_max_fuel_usage_rule(model, scen, tz):
        return model.MG_Max_Fuel_Usage[scen] >= sum(model.MG_Fuel_Used[t, scen, tz] for t in model.MG_GEN_TECHS)

    fuel_cost_per_gal = max(p.fuel_cost_per_unit[t] for t in p.techs.gen)

    def mg_max_fuel_cost_rule(model, scen):
        return model.MG_Max_Fuel_Cost[scen] == fuel_cost_per_gal * model.MG_Max_Fuel_Usage[scen]

    ctx.add('MG_Fuel_Burn', Constraint(m.MG_GEN_TECHS, m.OUTAGE_STARTS, rule=mg_fuel_used_rule))
    ctx.add('MG_Fuel_Available', Constraint(m.OUTAGE_STARTS, rule=mg_fuel_avail_rule))
    ctx.add('MG_Max_Fuel_Usage_Floor', Constraint(m.OUTAGE_STARTS, rule=mg_max_fuel_usage_rule))
    ctx.add('MG_Max_Fuel_Cost_Definition', Constraint(m.OUTAGE_SCENARIOS, rule=mg_max_fuel_cost_rule))
    ctx.add('Expected_MG_Fuel_Used', Expression(expr=sum(
        p.outage_probabilities[scen] * m.MG_Max_Fuel_Usage[scen] for scen in m.OUTAGE_SCENARIOS
    )))
    ctx.add('Expected_MG_Fuel_Cost', Expression(expr=sum(
        p.outage_probabilities[scen] * m.MG_Max_Fuel_Cost[scen] for scen in m.OUTAGE_SCENARIOS
    )))
    return ctx


def add_mg_gen_is_on_constraints(ctx):
    """The microgrid generator only produces while on, respects its minimum turn down, and is then in use."""
    m = ctx.m
    p = ctx.p
    gens = {t: p.tech_objects[t] for t in p.techs.gen}

    def mg_gen_off_rule(model, t, scen, tz, ts):
        return model.MG_Rated_Production_kW[t, scen, tz, ts] <= p.max_sizes[t] * model.MG_Gen_Is_On[t, scen, tz, ts]

    def mg_gen_min_turn_down_rule(model, t, scen, tz, ts):
        return (
            gens[t].min_turn_down_pct * model.MG_Size_kW[t] - model.MG_Rated_Production_kW[t, scen, tz, ts]
            <=
            p.max_sizes[t] * (1 - model.MG_Gen_Is_On[t, scen, tz, ts])
        )

    def mg_gen_used_rule(model, t, scen, tz, ts):
        return model.MG_Tech_Used[t] >= model.MG_Gen_Is_On[t, scen, tz, ts]

    ctx.add('MG_Gen_Is_Off', Constraint(m.MG_GEN_TECHS, m.OUTAGE_STEPS, rule=mg_gen_off_rule))
    ctx.add('MG_Gen_Min_Turn_Down', Constraint(m.MG_GEN_TECHS, m.OUTAGE_STEPS, rule=mg_gen_min_turn_down_rule))
    ctx.add('MG_Gen_Used', Constraint(m.MG_GEN_TECHS, m.OUTAGE_STEPS, rule=mg_gen_used_rule))
    return ctx


def add_min_hours_crit_ld_met_constraint(ctx):
    """The critical load is fully served for the first min_resil_timesteps of every outage."""
    m = ctx.m
    p = ctx.p
    for (s, tz, ts) in m.OUTAGE_STEPS:
        if ts <= p.min_resil_timesteps:
            m.Unserved_Load_kW[s, tz, ts].fix(0)
    return ctx


def add_outage_constraints(ctx):
    """
    All microgrid constraints, and the outage costs added to the running cost terms.
    :param ctx: BuildContext
    :return: BuildContext
    """
    p = ctx.p

    ctx = add_unserved_load_constraints(ctx)
    ctx = add_outage_cost_constraints(ctx)
    ctx = add_mg_production_constraints(ctx)
    ctx = add_mg_storage_dispatch_constraints(ctx)
    ctx = add_cannot_have_mg_with_only_pvwind_constraints(ctx)
    ctx = add_mg_size_constraints(ctx)

    if len(p.techs.gen) > 0:
        ctx = add_mg_fuel_burn_constraints(ctx)
        ctx = add_mg_gen_is_on_constraints(ctx)
    else:
        ctx.add('Expected_MG_Fuel_Used', Expression(expr=0.0))
        ctx.add('Expected_MG_Fuel_Cost', Expression(expr=0.0))

    if p.min_resil_timesteps > 0:
        ctx = add_min_hours_crit_ld_met_constraint(ctx)

    m = ctx.m
    ctx.add_cost('outage', 'expected_outage_cost', m.Expected_Outage_Cost)
    ctx.add_cost('outage', 'mg_tech_upgrade', m.MG_Tech_Upgrade_Cost)
    ctx.add_cost('outage', 'mg_storage_upgrade', m.MG_Storage_Upgrade_Cost)
    ctx.add_cost('outage', 'mg_fuel', m.Expected_MG_Fuel_Cost)
    return ctx
