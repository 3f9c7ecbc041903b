"""
Technology sizing, production, load balance, fuel-burning and thermal constraints.

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

from pyomo.environ import Set, Var, Constraint, Binary, NonNegativeReals

from deropt.variables import binary_warning


def tech_exports(model, p, t, ts):
    """Power exported by technology t in time step ts, summed over its export bins."""
    if not hasattr(model, 'Production_To_Grid_kW'):
        return 0
    return sum(model.Production_To_Grid_kW[t, u, ts] for u in p.export_bins_by_tech[t])


def add_production_constraints(ctx):
    """
    Production sent to storage, curtailed or exported cannot exceed the available production.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p

    def production_rule(model, t, ts):
        return (
            sum(model.Production_To_Storage_kW[b, t, ts] for b in model.STORAGE_TYPES)
            + model.Curtail_kW[t, ts]
            + tech_exports(model, p, t, ts)
            <=
            p.production_factor[t, ts] * p.levelization_factor[t] * model.Rated_Production_kW[t, ts]
        )

    ctx.add('Production_Limit', Constraint(m.ELEC_TECHS, m.TIME_STEPS, rule=production_rule))
    return ctx


def add_tech_size_constraints(ctx):
    """
    Size bounds, the purchased size beyond existing capacity, PV siting limits, and the link between
    rated production and size.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p

    def size_max_rule(model, t):
        return model.Size_kW[t] <= p.max_sizes[t]

    def size_min_rule(model, t):
        return model.Size_kW[t] >= p.min_sizes[t]

    def purchase_size_rule(model, t):
        return model.Purchase_Size_kW[t] >= model.Size_kW[t] - p.existing_sizes[t]

    ctx.add('Tech_Size_Max', Constraint(m.TECHS, rule=size_max_rule))
    ctx.add('Tech_Size_Min', Constraint(m.TECHS, rule=size_min_rule))
    ctx.add('Tech_Purchase_Size', Constraint(m.TECHS, rule=purchase_size_rule))

    constrained_locations = [
        loc for loc in p.pv_locations
        if p.maxsize_pv_locations.get(loc) is not None
        and any(p.pv_to_location[t, loc] == 1 for t in p.techs.pv)
    ]
    ctx.add('CONSTRAINED_PV_LOCATIONS', Set(initialize=constrained_locations, ordered=True))

    def pv_location_rule(model, loc):
        return (
            sum(p.pv_to_location[t, loc] * model.Size_kW[t] for t in model.PV_TECHS)
            <=
            p.maxsize_pv_locations[loc]
        )

    ctx.add('PV_Location_Size_Max', Constraint(m.CONSTRAINED_PV_LOCATIONS, rule=pv_location_rule))

    no_turndown = set(p.techs.no_turndown)

    def rated_production_rule(model, t, ts):
        """Technologies without turn down always produce at their size; the rest can produce up to their size."""
        if t in no_turndown:
            return model.Rated_Production_kW[t, ts] == model.Size_kW[t]
        return model.Rated_Production_kW[t, ts] <= model.Size_kW[t]

    ctx.add('Rated_Production_Size', Constraint(m.ELEC_TECHS, m.TIME_STEPS, rule=rated_production_rule))

    return ctx


def add_no_curtail_constraints(ctx):
    m = ctx.m
    for t in ctx.p.techs.no_curtail:
        if t in m.ELEC_TECHS:
            for ts in m.TIME_STEPS:
                m.Curtail_kW[t, ts].fix(0)
    return ctx


def add_elec_load_balance_constraints(ctx):
    """
    Electric load balance in every time step. Without the grid (deterministic outage) only the critical
    load is served and nothing is bought from or exported to the grid.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p
    with_grid = set(p.time_steps_with_grid)

    for ts in p.time_steps_without_grid:
        for tier in m.ENERGY_TIERS:
            m.Grid_Purchase_kW[ts, tier].fix(0)
        if hasattr(m, 'Production_To_Grid_kW'):
            for (t, u) in m.TECH_EXPORT_BINS:
                m.Production_To_Grid_kW[t, u, ts].fix(0)

    def load_balance_rule(model, ts):
        """
        Production, storage discharge and grid purchases serve the load, storage charging, curtailment
        and exports.
        :param model:
        :param ts:
        :return:
        """
        supply = (
            sum(p.production_factor[t, ts] * p.levelization_factor[t] * model.Rated_Production_kW[t, ts]
                for t in model.ELEC_TECHS)
            + sum(model.Discharge_From_Storage_kW[b, ts] for b in model.STORAGE_TYPES)
        )
        demand = (
            sum(model.Production_To_Storage_kW[b, t, ts] for b in model.STORAGE_TYPES for t in model.ELEC_TECHS)
            + sum(model.Curtail_kW[t, ts] for t in model.ELEC_TECHS)
        )
        if ts in with_grid:
            supply += sum(model.Grid_Purchase_kW[ts, tier] for tier in model.ENERGY_TIERS)
            demand += (
                sum(tech_exports(model, p, t, ts) for t in model.ELEC_TECHS)
                + sum(model.Grid_To_Storage_kW[b, ts] for b in model.STORAGE_TYPES)
                + float(p.elec_load[ts - 1])
            )
        else:
            demand += float(p.critical_load[ts - 1])
        return supply == demand

    ctx.add('Elec_Load_Balance', Constraint(m.TIME_STEPS, rule=load_balance_rule))
    return ctx


def add_gen_constraints(ctx):
    """
    Generator fuel burn, fuel availability, on/off status and minimum turn down.
    Adds the generator's production O&M and fuel costs to the running cost terms.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p
    gens = {t: p.tech_objects[t] for t in p.techs.gen}
    with_grid = set(p.time_steps_with_grid)

    def fuel_burn_rule(model, t, ts):
        return (
            model.Fuel_Usage[t, ts]
            ==
            gens[t].fuel_slope_gal_per_kwh * p.production_factor[t, ts] * p.hours_per_timestep
            * model.Rated_Production_kW[t, ts]
            + gens[t].fuel_intercept_gal_per_hr * p.hours_per_timestep * model.Gen_Is_On[t, ts]
        )

    def fuel_avail_rule(model, t):
        return sum(model.Fuel_Usage[t, ts] for ts in model.TIME_STEPS) <= gens[t].fuel_avail_gal

    def gen_off_rule(model, t, ts):
        return model.Rated_Production_kW[t, ts] <= p.max_sizes[t] * model.Gen_Is_On[t, ts]

    def gen_min_turn_down_rule(model, t, ts):
        return (
            gens[t].min_turn_down_pct * model.Size_kW[t] - model.Rated_Production_kW[t, ts]
            <=
            p.max_sizes[t] * (1 - model.Gen_Is_On[t, ts])
        )

    ctx.add('Gen_Fuel_Burn', Constraint(m.GEN_TECHS, m.TIME_STEPS, rule=fuel_burn_rule))
    ctx.add('Gen_Fuel_Available', Constraint(m.GEN_TECHS, rule=fuel_avail_rule))
    ctx.add('Gen_Is_Off', Constraint(m.GEN_TECHS, m.TIME_STEPS, rule=gen_off_rule))
    ctx.add('Gen_Min_Turn_Down', Constraint(m.GEN_TECHS, m.TIME_STEPS, rule=gen_min_turn_down_rule))

    for t, gen in gens.items():
        if gen.only_runs_during_grid_outage:
            for ts in with_grid:
                m.Rated_Production_kW[t, ts].fix(0)
                m.Gen_Is_On[t, ts].fix(0)

    ctx.add_cost('production_om', 'generator', p.third_party_factor * p.pwf_om * sum(
        p.om_cost_per_kwh[t] * p.hours_per_timestep * m.Rated_Production_kW[t, ts]
        for t in m.GEN_TECHS for ts in m.TIME_STEPS
    ))
    ctx.add_cost('fuel', 'generator', sum(
        p.pwf_fuel[t] * p.fuel_cost_per_unit[t] * sum(m.Fuel_Usage[t, ts] for ts in m.TIME_STEPS)
        for t in m.GEN_TECHS
    ))
    return ctx


def add_chp_constraints(ctx):
    """
    CHP fuel burn and thermal production as linear functions of electric production with an intercept
    that applies while the unit is on, supplementary firing, minimum turn down, and CHP costs.
    Fuel is modeled in kWh of fuel energy.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p
    chps = {t: p.tech_objects[t] for t in p.techs.chp}
    with_grid = set(p.time_steps_with_grid)

    def supplementary_fuel(model, t, ts):
        return p.hours_per_timestep * model.Supplementary_Thermal_Production_kW[t, ts] \
               / chps[t].supplementary_firing_efficiency

    def fuel_burn_rule(model, t, ts):
        return (
            model.Fuel_Usage[t, ts]
            >=
            p.hours_per_timestep * p.chp_fuel_burn_slope[t] * model.Rated_Production_kW[t, ts]
            + supplementary_fuel(model, t, ts)
        )

    def fuel_burn_intercept_rule(model, t, ts):
        """The fuel burn intercept applies to the whole size while the unit is on."""
        if p.chp_fuel_burn_intercept[t] <= 1.0e-7:
            return Constraint.Skip
        return (
            model.Fuel_Usage[t, ts]
            >=
            p.hours_per_timestep * (
                p.chp_fuel_burn_slope[t] * model.Rated_Production_kW[t, ts]
                + p.chp_fuel_burn_intercept[t] * (model.Size_kW[t] - p.max_sizes[t] * (1 - model.CHP_Is_On[t, ts]))
            )
            + supplementary_fuel(model, t, ts)
        )

    ctx.add('CHP_Fuel_Burn', Constraint(m.CHP_TECHS, m.TIME_STEPS, rule=fuel_burn_rule))
    ctx.add('CHP_Fuel_Burn_Intercept', Constraint(m.CHP_TECHS, m.TIME_STEPS, rule=fuel_burn_intercept_rule))

    def thermal_size_rule(model, t, ts):
        return (
            model.Thermal_Production_kW[t, ts]
            <=
            p.chp_thermal_prod_slope[t] * model.Rated_Production_kW[t, ts]
            + p.chp_thermal_prod_intercept[t] * model.Size_kW[t]
        )

    def thermal_on_rule(model, t, ts):
        return (
            model.Thermal_Production_kW[t, ts]
            <=
            p.chp_thermal_prod_slope[t] * model.Rated_Production_kW[t, ts]
            + p.chp_thermal_prod_intercept[t] * p.max_sizes[t] * model.CHP_Is_On[t, ts]
        )

    ctx.add('CHP_Thermal_Production_Size', Constraint(m.CHP_TECHS, m.TIME_STEPS, rule=thermal_size_rule))
    ctx.add('CHP_Thermal_Production_On', Constraint(m.CHP_TECHS, m.TIME_STEPS, rule=thermal_on_rule))

    def supp_firing_size_rule(model, t):
        return model.Supplementary_Firing_Size_kW[t] <= model.Size_kW[t]

    def supp_thermal_size_rule(model, t, ts):
        return (
            model.Supplementary_Thermal_Production_kW[t, ts]
            <=
            (chps[t].supplementary_firing_max_steam_ratio - 1.0) * p.chp_thermal_prod_full_load[t]
            * model.Supplementary_Firing_Size_kW[t]
        )

    def supp_thermal_on_rule(model, t, ts):
        return (
            model.Supplementary_Thermal_Production_kW[t, ts]
            <=
            (chps[t].supplementary_firing_max_steam_ratio - 1.0) * p.chp_thermal_prod_full_load[t]
            * p.max_sizes[t] * model.CHP_Is_On[t, ts]
        )

    ctx.add('CHP_Supplementary_Firing_Size', Constraint(m.CHP_TECHS, rule=supp_firing_size_rule))
    ctx.add('CHP_Supplementary_Thermal_Size', Constraint(m.CHP_TECHS, m.TIME_STEPS, rule=supp_thermal_size_rule))
    ctx.add('CHP_Supplementary_Thermal_On', Constraint(m.CHP_TECHS, m.TIME_STEPS, rule=supp_thermal_on_rule))

    def chp_off_rule(model, t, ts):
        return model.Rated_Production_kW[t, ts] <= p.max_sizes[t] * model.CHP_Is_On[t, ts]

    def chp_min_turn_down_rule(model, t, ts):
        if ts not in with_grid:
            return Constraint.Skip
        return (
            model.Rated_Production_kW[t, ts]
            >=
            chps[t].min_turn_down_pct * model.Size_kW[t] - p.max_sizes[t] * (1 - model.CHP_Is_On[t, ts])
        )

    ctx.add('CHP_Is_Off', Constraint(m.CHP_TECHS, m.TIME_STEPS, rule=chp_off_rule))
    ctx.add('CHP_Min_Turn_Down', Constraint(m.CHP_TECHS, m.TIME_STEPS, rule=chp_min_turn_down_rule))

    hourly_om_techs = [t for t in p.techs.chp if chps[t].om_cost_per_hr_per_kw_rated > 1.0e-7]
    ctx.add('CHP_HOURLY_OM_TECHS', Set(initialize=hourly_om_techs, ordered=True))
    ctx.add('CHP_Hourly_OM_Size_kW', Var(m.CHP_HOURLY_OM_TECHS, m.TIME_STEPS, within=NonNegativeReals,
                                         doc="size of a CHP unit while it is on, zero while it is off"))

    def hourly_om_size_rule(model, t, ts):
        return model.CHP_Hourly_OM_Size_kW[t, ts] >= model.Size_kW[t] - p.max_sizes[t] * (1 - model.CHP_Is_On[t, ts])

    ctx.add('CHP_Hourly_OM_Size', Constraint(m.CHP_HOURLY_OM_TECHS, m.TIME_STEPS, rule=hourly_om_size_rule))

    ctx.add_cost('production_om', 'chp', p.third_party_factor * p.pwf_om * sum(
        p.om_cost_per_kwh[t] * p.hours_per_timestep * m.Rated_Production_kW[t, ts]
        for t in m.CHP_TECHS for ts in m.TIME_STEPS
    ))
    ctx.add_cost('hourly_om', 'chp', p.third_party_factor * p.pwf_om * sum(
        chps[t].om_cost_per_hr_per_kw_rated * p.hours_per_timestep * m.CHP_Hourly_OM_Size_kW[t, ts]
        for t in m.CHP_HOURLY_OM_TECHS for ts in m.TIME_STEPS
    ))
    ctx.add_cost('fuel', 'chp', sum(
        p.pwf_fuel[t] * p.fuel_cost_per_unit[t] * sum(m.Fuel_Usage[t, ts] for ts in m.TIME_STEPS)
        for t in m.CHP_TECHS
    ))
    ctx.add_cost('chp_standby', 'chp', sum(
        p.pwf_e * 12 * chps[t].standby_rate_per_kw_per_month * m.Size_kW[t]
        for t in m.CHP_TECHS if chps[t].standby_rate_per_kw_per_month > 1.0e-7
    ))
    ctx.add_cost('tech_capital', 'chp_supplementary_firing', sum(
        chps[t].supplementary_firing_capital_cost_per_kw * m.Supplementary_Firing_Size_kW[t]
        for t in m.CHP_TECHS
    ))
    return ctx


def add_boiler_tech_constraints(ctx):
    m = ctx.m
    p = ctx.p

    def boiler_fuel_rule(model, t, ts):
        return (
            model.Fuel_Usage[t, ts]
            ==
            p.hours_per_timestep * model.Thermal_Production_kW[t, ts] / p.boiler_efficiency[t]
        )

    def boiler_size_rule(model, t, ts):
        return model.Thermal_Production_kW[t, ts] <= model.Size_kW[t]

    ctx.add('Boiler_Fuel_Burn', Constraint(m.BOILER_TECHS, m.TIME_STEPS, rule=boiler_fuel_rule))
    ctx.add('Boiler_Thermal_Production_Size', Constraint(m.BOILER_TECHS, m.TIME_STEPS, rule=boiler_size_rule))

    ctx.add_cost('fuel', 'boiler', sum(
        p.pwf_fuel[t] * p.fuel_cost_per_unit[t] * sum(m.Fuel_Usage[t, ts] for ts in m.TIME_STEPS)
        for t in m.BOILER_TECHS
    ))
    return ctx


def add_thermal_load_constraints(ctx):
    """CHP heat that is not wasted plus boiler heat serves the heating load."""
    m = ctx.m
    p = ctx.p

    def thermal_load_rule(model, ts):
        return (
            sum(model.Thermal_Production_kW[t, ts] + model.Supplementary_Thermal_Production_kW[t, ts]
                - model.Thermal_Waste_kW[t, ts] for t in model.CHP_TECHS)
            + sum(model.Thermal_Production_kW[t, ts] for t in model.BOILER_TECHS)
            ==
            float(p.heating_load[ts - 1])
        )

    ctx.add('Thermal_Load_Balance', Constraint(m.TIME_STEPS, rule=thermal_load_rule))
    return ctx


def add_prod_incent_vars_and_constraints(ctx):
    """
    Production based incentives, limited by a maximum benefit and available only to systems no larger
    than the incentive's size limit.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p

    binary_warning("production based incentives")
    ctx.add('PBI_TECHS', Set(initialize=p.techs.pbi, ordered=True))
    ctx.add('Production_Incentive', Var(m.PBI_TECHS, within=NonNegativeReals))
    ctx.add('Prod_Incent_Eligible', Var(m.PBI_TECHS, within=Binary))

    def max_benefit_rule(model, t):
        return (
            model.Production_Incentive[t]
            <=
            model.Prod_Incent_Eligible[t] * p.max_production_incentive[t] * p.pwf_prod_incent[t]
            * p.third_party_factor
        )

    def production_rule(model, t):
        return (
            model.Production_Incentive[t]
            <=
            p.hours_per_timestep * p.production_incentive_rate[t] * p.pwf_prod_incent[t] * p.third_party_factor
            * sum(p.production_factor[t, ts] * model.Rated_Production_kW[t, ts] for ts in model.TIME_STEPS)
        )

    def size_rule(model, t):
        return (
            model.Size_kW[t]
            <=
            p.max_size_for_prod_incent[t] + p.max_sizes[t] * (1 - model.Prod_Incent_Eligible[t])
        )

    ctx.add('Production_Incentive_Max_Benefit', Constraint(m.PBI_TECHS, rule=max_benefit_rule))
    ctx.add('Production_Incentive_Production', Constraint(m.PBI_TECHS, rule=production_rule))
    ctx.add('Production_Incentive_Size', Constraint(m.PBI_TECHS, rule=size_rule))

    ctx.add_cost('production_incentive', 'pbi', sum(m.Production_Incentive[t] for t in m.PBI_TECHS))
    return ctx
