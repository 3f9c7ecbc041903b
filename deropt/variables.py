"""
Decision variables and the index sets they are declared on.

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


def binary_warning(what):
    print("WARNING: Adding binary variable(s) to model {}. Some solvers are very slow with integer variables."
          .format(what))


def add_sets(ctx):
    """
    Index sets shared by the variables and constraints of one site.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p

    # Temporal resolution
    m.TIME_STEPS = Set(initialize=p.time_steps, ordered=True, doc="dispatch time steps")
    m.SOC_TIME_STEPS = Set(initialize=[0] + p.time_steps, ordered=True,
                           doc="state of charge time steps, including the initial state")
    m.MONTHS = Set(initialize=p.months, ordered=True)
    m.RATCHETS = Set(initialize=p.ratchets, ordered=True, doc="time-of-use demand ratchets")

    # Technologies
    m.TECHS = Set(initialize=p.techs.all, ordered=True)
    m.ELEC_TECHS = Set(initialize=p.techs.elec, ordered=True)
    m.PV_TECHS = Set(initialize=p.techs.pv, ordered=True)
    m.GEN_TECHS = Set(initialize=p.techs.gen, ordered=True)
    m.CHP_TECHS = Set(initialize=p.techs.chp, ordered=True)
    m.BOILER_TECHS = Set(initialize=p.techs.boiler, ordered=True)
    m.THERMAL_TECHS = Set(initialize=p.techs.thermal, ordered=True)
    m.FUEL_BURNING_TECHS = Set(initialize=p.techs.fuel_burning, ordered=True)

    # Storage
    m.STORAGE_TYPES = Set(initialize=p.storage.types, ordered=True)

    # Tariff
    m.ENERGY_TIERS = Set(initialize=p.energy_tiers, ordered=True)
    m.MONTHLY_DEMAND_TIERS = Set(initialize=p.monthly_demand_tiers, ordered=True)
    m.TOU_DEMAND_TIERS = Set(initialize=p.tou_demand_tiers, ordered=True)
    m.EXPORT_BINS = Set(initialize=p.export_bins, ordered=True)
    m.TECH_EXPORT_BINS = Set(dimen=2, initialize=p.tech_export_bins, ordered=True,
                             doc="(technology, export bin) pairs the technology may export in")

    return ctx


def add_variables(ctx):
    """
    Every decision variable of one site. Variables that only matter for optional technologies or
    features are added only when those are present.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p

    m.Size_kW = Var(m.TECHS, within=NonNegativeReals)
    m.Purchase_Size_kW = Var(m.TECHS, within=NonNegativeReals, doc="size beyond existing_kw that is purchased")
    m.Grid_Purchase_kW = Var(m.TIME_STEPS, m.ENERGY_TIERS, within=NonNegativeReals)
    m.Rated_Production_kW = Var(m.ELEC_TECHS, m.TIME_STEPS, within=NonNegativeReals)
    m.Curtail_kW = Var(m.ELEC_TECHS, m.TIME_STEPS, within=NonNegativeReals)
    m.Production_To_Storage_kW = Var(m.STORAGE_TYPES, m.ELEC_TECHS, m.TIME_STEPS, within=NonNegativeReals)
    m.Discharge_From_Storage_kW = Var(m.STORAGE_TYPES, m.TIME_STEPS, within=NonNegativeReals)
    m.Grid_To_Storage_kW = Var(m.STORAGE_TYPES, m.TIME_STEPS, within=NonNegativeReals)
    m.Stored_Energy_kWh = Var(m.STORAGE_TYPES, m.SOC_TIME_STEPS, within=NonNegativeReals)
    m.Storage_Power_kW = Var(m.STORAGE_TYPES, within=NonNegativeReals)
    m.Storage_Energy_kWh = Var(m.STORAGE_TYPES, within=NonNegativeReals)
    m.Peak_Demand_TOU_kW = Var(m.RATCHETS, m.TOU_DEMAND_TIERS, within=NonNegativeReals)
    m.Peak_Demand_Month_kW = Var(m.MONTHS, m.MONTHLY_DEMAND_TIERS, within=NonNegativeReals)
    m.Min_Charge_Adder = Var(within=NonNegativeReals)

    if len(p.techs.gen) > 0:
        binary_warning("the generator")
        m.Gen_Is_On = Var(m.GEN_TECHS, m.TIME_STEPS, within=Binary)

    if len(p.techs.fuel_burning) > 0:
        m.Fuel_Usage = Var(m.FUEL_BURNING_TECHS, m.TIME_STEPS, within=NonNegativeReals)

    if len(p.export_bins) > 0:
        m.Production_To_Grid_kW = Var(m.TECH_EXPORT_BINS, m.TIME_STEPS, within=NonNegativeReals)

        if not p.allow_simultaneous_export_import:
            binary_warning("the exclusion of simultaneous import and export")
            m.No_Grid_Purchases = Var(m.TIME_STEPS, within=Binary)

    if len(p.techs.thermal) > 0:
        m.Thermal_Production_kW = Var(m.THERMAL_TECHS, m.TIME_STEPS, within=NonNegativeReals)

    if len(p.techs.chp) > 0:
        binary_warning("CHP on/off operation")
        m.CHP_Is_On = Var(m.CHP_TECHS, m.TIME_STEPS, within=Binary)
        m.Supplementary_Thermal_Production_kW = Var(m.CHP_TECHS, m.TIME_STEPS, within=NonNegativeReals)
        m.Supplementary_Firing_Size_kW = Var(m.CHP_TECHS, within=NonNegativeReals)
        m.Thermal_Waste_kW = Var(m.CHP_TECHS, m.TIME_STEPS, within=NonNegativeReals)

    if len(p.outage_scenarios) > 0:
        binary_warning("microgrid operation during outages")
        add_outage_variables(ctx)

    return ctx


def add_outage_variables(ctx):
    """
    Parallel microgrid variables for every stochastic outage, indexed by
    (scenario, outage start time step, time step into the outage).
    """
    m = ctx.m
    p = ctx.p

    m.OUTAGE_SCENARIOS = Set(initialize=p.outage_scenarios, ordered=True)
    m.OUTAGE_START_TIME_STEPS = Set(initialize=p.outage_start_time_steps, ordered=True)
    m.OUTAGE_TIME_STEPS = Set(initialize=p.outage_time_steps, ordered=True)
    m.MG_TECHS = Set(initialize=p.techs.mg, ordered=True)
    m.MG_GEN_TECHS = Set(initialize=[t for t in p.techs.mg if t in p.techs.gen], ordered=True)

    # only the time steps within each scenario's outage duration are modeled
    m.OUTAGE_STEPS = Set(
        dimen=3, ordered=True,
        initialize=[(s, tz, ts) for s in p.outage_scenarios for tz in p.outage_start_time_steps
                    for ts in p.outage_time_steps if ts <= p.outage_durations[s]]
    )
    m.OUTAGE_SOC_STEPS = Set(
        dimen=3, ordered=True,
        initialize=[(s, tz, ts) for s in p.outage_scenarios for tz in p.outage_start_time_steps
                    for ts in [0] + p.outage_time_steps if ts <= p.outage_durations[s]]
    )
    m.OUTAGE_STARTS = Set(dimen=2, ordered=True,
                          initialize=[(s, tz) for s in p.outage_scenarios for tz in p.outage_start_time_steps])

    m.Unserved_Load_kW = Var(m.OUTAGE_STEPS, within=NonNegativeReals)
    m.MG_Rated_Production_kW = Var(m.MG_TECHS, m.OUTAGE_STEPS, within=NonNegativeReals)
    m.MG_Production_To_Storage_kW = Var(m.STORAGE_TYPES, m.MG_TECHS, m.OUTAGE_STEPS, within=NonNegativeReals)
    m.MG_Discharge_From_Storage_kW = Var(m.STORAGE_TYPES, m.OUTAGE_STEPS, within=NonNegativeReals)
    m.MG_Curtail_kW = Var(m.MG_TECHS, m.OUTAGE_STEPS, within=NonNegativeReals)
    m.MG_Stored_Energy_kWh = Var(m.STORAGE_TYPES, m.OUTAGE_SOC_STEPS, within=NonNegativeReals)
    m.MG_Size_kW = Var(m.MG_TECHS, within=NonNegativeReals)
    m.MG_Tech_Used = Var(m.MG_TECHS, within=Binary)
    m.MG_Storage_Used = Var(within=Binary)
    m.Max_Outage_Cost = Var(m.OUTAGE_SCENARIOS, within=NonNegativeReals)
    m.MG_Tech_Upgrade_Cost = Var(within=NonNegativeReals)
    m.MG_Storage_Upgrade_Cost = Var(within=NonNegativeReals)

    m.MG_Gen_Is_On = Var(m.MG_GEN_TECHS, m.OUTAGE_STEPS, within=Binary)
    m.MG_Fuel_Used = Var(m.MG_GEN_TECHS, m.OUTAGE_STARTS, within=NonNegativeReals)
    m.MG_Max_Fuel_Usage = Var(m.OUTAGE_SCENARIOS, within=NonNegativeReals)
    m.MG_Max_Fuel_Cost = Var(m.OUTAGE_SCENARIOS, within=NonNegativeReals)


def add_bounds(ctx):
    """
    Explicit non-negativity constraints for every continuous variable of a block.
    Multi-node blocks carry these in addition to the declared domains.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m

    for v in list(m.component_objects(Var, descend_into=False)):
        if any(vardata.is_binary() for vardata in v.values()):
            continue
        name = v.local_name + '_Nonnegative'
        if v.is_indexed():
            def nonnegative_rule(model, *idx, var=v):
                return -1 * var[idx[0] if len(idx) == 1 else idx] <= 0
            m.add_component(name, Constraint(v.index_set(), rule=nonnegative_rule))
        else:
            m.add_component(name, Constraint(expr=-1 * v <= 0))
    return ctx
