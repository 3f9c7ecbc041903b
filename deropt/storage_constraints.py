"""
Storage sizing and dispatch constraints.

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

from pyomo.environ import Set, Constraint


def fix_storage_to_zero(ctx, b):
    """
    Fix every variable of storage type b to zero.
    :param ctx: BuildContext
    :param b: storage type
    :return: BuildContext
    """
    m = ctx.m
    m.Storage_Power_kW[b].fix(0)
    m.Storage_Energy_kWh[b].fix(0)
    for ts in m.SOC_TIME_STEPS:
        m.Stored_Energy_kWh[b, ts].fix(0)
    for ts in m.TIME_STEPS:
        m.Discharge_From_Storage_kW[b, ts].fix(0)
        m.Grid_To_Storage_kW[b, ts].fix(0)
        for t in m.ELEC_TECHS:
            m.Production_To_Storage_kW[b, t, ts].fix(0)
    return ctx


def add_storage_constraints(ctx):
    """
    Size limits, state of charge recursion and power limits for every storage type.
    A storage type without power or energy capacity is fixed to zero and gets no dispatch constraints.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p
    s = p.storage

    nonzero = []
    for b in s.types:
        if s.max_kw[b] == 0 or s.max_kwh[b] == 0:
            ctx = fix_storage_to_zero(ctx, b)
        else:
            nonzero.append(b)
    ctx.add('NONZERO_STORAGE_TYPES', Set(initialize=nonzero, ordered=True))

    with_grid = set(p.time_steps_with_grid)
    for b in nonzero:
        for ts in p.time_steps_without_grid:
            m.Grid_To_Storage_kW[b, ts].fix(0)
        if b not in s.can_grid_charge:
            for ts in p.time_steps:
                m.Grid_To_Storage_kW[b, ts].fix(0)

    def storage_power_min_rule(model, b):
        return model.Storage_Power_kW[b] >= s.min_kw[b]

    def storage_power_max_rule(model, b):
        return model.Storage_Power_kW[b] <= s.max_kw[b]

    def storage_energy_min_rule(model, b):
        return model.Storage_Energy_kWh[b] >= s.min_kwh[b]

    def storage_energy_max_rule(model, b):
        return model.Storage_Energy_kWh[b] <= s.max_kwh[b]

    ctx.add('Storage_Power_Min', Constraint(m.NONZERO_STORAGE_TYPES, rule=storage_power_min_rule))
    ctx.add('Storage_Power_Max', Constraint(m.NONZERO_STORAGE_TYPES, rule=storage_power_max_rule))
    ctx.add('Storage_Energy_Min', Constraint(m.NONZERO_STORAGE_TYPES, rule=storage_energy_min_rule))
    ctx.add('Storage_Energy_Max', Constraint(m.NONZERO_STORAGE_TYPES, rule=storage_energy_max_rule))

    def initial_soc_rule(model, b):
        return model.Stored_Energy_kWh[b, 0] == s.soc_init_pct[b] * model.Storage_Energy_kWh[b]

    ctx.add('Initial_State_Of_Charge', Constraint(m.NONZERO_STORAGE_TYPES, rule=initial_soc_rule))

    def soc_rule(model, b, ts):
        """
        Stored energy carries over from the previous time step; charging is reduced by the charge efficiency
        and discharging draws more energy than it delivers by the discharge efficiency.
        :param model:
        :param b:
        :param ts:
        :return:
        """
        inflow = s.charge_efficiency[b] * sum(model.Production_To_Storage_kW[b, t, ts] for t in model.ELEC_TECHS)
        if ts in with_grid:
            inflow += s.grid_charge_efficiency[b] * model.Grid_To_Storage_kW[b, ts]
        return (
            model.Stored_Energy_kWh[b, ts]
            ==
            model.Stored_Energy_kWh[b, ts - 1]
            + p.hours_per_timestep * (inflow - model.Discharge_From_Storage_kW[b, ts] / s.discharge_efficiency[b])
        )

    ctx.add('State_Of_Charge', Constraint(m.NONZERO_STORAGE_TYPES, m.TIME_STEPS, rule=soc_rule))

    def min_soc_rule(model, b, ts):
        return model.Stored_Energy_kWh[b, ts] >= s.soc_min_pct[b] * model.Storage_Energy_kWh[b]

    def max_soc_rule(model, b, ts):
        return model.Stored_Energy_kWh[b, ts] <= model.Storage_Energy_kWh[b]

    ctx.add('Min_State_Of_Charge', Constraint(m.NONZERO_STORAGE_TYPES, m.TIME_STEPS, rule=min_soc_rule))
    ctx.add('Max_State_Of_Charge', Constraint(m.NONZERO_STORAGE_TYPES, m.TIME_STEPS, rule=max_soc_rule))

    def charge_power_rule(model, b, ts):
        return (
            sum(model.Production_To_Storage_kW[b, t, ts] for t in model.ELEC_TECHS)
            + model.Grid_To_Storage_kW[b, ts]
            <=
            model.Storage_Power_kW[b]
        )

    def discharge_power_rule(model, b, ts):
        return model.Discharge_From_Storage_kW[b, ts] <= model.Storage_Power_kW[b]

    ctx.add('Storage_Charge_Power', Constraint(m.NONZERO_STORAGE_TYPES, m.TIME_STEPS, rule=charge_power_rule))
    ctx.add('Storage_Discharge_Power', Constraint(m.NONZERO_STORAGE_TYPES, m.TIME_STEPS,
                                                  rule=discharge_power_rule))

    def grid_to_storage_rule(model, ts):
        """Grid charging comes out of the energy purchased from the grid."""
        if ts not in with_grid:
            return Constraint.Skip
        return (
            sum(model.Grid_Purchase_kW[ts, tier] for tier in model.ENERGY_TIERS)
            >=
            sum(model.Grid_To_Storage_kW[b, ts] for b in model.STORAGE_TYPES)
        )

    ctx.add('Grid_Purchase_Covers_Grid_To_Storage', Constraint(m.TIME_STEPS, rule=grid_to_storage_rule))

    return ctx
