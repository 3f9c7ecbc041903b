"""
Electric tariff constraints: energy tiers, demand ratchets, lookback, coincident peak, exports,
and the utility bill expressions.

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

from pyomo.environ import Set, Var, Constraint, Expression, Binary, NonNegativeReals

from deropt.variables import binary_warning


def grid_purchase(model, ts):
    return sum(model.Grid_Purchase_kW[ts, tier] for tier in model.ENERGY_TIERS)


def total_exports(model, ts):
    return sum(model.Production_To_Grid_kW[t, u, ts] for (t, u) in model.TECH_EXPORT_BINS)


def add_export_constraints(ctx):
    """
    Net metering exports are limited to the energy purchased, the net metering size limit selects between
    net metering and wholesale compensation, and exports are valued at their (negative) export rates.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p

    def nem_energy_rule(model):
        return (
            sum(model.Production_To_Grid_kW[t, 'NEM', ts] for t in p.techs_by_exportbin['NEM']
                for ts in model.TIME_STEPS)
            <=
            sum(grid_purchase(model, ts) for ts in model.TIME_STEPS)
        )

    if 'NEM' in p.export_bins:
        ctx.add('NEM_Energy_Limit', Constraint(rule=nem_energy_rule))

        nem_techs = p.techs_by_exportbin['NEM']
        max_nem_size = sum(p.max_sizes[t] for t in nem_techs)
        if max_nem_size > p.net_metering_limit_kw:
            binary_warning("the net metering size limit")
            ctx.add('Bin_NEM', Var(within=Binary, doc="1 if the site net meters, 0 if it only sells wholesale"))

            def nem_size_rule(model):
                return (
                    sum(model.Size_kW[t] for t in nem_techs)
                    <=
                    p.net_metering_limit_kw + max_nem_size * (1 - model.Bin_NEM)
                )

            def nem_export_rule(model, u, ts):
                return (
                    sum(model.Production_To_Grid_kW[t, u, ts] for t in p.techs_by_exportbin[u])
                    <=
                    p.big_m_export_kw * model.Bin_NEM
                )

            ctx.add('NEM_BINS', Set(initialize=[u for u in ('NEM', 'EXC') if u in p.export_bins], ordered=True))
            ctx.add('NEM_Size_Limit', Constraint(rule=nem_size_rule))
            ctx.add('NEM_Export_Allowed', Constraint(m.NEM_BINS, m.TIME_STEPS, rule=nem_export_rule))

    def interconnection_rule(model, ts):
        return total_exports(model, ts) <= p.interconnection_limit_kw

    if p.interconnection_limit_kw < p.max_export_kw:
        ctx.add('Interconnection_Limit', Constraint(m.TIME_STEPS, rule=interconnection_rule))

    ctx.add('Total_Export_Benefit', Expression(expr=p.pwf_e * p.hours_per_timestep * sum(
        float(p.export_rates[u][ts - 1]) * m.Production_To_Grid_kW[t, u, ts]
        for (t, u) in m.TECH_EXPORT_BINS for ts in m.TIME_STEPS
    )))
    return ctx


def add_simultaneous_export_import_constraint(ctx):
    """Within a time step the site either buys from or sells to the grid."""
    m = ctx.m
    p = ctx.p

    def no_purchase_rule(model, ts):
        return grid_purchase(model, ts) <= p.big_m_grid_kw * (1 - model.No_Grid_Purchases[ts])

    def no_export_rule(model, ts):
        return total_exports(model, ts) <= p.big_m_export_kw * model.No_Grid_Purchases[ts]

    ctx.add('No_Simultaneous_Import', Constraint(m.TIME_STEPS, rule=no_purchase_rule))
    ctx.add('No_Simultaneous_Export', Constraint(m.TIME_STEPS, rule=no_export_rule))
    return ctx


def _add_tier_constraints(ctx, prefix, periods, tiers, limits, quantity):
    """
    Tiers fill in order: a tier can only be used once the tier before it is full.
    quantity(model, period, tier) is the amount allocated to a tier in a period.
    """
    bin_name = 'Bin_{}_Tier'.format(prefix)
    ctx.add(bin_name, Var(periods, tiers, within=Binary))

    def tier_limit_rule(model, prd, tier):
        return quantity(model, prd, tier) <= limits[tier - 1] * getattr(model, bin_name)[prd, tier]

    def tier_order_rule(model, prd, tier):
        if tier == 1:
            return Constraint.Skip
        return getattr(model, bin_name)[prd, tier] <= getattr(model, bin_name)[prd, tier - 1]

    def tier_full_rule(model, prd, tier):
        if tier == 1:
            return Constraint.Skip
        return quantity(model, prd, tier - 1) >= limits[tier - 2] * getattr(model, bin_name)[prd, tier]

    ctx.add('{}_Tier_Limit'.format(prefix), Constraint(periods, tiers, rule=tier_limit_rule))
    ctx.add('{}_Tier_Order'.format(prefix), Constraint(periods, tiers, rule=tier_order_rule))
    ctx.add('{}_Tier_Full'.format(prefix), Constraint(periods, tiers, rule=tier_full_rule))
    return ctx


def add_monthly_peak_constraint(ctx):
    """The monthly peak demand, summed over tiers, is at least the grid purchase in every time step of the month."""
    m = ctx.m
    p = ctx.p

    ctx.add('MONTH_TIME_STEPS', Set(
        dimen=2, ordered=True,
        initialize=[(mth, ts) for mth in p.months for ts in p.time_steps_monthly[mth - 1]]
    ))

    def monthly_peak_rule(model, mth, ts):
        return sum(model.Peak_Demand_Month_kW[mth, tier] for tier in model.MONTHLY_DEMAND_TIERS) \
               >= grid_purchase(model, ts)

    ctx.add('Monthly_Peak_Demand', Constraint(m.MONTH_TIME_STEPS, rule=monthly_peak_rule))

    if len(p.monthly_demand_tiers) > 1:
        binary_warning("monthly demand tiers")
        _add_tier_constraints(ctx, 'Monthly_Demand', m.MONTHS, m.MONTHLY_DEMAND_TIERS, p.monthly_demand_tier_limits,
                              lambda model, mth, tier: model.Peak_Demand_Month_kW[mth, tier])
    return ctx


def add_tou_peak_constraint(ctx):
    """The peak demand of a time-of-use ratchet is at least the grid purchase in every time step of the ratchet."""
    m = ctx.m
    p = ctx.p

    ctx.add('RATCHET_TIME_STEPS', Set(
        dimen=2, ordered=True,
        initialize=[(r, ts) for r in p.ratchets for ts in p.tou_demand_ratchet_time_steps[r - 1]]
    ))

    def tou_peak_rule(model, r, ts):
        return sum(model.Peak_Demand_TOU_kW[r, tier] for tier in model.TOU_DEMAND_TIERS) >= grid_purchase(model, ts)

    ctx.add('TOU_Peak_Demand', Constraint(m.RATCHET_TIME_STEPS, rule=tou_peak_rule))

    if len(p.tou_demand_tiers) > 1:
        binary_warning("time-of-use demand tiers")
        _add_tier_constraints(ctx, 'TOU_Demand', m.RATCHETS, m.TOU_DEMAND_TIERS, p.tou_demand_tier_limits,
                              lambda model, r, tier: model.Peak_Demand_TOU_kW[r, tier])
    return ctx


def add_energy_tier_constraints(ctx):
    """Monthly energy purchases fill the energy tiers in order."""
    m = ctx.m
    p = ctx.p

    binary_warning("energy tiers")

    def monthly_tier_energy(model, mth, tier):
        return p.hours_per_timestep * sum(model.Grid_Purchase_kW[ts, tier] for ts in p.time_steps_monthly[mth - 1])

    _add_tier_constraints(ctx, 'Energy', m.MONTHS, m.ENERGY_TIERS, p.energy_tier_limits, monthly_tier_energy)
    return ctx


def add_demand_lookback_constraints(ctx):
    """
    The monthly peak demand is at least demand_lookback_percent of a previous peak: either the highest demand
    in the fixed demand_lookback_months, or the highest monthly peak of the previous demand_lookback_range months.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p

    def month_peak(model, mth):
        return sum(model.Peak_Demand_Month_kW[mth, tier] for tier in model.MONTHLY_DEMAND_TIERS)

    if p.demand_lookback_range == 0:
        lookback_steps = [ts for mth in p.demand_lookback_months for ts in p.time_steps_monthly[mth - 1]]
        ctx.add('LOOKBACK_TIME_STEPS', Set(initialize=lookback_steps, ordered=True))
        ctx.add('Peak_Demand_Lookback_kW', Var(within=NonNegativeReals))

        def lookback_peak_rule(model, ts):
            return model.Peak_Demand_Lookback_kW >= grid_purchase(model, ts)

        def lookback_floor_rule(model, mth):
            return month_peak(model, mth) >= p.demand_lookback_percent * model.Peak_Demand_Lookback_kW

        ctx.add('Demand_Lookback_Peak', Constraint(m.LOOKBACK_TIME_STEPS, rule=lookback_peak_rule))
        ctx.add('Demand_Lookback_Floor', Constraint(m.MONTHS, rule=lookback_floor_rule))
    else:
        ctx.add('LOOKBACK_MONTH_PAIRS', Set(
            dimen=2, ordered=True,
            initialize=[(mth, (mth - 1 - k) % 12 + 1) for mth in p.months
                        for k in range(1, p.demand_lookback_range + 1)]
        ))
        ctx.add('Peak_Demand_Lookback_kW', Var(m.MONTHS, within=NonNegativeReals))

        def rolling_peak_rule(model, mth, prev_mth):
            return model.Peak_Demand_Lookback_kW[mth] >= month_peak(model, prev_mth)

        def rolling_floor_rule(model, mth):
            return month_peak(model, mth) >= p.demand_lookback_percent * model.Peak_Demand_Lookback_kW[mth]

        ctx.add('Demand_Lookback_Peak', Constraint(m.LOOKBACK_MONTH_PAIRS, rule=rolling_peak_rule))
        ctx.add('Demand_Lookback_Floor', Constraint(m.MONTHS, rule=rolling_floor_rule))
    return ctx


def add_coincident_peak_charge_constraints(ctx):
    m = ctx.m
    p = ctx.p

    ctx.add('COINCPEAK_PERIODS', Set(initialize=p.coincpeak_periods, ordered=True))
    ctx.add('COINCPEAK_TIME_STEPS', Set(
        dimen=2, ordered=True,
        initialize=[(prd, ts) for prd in p.coincpeak_periods
                    for ts in p.coincident_peak_load_active_time_steps[prd - 1]]
    ))
    ctx.add('Peak_Demand_CP_kW', Var(m.COINCPEAK_PERIODS, within=NonNegativeReals))

    def cp_peak_rule(model, prd, ts):
        return model.Peak_Demand_CP_kW[prd] >= grid_purchase(model, ts)

    ctx.add('Coincident_Peak_Demand', Constraint(m.COINCPEAK_TIME_STEPS, rule=cp_peak_rule))
    ctx.add('Total_CP_Charges', Expression(expr=p.pwf_e * sum(
        p.coincident_peak_load_charge_per_kw[prd - 1] * m.Peak_Demand_CP_kW[prd] for prd in m.COINCPEAK_PERIODS
    )))
    return ctx


def add_elec_utility_expressions(ctx):
    """
    Lifecycle utility bill components, the minimum charge adder, and the total bill.
    Components that are not modeled (no exports, no coincident peak) are zero.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p

    ctx.add('Total_Energy_Charges_Util', Expression(expr=p.pwf_e * p.hours_per_timestep * sum(
        float(p.energy_rates[ts - 1, tier - 1]) * m.Grid_Purchase_kW[ts, tier]
        for ts in m.TIME_STEPS for tier in m.ENERGY_TIERS
    )))

    ctx.add('Demand_TOU_Charges', Expression(expr=p.pwf_e * sum(
        float(p.tou_demand_rates[r - 1, tier - 1]) * m.Peak_Demand_TOU_kW[r, tier]
        for r in m.RATCHETS for tier in m.TOU_DEMAND_TIERS
    )))

    if len(p.monthly_demand_rates) > 0:
        flat_charges = p.pwf_e * sum(
            float(p.monthly_demand_rates[mth - 1, tier - 1]) * m.Peak_Demand_Month_kW[mth, tier]
            for mth in m.MONTHS for tier in m.MONTHLY_DEMAND_TIERS
        )
    else:
        flat_charges = 0.0
    ctx.add('Demand_Flat_Charges', Expression(expr=flat_charges))
    ctx.add('Total_Demand_Charges', Expression(expr=m.Demand_TOU_Charges + m.Demand_Flat_Charges))
    ctx.add('Total_Fixed_Charges', Expression(expr=p.pwf_e * 12 * p.fixed_monthly_charge))

    if m.component('Total_Export_Benefit') is None:
        ctx.add('Total_Export_Benefit', Expression(expr=0.0))
    if m.component('Total_CP_Charges') is None:
        ctx.add('Total_CP_Charges', Expression(expr=0.0))

    total_min_charge = p.pwf_e * max(p.annual_min_charge, 12 * p.min_monthly_charge)
    if total_min_charge >= 1.0e-2:
        def min_charge_rule(model):
            return (
                model.Min_Charge_Adder
                >=
                total_min_charge - (model.Total_Energy_Charges_Util + model.Total_Demand_Charges
                                    + model.Total_Export_Benefit + model.Total_Fixed_Charges)
            )
        ctx.add('Min_Charge_Adder_Floor', Constraint(rule=min_charge_rule))
    else:
        m.Min_Charge_Adder.fix(0)

    ctx.add('Total_Elec_Bill', Expression(expr=(
        m.Total_Energy_Charges_Util
        + m.Total_Demand_Charges
        + m.Total_Export_Benefit
        + m.Total_Fixed_Charges
        + 1.0 * m.Min_Charge_Adder
        + m.Total_CP_Charges
    )))
    return ctx
