"""
This script contains the model formulation: the build context threaded through the constraint procedures,
the order in which they are applied, the lifecycle cost expressions, and the objective.

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

from collections import defaultdict

from pyomo.environ import ConcreteModel, Expression, Objective, minimize

from deropt.variables import add_sets, add_variables
from deropt.storage_constraints import add_storage_constraints
from deropt.production_constraints import (
    add_production_constraints, add_tech_size_constraints, add_no_curtail_constraints,
    add_elec_load_balance_constraints, add_gen_constraints, add_chp_constraints, add_boiler_tech_constraints,
    add_thermal_load_constraints, add_prod_incent_vars_and_constraints
)
from deropt.tariff_constraints import (
    add_export_constraints, add_monthly_peak_constraint, add_tou_peak_constraint,
    add_simultaneous_export_import_constraint, add_energy_tier_constraints, add_demand_lookback_constraints,
    add_coincident_peak_charge_constraints, add_elec_utility_expressions
)
from deropt.cost_curve_constraints import (
    add_capex_constraints, add_cost_curve_vars_and_constraints, add_storage_capex, add_size_om_costs
)
from deropt.outage_constraints import add_outage_constraints

# running cost terms, each summed into one lifecycle cost expression
COST_EXPRESSIONS = [
    ('tech_capital', 'Total_Tech_Cap_Costs'),
    ('storage_capital', 'Total_Storage_Cap_Costs'),
    ('size_om', 'Total_Per_Unit_Size_OM_Costs'),
    ('production_om', 'Total_Per_Unit_Prod_OM_Costs'),
    ('hourly_om', 'Total_Hourly_OM_Costs'),
    ('fuel', 'Total_Fuel_Costs'),
    ('chp_standby', 'Total_CHP_Standby_Charges'),
    ('production_incentive', 'Total_Production_Incentive'),
    ('outage', 'Total_Outage_Costs'),
]


class BuildContext:
    """
    Model under construction, the inputs it is built from, and the running cost terms.

    Each constraint procedure takes the context, adds components to the model and cost terms to the
    accumulator, and returns the context.
    """
    def __init__(self, m, p, sizes_fixed=False):
        self.m = m
        self.p = p
        self.sizes_fixed = sizes_fixed
        self.costs = defaultdict(dict)

    def add(self, name, component):
        """Add a named component to the model, replacing any component with the same name."""
        if self.m.component(name) is not None:
            self.m.del_component(name)
        self.m.add_component(name, component)
        return component

    def add_cost(self, key, source, expr):
        """Record the cost term of a source under a cost key; recording a source again replaces its term."""
        self.costs[key][source] = expr
        return self

    def cost(self, key):
        return sum(self.costs[key].values()) if len(self.costs[key]) > 0 else 0.0


def build_deropt(p, m=None, sizes_fixed=False):
    """
    Build the sets, variables, constraints and cost expressions of one site.
    :param p: Inputs
    :param m: model or block to build into; a new ConcreteModel when None
    :param sizes_fixed: True when technology and storage sizes are given, in which case capital costs are omitted
    :return: BuildContext
    """
    if m is None:
        m = ConcreteModel(name='DEROPT')
    ctx = BuildContext(m, p, sizes_fixed)

    ctx = add_sets(ctx)
    ctx = add_variables(ctx)

    ctx = add_storage_constraints(ctx)
    ctx = add_production_constraints(ctx)
    ctx = add_tech_size_constraints(ctx)
    if len(p.techs.no_curtail) > 0:
        ctx = add_no_curtail_constraints(ctx)
    if len(p.techs.gen) > 0:
        ctx = add_gen_constraints(ctx)
    if len(p.techs.chp) > 0:
        ctx = add_chp_constraints(ctx)
    if len(p.techs.boiler) > 0:
        ctx = add_boiler_tech_constraints(ctx)
    if len(p.techs.thermal) > 0:
        ctx = add_thermal_load_constraints(ctx)
    if len(p.techs.pbi) > 0 and not sizes_fixed:
        ctx = add_prod_incent_vars_and_constraints(ctx)

    ctx = add_elec_load_balance_constraints(ctx)

    if len(p.export_bins) > 0:
        ctx = add_export_constraints(ctx)
    if len(p.monthly_demand_rates) > 0:
        ctx = add_monthly_peak_constraint(ctx)
    if len(p.ratchets) > 0:
        ctx = add_tou_peak_constraint(ctx)
    if len(p.export_bins) > 0 and not p.allow_simultaneous_export_import:
        ctx = add_simultaneous_export_import_constraint(ctx)
    if len(p.energy_tiers) > 1:
        ctx = add_energy_tier_constraints(ctx)
    if p.demand_lookback_percent > 0:
        ctx = add_demand_lookback_constraints(ctx)
    if len(p.coincpeak_periods) > 0:
        ctx = add_coincident_peak_charge_constraints(ctx)

    if not sizes_fixed:
        ctx = add_capex_constraints(ctx)
        if len(p.techs.segmented) > 0:
            ctx = add_cost_curve_vars_and_constraints(ctx)
        ctx = add_storage_capex(ctx)
        ctx = add_size_om_costs(ctx)

    ctx = add_elec_utility_expressions(ctx)

    if len(p.outage_scenarios) > 0 and not sizes_fixed:
        ctx = add_outage_constraints(ctx)

    ctx = add_cost_expressions(ctx)
    return ctx


def add_cost_expressions(ctx):
    """
    Lifecycle cost expressions and the total Costs. O&M and production incentives are taxed at the owner's
    rate; fuel, standby charges and the utility bill are tax deductible for the offtaker.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p

    for key, name in COST_EXPRESSIONS:
        ctx.add(name, Expression(expr=ctx.cost(key)))

    owner = 1 - p.owner_tax_pct
    offtaker = 1 - p.offtaker_tax_pct

    ctx.add('Costs', Expression(expr=(
        m.Total_Tech_Cap_Costs
        + m.Total_Storage_Cap_Costs
        + owner * m.Total_Per_Unit_Size_OM_Costs
        + owner * (m.Total_Per_Unit_Prod_OM_Costs + m.Total_Hourly_OM_Costs)
        + offtaker * m.Total_Fuel_Costs
        + offtaker * m.Total_CHP_Standby_Charges
        + offtaker * m.Total_Elec_Bill
        - owner * m.Total_Production_Incentive
        + m.Total_Outage_Costs
    )))
    return ctx


def soc_incentive(ctx):
    """
    Small reward for stored energy, so that storage is not drained when doing so has no value.
    Zero without electric storage or when the incentive is switched off.
    """
    m = ctx.m
    p = ctx.p
    if not p.settings.add_soc_incentive or 'elec' not in m.NONZERO_STORAGE_TYPES:
        return 0.0
    return sum(m.Stored_Energy_kWh['elec', ts] for ts in m.TIME_STEPS) / (8760.0 / p.hours_per_timestep)


def add_objective(ctx):
    """
    Minimize the lifecycle Costs, less the state of charge incentive.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    ctx.add('Total_Cost', Objective(expr=m.Costs - soc_incentive(ctx), sense=minimize))
    return ctx


def build_model(p, sizes_fixed=False):
    """
    Build the complete single-site model.
    :param p: Inputs
    :param sizes_fixed: see build_deropt
    :return: ConcreteModel
    """
    print('Building model...')
    ctx = build_deropt(p, sizes_fixed=sizes_fixed)
    ctx = add_objective(ctx)
    print('...model built.')
    return ctx.m
