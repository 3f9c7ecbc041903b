import copy

import pytest
from pyomo.environ import Binary, ConcreteModel, Constraint, Expression, Objective, Var, value

from deropt import load_data
from deropt import model_formulation
from deropt.model_formulation import BuildContext, build_deropt, build_model
from deropt.multinode import build_multinode_model, load_node_inputs, node_scenario
from deropt.mpc import MPCScenario, MPCInputs, build_mpc_model
from deropt.outage_constraints import outage_time_step
from deropt.variables import add_bounds


def test_build_context_add_replaces_component(base_scenario):
    ctx = BuildContext(ConcreteModel(), load_data.load_inputs(base_scenario))
    ctx.m.x = Var()
    ctx.add('Limit', Constraint(expr=ctx.m.x <= 1))
    ctx.add('Limit', Constraint(expr=ctx.m.x <= 2))
    assert value(ctx.m.Limit.upper) == 2


def test_build_context_costs(base_scenario):
    ctx = BuildContext(ConcreteModel(), load_data.load_inputs(base_scenario))
    assert ctx.cost('fuel') == 0.0
    ctx.add_cost('fuel', 'generator', 10.0)
    ctx.add_cost('fuel', 'chp', 5.0)
    ctx.add_cost('fuel', 'generator', 1.0)
    assert ctx.cost('fuel') == 6.0


def test_model_has_costs_and_objective(base_scenario):
    m = build_model(load_data.load_inputs(base_scenario))
    for name, _ in model_formulation.COST_EXPRESSIONS:
        assert isinstance(m.component(name), Expression)
    assert isinstance(m.Costs, Expression)
    assert isinstance(m.Total_Cost, Objective)
    assert len(m.Elec_Load_Balance) == 8760
    assert len(m.Monthly_Peak_Demand) > 0
    assert m.component('Max_Outage_Cost_Floor') is None
    assert list(m.NONZERO_STORAGE_TYPES) == ['elec']


def test_model_without_storage(base_scenario):
    d = copy.deepcopy(base_scenario)
    del d['ElecStorage']
    m = build_model(load_data.load_inputs(d))
    assert len(m.NONZERO_STORAGE_TYPES) == 0


def test_fixed_sizes_omit_capital_costs(base_scenario):
    ctx = build_deropt(load_data.load_inputs(base_scenario), sizes_fixed=True)
    assert value(ctx.m.Total_Tech_Cap_Costs) == 0.0
    assert value(ctx.m.Total_Storage_Cap_Costs) == 0.0
    assert value(ctx.m.Total_Per_Unit_Size_OM_Costs) == 0.0


def test_capital_costs_are_recorded(base_scenario):
    ctx = build_deropt(load_data.load_inputs(base_scenario))
    assert len(ctx.costs['tech_capital']) > 0
    assert len(ctx.costs['storage_capital']) > 0
    assert len(ctx.costs['size_om']) > 0


def test_cost_curve_model(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['PV']['installed_cost_per_kw'] = [2000.0, 1500.0]
    d['PV']['tech_sizes_for_cost_curve'] = [10.0, 200.0]
    m = build_model(load_data.load_inputs(d))
    assert len(m.SEGMENTS) == 2
    assert len(m.One_Segment_Active) == 1


def test_net_metering_model(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['ElectricUtility'] = {'net_metering_limit_kw': 100.0, 'allow_simultaneous_export_import': False}
    m = build_model(load_data.load_inputs(d))
    assert m.component('Production_To_Grid_kW') is not None
    assert m.component('NEM_Size_Limit') is not None
    assert m.component('No_Simultaneous_Export') is not None


def test_outage_model(outage_scenario):
    m = build_model(load_data.load_inputs(outage_scenario))
    assert len(m.OUTAGE_STARTS) == 4
    # 2 hour outages and 4 hour outages from each of the two start time steps
    assert len(m.OUTAGE_STEPS) == 2 * (2 + 4)
    assert len(m.Max_Outage_Cost_Floor) == 4
    assert m.component('MG_Fuel_Burn') is not None
    assert m.component('Gen_Fuel_Burn') is not None


def test_outage_model_without_generator_has_no_fuel(outage_scenario):
    d = copy.deepcopy(outage_scenario)
    del d['Generator']
    m = build_model(load_data.load_inputs(d))
    assert value(m.Expected_MG_Fuel_Cost) == 0.0
    assert m.component('MG_Renewables_Need_Storage_Or_Generator') is not None


def test_outage_time_step_wraps_around_the_year(base_scenario):
    p = load_data.load_inputs(base_scenario)
    assert outage_time_step(p, 12, 1) == 12
    assert outage_time_step(p, 12, 3) == 14
    assert outage_time_step(p, 8760, 2) == 1


def test_min_resilience_fixes_unserved_load(outage_scenario):
    d = copy.deepcopy(outage_scenario)
    d['Site']['min_resil_timesteps'] = 2
    m = build_model(load_data.load_inputs(d))
    assert m.Unserved_Load_kW[1, 12, 1].fixed
    assert m.Unserved_Load_kW[1, 12, 2].fixed
    assert not m.Unserved_Load_kW[2, 12, 3].fixed


def test_add_bounds_adds_nonnegativity_for_continuous_vars():
    m = ConcreteModel()
    m.x = Var([1, 2])
    m.y = Var()
    m.b = Var(within=Binary)
    ctx = BuildContext(m, None)
    add_bounds(ctx)
    assert len(m.x_Nonnegative) == 2
    assert m.component('y_Nonnegative') is not None
    assert m.component('b_Nonnegative') is None


def test_mpc_model_has_previous_peaks(mpc_scenario):
    m = build_mpc_model(MPCInputs(MPCScenario(mpc_scenario)))
    assert len(m.TIME_STEPS) == 24
    assert len(m.Previous_Monthly_Peak_Demand) == 1
    assert value(m.Total_Tech_Cap_Costs) == 0.0


def test_multinode_model_builds_a_block_per_node(base_scenario):
    first = copy.deepcopy(base_scenario)
    first['Site']['node'] = 1
    second = copy.deepcopy(base_scenario)
    second['Site']['node'] = 2
    del second['PV']
    ps = load_node_inputs([first, second])
    model, contexts = build_multinode_model(ps)

    assert list(model.NODES) == [1, 2]
    assert set(contexts.keys()) == {1, 2}
    assert model.node[1].component('Size_kW_Nonnegative') is not None
    assert len(model.node[2].TECHS) == 0
    assert isinstance(model.Total_Cost, Objective)


def test_multinode_requires_unique_nodes(base_scenario):
    with pytest.raises(ValueError):
        load_node_inputs([copy.deepcopy(base_scenario), copy.deepcopy(base_scenario)])


def test_multinode_rejects_tiered_rates(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['ElectricTariff'] = {'tiered_energy_rates': [0.1, 0.2], 'energy_tier_limits_kwh': [1000.0]}
    with pytest.raises(ValueError):
        load_node_inputs([d])


def test_node_scenario_drops_generator_and_outages(outage_scenario):
    d = node_scenario(outage_scenario)
    assert 'Generator' not in d
    assert 'outage_durations' not in d['ElectricUtility']
    assert 'Generator' in outage_scenario


def test_interconnection_limit_below_export_capability(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['ElectricTariff']['wholesale_rate'] = 0.05
    d['ElectricUtility'] = {'interconnection_limit_kw': 10.0}
    m = build_model(load_data.load_inputs(d))
    assert len(m.Interconnection_Limit) == 8760
    assert value(m.Interconnection_Limit[100].upper) == 10.0


def test_no_interconnection_limit_above_export_capability(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['ElectricTariff']['wholesale_rate'] = 0.05
    m = build_model(load_data.load_inputs(d))
    assert m.component('Interconnection_Limit') is None


def test_mpc_interconnection_limit(mpc_scenario):
    d = copy.deepcopy(mpc_scenario)
    d['ElectricUtility'] = {'interconnection_limit_kw': 10.0}
    m = build_mpc_model(MPCInputs(MPCScenario(d)))
    assert len(m.Interconnection_Limit) == 24


def test_unserved_load_is_at_most_the_critical_load(outage_scenario):
    m = build_model(load_data.load_inputs(outage_scenario))
    assert len(m.Max_Unserved_Load) == len(m.OUTAGE_STEPS)
    # the default critical load is half of the 100 kW load
    assert value(m.Max_Unserved_Load[1, 12, 1].upper) == pytest.approx(50.0)


def test_demand_lookback_over_fixed_months(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['ElectricTariff'].update({'demand_lookback_percent': 0.8, 'demand_lookback_months': [1, 2]})
    m = build_model(load_data.load_inputs(d))
    assert len(m.LOOKBACK_TIME_STEPS) == (31 + 28) * 24
    assert len(m.Demand_Lookback_Floor) == 12
    assert m.Peak_Demand_Lookback_kW.is_indexed() is False


def test_demand_lookback_over_previous_months(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['ElectricTariff'].update({'demand_lookback_percent': 0.8, 'demand_lookback_range': 3})
    m = build_model(load_data.load_inputs(d))
    assert len(m.LOOKBACK_MONTH_PAIRS) == 12 * 3
    assert (1, 12) in m.LOOKBACK_MONTH_PAIRS
    assert len(m.Peak_Demand_Lookback_kW) == 12


def test_no_demand_lookback_by_default(base_scenario):
    m = build_model(load_data.load_inputs(base_scenario))
    assert m.component('Demand_Lookback_Floor') is None
