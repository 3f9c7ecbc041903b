import copy
import math
import os

import pytest
from pyomo.environ import ConcreteModel, SolverFactory, value

from deropt import load_data
from deropt import model_formulation
from deropt import run_opt
from deropt.mpc import run_mpc
from deropt.multinode import build_multinode_model, load_node_inputs, run_multinode

pytestmark = pytest.mark.skipif(not SolverFactory('appsi_highs').available(exception_flag=False),
                                reason="HiGHS (highspy) is not installed")


@pytest.fixture
def scenario_directory(tmp_path, base_scenario):
    inputs = tmp_path / 'inputs' / 'pv_storage'
    inputs.mkdir(parents=True)
    run_opt.fileio.jsonwriter(str(inputs / 'scenario.json'), base_scenario)
    dir_str = run_opt.DirStructure(str(tmp_path), 'pv_storage')
    dir_str.make_directories()
    return dir_str


def test_run_scenario_writes_results(scenario_directory):
    results = run_opt.run_scenario(scenario_directory)

    assert isinstance(results, dict)
    assert results['status'] == 'optimal'
    assert os.path.exists(os.path.join(scenario_directory.SCENARIO_RESULTS_DIRECTORY, 'results.json'))
    assert os.path.exists(os.path.join(scenario_directory.SCENARIO_RESULTS_DIRECTORY, 'dispatch.csv'))


def test_optimal_case_is_no_worse_than_bau(scenario_directory):
    results = run_opt.run_scenario(scenario_directory)
    fin = results['Financial']

    assert fin['lcc'] <= fin['lcc_bau'] + 1.0
    assert fin['npv'] == pytest.approx(fin['lcc_bau'] - fin['lcc'], abs=0.02)
    assert results['ElectricTariff']['year_one_bill'] <= results['ElectricTariff']['year_one_bill_bau'] + 1.0
    assert len(fin['annual_cash_flows']) == 21


def test_load_is_served_in_every_time_step(base_scenario):
    results = run_opt.run_with_bau(base_scenario)
    load = results['ElectricLoad']['load_series_kw']
    grid = results['ElectricUtility']['year_one_to_load_series_kw']
    pv = results['PV']['year_one_to_load_series_kw']
    storage = results['ElecStorage']['year_one_to_load_series_kw']

    assert len(load) == 8760
    for ts in range(0, 8760, 97):
        assert grid[ts] + pv[ts] + storage[ts] == pytest.approx(load[ts], abs=0.01)


def test_storage_state_of_charge_stays_within_limits(base_scenario):
    results = run_opt.run_with_bau(base_scenario)
    if results['ElecStorage']['size_kwh'] > 0:
        soc = results['ElecStorage']['year_one_soc_series_pct']
        assert min(soc) >= 0.2 - 1e-3
        assert max(soc) <= 1.0 + 1e-3


def test_run_without_bau(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['Settings']['run_bau'] = False
    results = run_opt.run_with_bau(d)
    assert results['status'] == 'optimal'
    assert 'lcc_bau' not in results['Financial']


def test_fixed_pv_size(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['Settings']['run_bau'] = False
    d['PV']['min_kw'] = d['PV']['max_kw'] = 120.0
    results = run_opt.run_with_bau(d)
    assert results['PV']['size_kw'] == pytest.approx(120.0, abs=0.01)


def test_run_mpc(mpc_scenario):
    results = run_mpc(mpc_scenario)

    assert results['status'] == 'optimal'
    assert results['PV']['size_kw'] == pytest.approx(30.0)
    assert results['ElecStorage']['size_kwh'] == pytest.approx(80.0)
    # the peak of the horizon is at least the peak already set this month
    assert results['ElectricTariff']['demand_cost'] >= 5.0 * 40.0 - 0.01
    assert len(results['ElectricUtility']['to_load_series_kw']) == 24
    assert len(results['ElectricUtility']['to_battery_series_kw']) == 24


def test_run_multinode(base_scenario):
    first = copy.deepcopy(base_scenario)
    first['Site']['node'] = 1
    del first['ElecStorage']
    second = copy.deepcopy(first)
    second['Site']['node'] = 2
    second['ElectricLoad']['loads_kw'] = [50.0] * 8760

    results = run_multinode([first, second])

    assert results['status'] == 'optimal'
    assert results[1]['ElectricLoad']['annual_calculated_kwh'] == pytest.approx(876000.0)
    assert results[2]['ElectricLoad']['annual_calculated_kwh'] == pytest.approx(438000.0)
    assert results[2]['Financial']['lcc'] < results[1]['Financial']['lcc']


def optimal_only(d, **pv):
    d = copy.deepcopy(d)
    d['Settings']['run_bau'] = False
    d['PV'].update(pv)
    return d


def test_more_pv_lowers_the_bill(base_scenario):
    d = copy.deepcopy(base_scenario)
    del d['ElecStorage']
    bills = []
    supplied = []
    for size in (20.0, 50.0, 80.0):
        results = run_opt.run_with_bau(optimal_only(d, min_kw=size, max_kw=size))
        assert results['status'] == 'optimal'
        bills.append(results['ElectricTariff']['year_one_bill'])
        supplied.append(results['ElectricUtility']['year_one_energy_supplied_kwh'])

    assert bills[0] > bills[1] > bills[2]
    # the grid supplies less than the whole annual load
    assert supplied[0] < 876000.0


def test_year_one_bill_is_the_sum_of_its_parts(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['ElectricTariff']['fixed_monthly_charge'] = 25.0
    results = run_opt.run_with_bau(optimal_only(d))
    tariff = results['ElectricTariff']

    assert tariff['year_one_bill'] == tariff['year_one_energy_cost'] + tariff['year_one_demand_cost'] \
        + tariff['year_one_fixed_cost'] + tariff['year_one_min_charge_adder']
    assert tariff['year_one_fixed_cost'] == 300.0


def test_lifecycle_costs_are_year_one_costs_times_pwf_after_tax(base_scenario):
    d = optimal_only(base_scenario)
    p = load_data.load_inputs(d)
    results = run_opt.run_with_bau(d)
    tariff = results['ElectricTariff']
    factor = p.pwf_e * (1 - p.offtaker_tax_pct)

    for cost in ('energy_cost', 'demand_cost'):
        assert tariff['lifecycle_' + cost] == pytest.approx(tariff['year_one_' + cost] * factor, abs=0.01 * factor)


def test_zero_storage_never_charges(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['ElecStorage'] = {'max_kw': 0.0, 'max_kwh': 0.0}
    results = run_opt.run_with_bau(optimal_only(d))
    to_battery = results['ElectricUtility']['year_one_to_battery_series_kw']

    assert len(to_battery) == 8760
    assert all(v == 0.0 for v in to_battery)
    assert results['ElecStorage']['size_kwh'] == 0.0


def test_first_energy_tier_is_full_before_the_second_is_used(base_scenario):
    d = optimal_only(base_scenario, max_kw=0.0)
    d['ElectricTariff'] = {'tiered_energy_rates': [0.10, 0.20], 'energy_tier_limits_kwh': [1000.0]}
    p = load_data.load_inputs(d)
    model = model_formulation.build_model(p)
    status, _ = run_opt.solve(model, p.settings)
    assert status == 'optimal'

    for mth in p.months:
        steps = p.time_steps_monthly[mth - 1]
        tier_one = sum(value(model.Grid_Purchase_kW[ts, 1]) for ts in steps)
        tier_two = sum(value(model.Grid_Purchase_kW[ts, 2]) for ts in steps)
        assert tier_one <= 1000.0 + 0.01
        if tier_two > 1e-6:
            assert tier_one == pytest.approx(1000.0, abs=0.01)


def test_multinode_objective_is_the_sum_of_node_costs(base_scenario):
    first = copy.deepcopy(base_scenario)
    first['Site']['node'] = 1
    second = copy.deepcopy(base_scenario)
    second['Site']['node'] = 2
    del second['ElecStorage']

    ps = load_node_inputs([first, second])
    model, _ = build_multinode_model(ps)
    status, _ = run_opt.solve(model, ps[1].settings)

    assert status == 'optimal'
    assert value(model.Total_Cost) == pytest.approx(
        value(model.node[1].Costs) + value(model.node[2].Costs), rel=1e-9)


def fixed_pv_without_storage(base_scenario, size_kw=400.0):
    d = optimal_only(base_scenario, min_kw=size_kw, max_kw=size_kw)
    del d['ElecStorage']
    return d


def solved_model(d):
    p = load_data.load_inputs(d)
    model = model_formulation.build_model(p)
    status, _ = run_opt.solve(model, p.settings)
    assert status == 'optimal'
    return model


def exports(model, ts):
    return sum(value(model.Production_To_Grid_kW[t, u, ts]) for (t, u) in model.TECH_EXPORT_BINS)


def purchases(model, ts):
    return sum(value(model.Grid_Purchase_kW[ts, tier]) for tier in model.ENERGY_TIERS)


def test_interconnection_limit_caps_exports(base_scenario):
    d = fixed_pv_without_storage(base_scenario)
    d['ElectricTariff']['wholesale_rate'] = 0.05
    d['ElectricUtility'] = {'interconnection_limit_kw': 10.0}
    model = solved_model(d)

    assert max(exports(model, ts) for ts in model.TIME_STEPS) <= 10.0 + 1e-6


def test_no_simultaneous_import_and_export(base_scenario):
    d = fixed_pv_without_storage(base_scenario)
    # selling is worth more than buying, so only the binary keeps the site from doing both
    d['ElectricTariff']['wholesale_rate'] = 0.20
    d['ElectricUtility'] = {'allow_simultaneous_export_import': False}
    model = solved_model(d)

    assert max(exports(model, ts) for ts in model.TIME_STEPS) > 1.0
    for ts in model.TIME_STEPS:
        assert min(exports(model, ts), purchases(model, ts)) <= 1e-3


def test_demand_lookback_floors_later_peaks(base_scenario):
    d = optimal_only(base_scenario, max_kw=0.0)
    del d['ElecStorage']
    d['ElectricLoad']['loads_kw'] = [100.0] * (31 * 24) + [10.0] * (8760 - 31 * 24)
    d['ElectricTariff'].update({'demand_lookback_percent': 0.8, 'demand_lookback_months': [1]})
    results = run_opt.run_with_bau(d)

    # January sets a 100 kW peak; every other month pays for 80 kW instead of its own 10 kW
    assert results['ElectricTariff']['year_one_demand_cost'] == pytest.approx(10.0 * (100.0 + 11 * 80.0), abs=0.05)


def test_coincident_peak_cost_is_not_in_the_bill(base_scenario):
    d = optimal_only(base_scenario, max_kw=0.0)
    del d['ElecStorage']
    without_cp = run_opt.run_with_bau(d)['ElectricTariff']
    d['ElectricTariff'].update({'coincident_peak_load_active_time_steps': [[1, 2, 3]],
                                'coincident_peak_load_charge_per_kw': [5.0]})
    with_cp = run_opt.run_with_bau(d)['ElectricTariff']

    assert with_cp['year_one_coincident_peak_cost'] == pytest.approx(500.0, abs=0.01)
    assert with_cp['year_one_bill'] == with_cp['year_one_energy_cost'] + with_cp['year_one_demand_cost'] \
        + with_cp['year_one_fixed_cost'] + with_cp['year_one_min_charge_adder']
    assert with_cp['year_one_bill'] == pytest.approx(without_cp['year_one_bill'], abs=0.01)


def test_infeasible_case_returns_the_model(base_scenario):
    d = optimal_only(base_scenario, max_kw=0.0)
    del d['ElecStorage']
    # nothing can serve the critical load while the grid is down
    d['ElectricUtility'] = {'outage_start_time_step': 10, 'outage_end_time_step': 20}
    p = load_data.load_inputs(d)

    model = model_formulation.build_model(p)
    status, _ = run_opt.solve(model, p.settings)
    assert status == 'not optimal'
    assert isinstance(run_opt.run_deropt(p), ConcreteModel)


def test_outage_scenario_solves(outage_scenario):
    d = copy.deepcopy(outage_scenario)
    d['Settings']['run_bau'] = False
    results = run_opt.run_with_bau(d)

    assert results['status'] == 'optimal'
    outages = results['Outages']
    assert outages['expected_outage_cost'] >= 0.0
    assert len(outages['unserved_load_per_outage']) == 2
    assert all(math.copysign(1.0, kw) > 0 for kw in outages['mg_size_kw'].values())


def test_unserved_load_never_exceeds_critical_load(outage_scenario):
    d = copy.deepcopy(outage_scenario)
    d['Settings']['run_bau'] = False
    d['Financial']['value_of_lost_load_per_kwh'] = 0.0
    results = run_opt.run_with_bau(d)

    assert results['status'] == 'optimal'
    for duration, unserved in zip([2, 4], results['Outages']['unserved_load_per_outage']):
        for kwh in unserved:
            assert kwh <= 50.0 * duration + 0.01
