import copy

import pytest

from deropt import load_data
from deropt.financial import annuity
from deropt.load_data import cost_curve_segments
from deropt.mpc import MPCScenario, MPCInputs


def test_inputs_time_steps_and_months(base_scenario):
    p = load_data.load_inputs(base_scenario)
    assert p.time_steps[0] == 1
    assert p.time_steps[-1] == 8760
    assert p.months == list(range(1, 13))
    assert p.hours_per_timestep == 1.0
    assert p.time_steps_with_grid == p.time_steps
    assert p.time_steps_without_grid == []


def test_inputs_present_worth_factors(base_scenario):
    p = load_data.load_inputs(base_scenario)
    assert p.pwf_e == annuity(20, 0.023, 0.07)
    assert p.pwf_om == annuity(20, 0.025, 0.07)
    assert p.third_party_factor == 1.0


def test_inputs_technology_lists(outage_scenario):
    p = load_data.load_inputs(outage_scenario)
    assert p.techs.pv == ['PV']
    assert p.techs.gen == ['Generator']
    assert p.techs.elec == ['PV', 'Generator']
    assert p.techs.mg == ['PV', 'Generator']
    assert p.techs.no_curtail == ['Generator']
    assert p.techs.segmented == []


def test_inputs_production_factors(base_scenario):
    p = load_data.load_inputs(base_scenario)
    assert p.production_factor['PV', 1] == 0.0
    assert p.production_factor['PV', 13] == pytest.approx(1.0)
    assert p.levelization_factor['PV'] < 1.0


def test_inputs_generator_runs_at_full_output(outage_scenario):
    p = load_data.load_inputs(outage_scenario)
    assert all(p.production_factor['Generator', ts] == 1.0 for ts in p.time_steps)
    assert p.fuel_cost_per_unit['Generator'] == 3.0


def test_inputs_existing_size_raises_min_size(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['PV']['existing_kw'] = 25.0
    p = load_data.load_inputs(d)
    assert p.min_sizes['PV'] == 25.0
    assert p.existing_sizes['PV'] == 25.0


def test_inputs_net_metering_bins(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['ElectricUtility'] = {'net_metering_limit_kw': 100.0}
    d['ElectricTariff']['wholesale_rate'] = 0.02
    p = load_data.load_inputs(d)
    assert p.export_bins == ['NEM', 'WHL']
    assert p.export_bins_by_tech['PV'] == ['NEM', 'WHL']
    assert p.tech_export_bins == [('PV', 'NEM'), ('PV', 'WHL')]
    assert p.big_m_export_kw == pytest.approx(500.0)


def test_inputs_outage_scenarios(outage_scenario):
    p = load_data.load_inputs(outage_scenario)
    assert p.outage_scenarios == [1, 2]
    assert p.outage_durations == {1: 2, 2: 4}
    assert p.outage_probabilities == {1: 0.6, 2: 0.4}
    assert p.outage_time_steps == [1, 2, 3, 4]


def test_bau_inputs_have_no_new_technologies(outage_scenario):
    p = load_data.load_bau_inputs(outage_scenario)
    assert p.techs.all == []
    assert p.storage.max_kw['elec'] == 0.0
    assert p.outage_scenarios == []


def test_cost_curve_inputs(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['PV']['installed_cost_per_kw'] = [2000.0, 1500.0]
    d['PV']['tech_sizes_for_cost_curve'] = [10.0, 200.0]
    p = load_data.load_inputs(d)
    assert p.techs.segmented == ['PV']
    assert p.n_segs_by_tech['PV'] >= 2
    for k in range(1, p.n_segs_by_tech['PV']):
        assert p.seg_max_size['PV', k] == p.seg_min_size['PV', k + 1]


def test_initial_capital_cost_interpolates_cost_curve(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['PV']['installed_cost_per_kw'] = [2000.0, 1500.0]
    d['PV']['tech_sizes_for_cost_curve'] = [10.0, 200.0]
    p = load_data.load_inputs(d)
    assert p.initial_capital_cost('PV', 10.0) == pytest.approx(20000.0)
    assert p.initial_capital_cost('PV', 200.0) == pytest.approx(300000.0)
    assert p.initial_capital_cost('PV', 300.0) == pytest.approx(450000.0)


def test_initial_capital_cost_linear(base_scenario):
    p = load_data.load_inputs(base_scenario)
    assert p.initial_capital_cost('PV', 100.0) == pytest.approx(160000.0)


def test_cost_curve_segments_are_contiguous():
    segments = cost_curve_segments([10.0, 200.0], [2000.0, 1500.0], 1000.0, 1.0, 0.0)
    assert segments[0][0] == 0.0
    assert segments[-1][1] >= 1000.0
    for first, second in zip(segments[:-1], segments[1:]):
        assert first[1] == second[0]


def test_mpc_inputs_fix_sizes(mpc_scenario):
    p = MPCInputs(MPCScenario(mpc_scenario))
    assert p.time_steps == list(range(1, 25))
    assert p.min_sizes['PV'] == p.max_sizes['PV'] == p.existing_sizes['PV'] == 30.0
    assert p.storage.min_kw['elec'] == p.storage.max_kw['elec'] == 20.0
    assert p.storage.min_kwh['elec'] == p.storage.max_kwh['elec'] == 80.0
    assert p.pwf_e == 1.0
    assert p.offtaker_tax_pct == 0.0
    assert p.months == [1]


def test_mpc_inputs_export_bin(mpc_scenario):
    p = MPCInputs(MPCScenario(mpc_scenario))
    assert p.export_bins == ['WHL']
    assert p.export_rates['WHL'][0] == pytest.approx(-0.05)

    d = copy.deepcopy(mpc_scenario)
    d['ElectricTariff']['net_metering'] = True
    assert MPCInputs(MPCScenario(d)).export_bins == ['NEM']

    d['ElectricTariff']['export_rates'] = [0.0] * 24
    assert MPCInputs(MPCScenario(d)).export_bins == []


def test_mpc_scenario_rejects_rate_length(mpc_scenario):
    d = copy.deepcopy(mpc_scenario)
    d['ElectricTariff']['energy_rates'] = [0.1] * 10
    with pytest.raises(ValueError):
        MPCScenario(d)
