import json
from types import SimpleNamespace

import pandas as pd
import pytest

from deropt import create_results_summary, proforma
from deropt.create_results_summary import combine_results, dispatch_table, organize_multiple_pv_results
from deropt.scenario import Financial


def case_results(lcc, bill, status='optimal'):
    return {
        'Financial': {
            'lcc': lcc,
            'lifecycle_capital_costs': 0.0,
            'lifecycle_om_costs_after_tax': 0.0,
            'year_one_om_costs_before_tax': 0.0,
            'year_one_fuel_costs_before_tax': 0.0,
        },
        'ElectricTariff': {
            'year_one_bill': bill,
            'year_one_export_benefit': 0.0,
            'year_one_coincident_peak_cost': 0.0,
        },
        'ElectricUtility': {'year_one_energy_supplied_kwh': 1000.0},
        'status': status,
        'solver_seconds': 1.5,
    }


def test_combine_results_adds_bau_keys():
    combined = combine_results(case_results(100.0, 10.0), case_results(80.0, 6.0))
    assert combined['Financial']['lcc'] == 80.0
    assert combined['Financial']['lcc_bau'] == 100.0
    assert combined['ElectricTariff']['year_one_bill_bau'] == 10.0
    assert combined['ElectricUtility']['year_one_energy_supplied_kwh_bau'] == 1000.0
    assert combined['solver_seconds_bau'] == 1.5
    assert combined['status'] == 'optimal'


def test_combine_results_defaults_missing_bau_keys_to_zero():
    combined = combine_results(case_results(100.0, 10.0), case_results(80.0, 6.0))
    assert combined['Financial']['lifecycle_outage_cost_bau'] == 0.0
    assert combined['ElectricTariff']['lifecycle_export_benefit_bau'] == 0.0


def test_combine_results_does_not_change_inputs():
    opt = case_results(80.0, 6.0)
    combine_results(case_results(100.0, 10.0), opt)
    assert 'lcc_bau' not in opt['Financial']


def test_combine_results_reports_mixed_status():
    combined = combine_results(case_results(100.0, 10.0, 'timed-out'), case_results(80.0, 6.0))
    assert combined['status'] == 'timed-out'


def pv_inputs(names):
    return SimpleNamespace(techs=SimpleNamespace(pv=names))


def test_single_pv_named_pv_is_unchanged():
    d = {'PV': {'size_kw': 10.0}}
    organize_multiple_pv_results(pv_inputs(['PV']), d)
    assert d == {'PV': {'size_kw': 10.0}}


def test_multiple_pv_arrays_are_grouped():
    d = {
        'roof': {'size_kw': 10.0, 'year_one_energy_produced_kwh': 100.0, 'year_one_to_load_series_kw': [1.0, 2.0]},
        'ground': {'size_kw': 5.0, 'year_one_energy_produced_kwh': 50.0, 'year_one_to_load_series_kw': [0.5, 0.5]},
    }
    organize_multiple_pv_results(pv_inputs(['roof', 'ground']), d)
    assert 'roof' not in d
    pv = d['PV']
    assert pv['size_kw'] == 15.0
    assert pv['year_one_energy_produced_kwh'] == 150.0
    assert pv['year_one_to_load_series_kw'] == [1.5, 2.5]
    assert [a['name'] for a in pv['arrays']] == ['roof', 'ground']


def test_dispatch_table_columns():
    d = {
        'ElectricUtility': {'year_one_to_load_series_kw': [1.0, 2.0, 3.0], 'year_one_energy_supplied_kwh': 6.0},
        'ElecStorage': {'year_one_soc_series_pct': [0.5, 0.4, 0.3]},
        'status': 'optimal',
    }
    table = dispatch_table(d)
    assert list(table.columns) == ['ElectricUtility.year_one_to_load_series_kw', 'ElecStorage.year_one_soc_series_pct']
    assert list(table.index) == [1, 2, 3]
    assert table.index.name == 'time_step'


def test_write_results(tmp_path):
    d = {'ElectricUtility': {'year_one_to_load_series_kw': [1.0, 2.0]}, 'status': 'optimal'}
    create_results_summary.write_results(d, str(tmp_path / 'results'))

    with open(tmp_path / 'results' / 'results.json') as f:
        assert json.load(f)['status'] == 'optimal'
    table = pd.read_csv(tmp_path / 'results' / 'dispatch.csv', index_col=0)
    assert list(table['ElectricUtility.year_one_to_load_series_kw']) == [1.0, 2.0]


def proforma_inputs(years=10):
    fin = Financial(offtaker_tax_pct=0.0, elec_cost_escalation_pct=0.0, om_cost_escalation_pct=0.0,
                    generator_fuel_cost_escalation_pct=0.0)
    return SimpleNamespace(s=SimpleNamespace(financial=fin), techs=SimpleNamespace(chp=[], boiler=[]),
                           analysis_years=years, offtaker_tax_pct=0.0, owner_tax_pct=0.0)


def combined_results(capital=1000.0, bill=600.0, bill_bau=800.0):
    combined = combine_results(case_results(5000.0, bill_bau), case_results(4500.0, bill))
    combined['Financial']['lifecycle_capital_costs'] = capital
    return combined


def test_year_one_savings():
    elec, om, fuel = proforma.year_one_savings(combined_results())
    assert elec == pytest.approx(200.0)
    assert om == 0.0
    assert fuel == 0.0


def test_cash_flow_table():
    flows = proforma.cash_flow_table(proforma_inputs(), combined_results())
    assert list(flows.index) == list(range(0, 11))
    assert flows.loc[0, 'net_cash_flow'] == pytest.approx(-1000.0)
    assert flows.loc[1, 'electricity_savings'] == pytest.approx(200.0)
    assert flows.loc[10, 'net_cash_flow'] == pytest.approx(200.0)


def test_simple_payback_interpolates_within_the_year():
    assert proforma.simple_payback([-1000.0] + [400.0] * 5) == pytest.approx(2.5)


def test_simple_payback_never_paid_back():
    assert proforma.simple_payback([-1000.0] + [10.0] * 5) is None


def test_internal_rate_of_return():
    assert proforma.internal_rate_of_return([-100.0, 110.0]) == pytest.approx(0.1)
    assert proforma.internal_rate_of_return([0.0, 10.0]) is None


def test_proforma_results():
    r = proforma.proforma_results(proforma_inputs(), combined_results())
    assert r['npv'] == pytest.approx(500.0)
    assert r['net_capital_costs'] == pytest.approx(1000.0)
    assert r['simple_payback_years'] == pytest.approx(5.0)
    assert r['irr_pct'] > 0
    assert len(r['annual_cash_flows']) == 11
