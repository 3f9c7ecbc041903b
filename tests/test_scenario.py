import copy

import numpy as np
import pytest

from deropt import scenario
from deropt.scenario import (Scenario, Settings, ElectricUtility, ElectricTariff, ElecStorage, Storage, Financial,
                             PV, Generator, Technology, build_electric_load, bau_scenario_dict, check_bounds,
                             to_time_series, time_steps_by_month)


def test_check_bounds_names_every_violation():
    with pytest.raises(ValueError) as err:
        check_bounds('Thing', [('a', -1, 0, None), ('b', 2, 0, 1), ('c', 0.5, 0, 1)])
    assert 'a = -1' in str(err.value)
    assert 'b = 2' in str(err.value)
    assert 'c =' not in str(err.value)


def test_to_time_series_expands_scalar():
    series = to_time_series(0.1, 8760)
    assert len(series) == 8760
    assert np.all(series == 0.1)


def test_to_time_series_expands_monthly_values():
    series = to_time_series(list(range(1, 13)), 8760)
    assert series[0] == 1
    assert series[31 * 24] == 2
    assert series[-1] == 12


def test_to_time_series_repeats_hourly_values_within_each_hour():
    series = to_time_series(list(range(8760)), 8760 * 4, time_steps_per_hour=4)
    assert list(series[:8]) == [0, 0, 0, 0, 1, 1, 1, 1]


def test_to_time_series_rejects_other_lengths():
    with pytest.raises(ValueError):
        to_time_series([1.0, 2.0, 3.0], 8760, name='rates')


def test_time_steps_by_month_cover_the_year():
    months = time_steps_by_month()
    assert len(months) == 12
    assert months[0][0] == 1
    assert months[0][-1] == 31 * 24
    assert months[-1][-1] == 8760
    assert sum(len(m) for m in months) == 8760


def test_settings_rejects_unsupported_time_steps_per_hour():
    with pytest.raises(ValueError):
        Settings(time_steps_per_hour=3)


def test_financial_without_third_party_uses_offtaker_rates():
    fin = Financial(offtaker_tax_pct=0.3, offtaker_discount_pct=0.06, owner_tax_pct=0.1, owner_discount_pct=0.12)
    assert fin.owner_tax_pct == 0.3
    assert fin.owner_discount_pct == 0.06


def test_financial_with_third_party_keeps_owner_rates():
    fin = Financial(offtaker_tax_pct=0.3, owner_tax_pct=0.1, third_party_ownership=True)
    assert fin.owner_tax_pct == 0.1


def test_electric_load_default_critical_load_is_half_the_load():
    load = build_electric_load(loads_kw=[10.0] * 8760)
    assert load.critical_loads_kw[0] == pytest.approx(5.0)


def test_electric_load_adds_existing_production_to_net_load():
    existing = np.full(8760, 3.0)
    load = build_electric_load(loads_kw=[10.0] * 8760, existing_production_kw=existing)
    assert load.loads_kw[0] == pytest.approx(13.0)
    assert load.critical_loads_kw[0] == pytest.approx(5.0)


def test_electric_load_requires_a_source():
    with pytest.raises(ValueError):
        build_electric_load()


def test_electric_load_rejects_wrong_length():
    with pytest.raises(ValueError):
        build_electric_load(loads_kw=[10.0] * 100)


def test_electric_load_reads_reference_profile(tmp_path):
    (tmp_path / 'office_denver.csv').write_text('\n'.join(['1.0'] * 8760))
    load = build_electric_load(doe_reference_name='office', city='denver', annual_kwh=17520.0,
                               reference_profile_directory=str(tmp_path))
    assert load.loads_kw[0] == pytest.approx(2.0)


def test_electric_utility_defaults_to_equal_outage_probabilities():
    utility = ElectricUtility(outage_durations=[1, 3], outage_start_time_steps=[10])
    assert utility.outage_probabilities == [0.5, 0.5]
    assert utility.scenarios == [1, 2]
    assert utility.outage_time_steps == [1, 2, 3]


def test_electric_utility_probabilities_must_sum_to_one():
    with pytest.raises(ValueError):
        ElectricUtility(outage_durations=[1, 3], outage_probabilities=[0.5, 0.2], outage_start_time_steps=[10])


def test_electric_utility_durations_require_start_time_steps():
    with pytest.raises(ValueError):
        ElectricUtility(outage_durations=[1])


def test_tariff_net_metering_exports_at_energy_rate():
    tariff = ElectricTariff({'energy_rates': 0.2}, net_metering=True)
    assert tariff.export_bins == ['NEM']
    assert tariff.export_rates['NEM'][0] == pytest.approx(-0.2)


def test_tariff_wholesale_bin_only_with_nonzero_rate():
    assert ElectricTariff({'energy_rates': 0.2}).export_bins == []
    tariff = ElectricTariff({'energy_rates': 0.2, 'wholesale_rate': 0.03})
    assert tariff.export_bins == ['WHL']
    assert tariff.export_rates['WHL'][100] == pytest.approx(-0.03)


def test_tariff_tiered_energy_rates_are_columns():
    tariff = ElectricTariff({'tiered_energy_rates': [0.1, 0.2], 'energy_tier_limits_kwh': [1000.0]})
    assert tariff.energy_rates.shape == (8760, 2)
    assert tariff.energy_tier_limits == [1000.0, None]


def test_tariff_requires_energy_rates():
    with pytest.raises(ValueError):
        ElectricTariff({'monthly_demand_rates': 10.0})


def test_tariff_tou_rates_must_match_ratchets():
    with pytest.raises(ValueError):
        ElectricTariff({'energy_rates': 0.1, 'tou_demand_rates': [5.0, 6.0],
                        'tou_demand_ratchet_time_steps': [[1, 2, 3]]})


def test_tariff_monthly_demand_rates_by_month():
    tariff = ElectricTariff({'energy_rates': 0.1, 'monthly_demand_rates': 12.0})
    assert tariff.monthly_demand_rates.shape == (12, 1)


def test_storage_rejects_unknown_type():
    with pytest.raises(KeyError):
        Storage({'hot_water': {}}, Financial())


def test_storage_efficiencies():
    s = ElecStorage(internal_efficiency_pct=0.81, inverter_efficiency_pct=1.0, rectifier_efficiency_pct=1.0)
    assert s.charge_efficiency == pytest.approx(0.9)
    assert s.discharge_efficiency == pytest.approx(0.9)


def test_storage_incentives_lower_effective_cost():
    plain = Storage({'elec': {}}, Financial())
    rebated = Storage({'elec': {'total_rebate_per_kwh': 100.0}}, Financial())
    assert rebated.installed_cost_per_kwh['elec'] == pytest.approx(plain.installed_cost_per_kwh['elec'] - 100.0)


def test_pv_requires_production_factor():
    with pytest.raises(ValueError):
        PV()


def test_pv_rejects_unknown_location():
    with pytest.raises(ValueError):
        PV(location='carport', production_factor_series=[0.2])


def test_cost_curve_requires_matching_sizes():
    with pytest.raises(ValueError):
        Technology('Tech', installed_cost_per_kw=[1000.0, 900.0], tech_sizes_for_cost_curve=[10.0])
    with pytest.raises(ValueError):
        Technology('Tech', installed_cost_per_kw=[1000.0, 900.0], tech_sizes_for_cost_curve=[100.0, 10.0])
    tech = Technology('Tech', installed_cost_per_kw=[1000.0, 900.0], tech_sizes_for_cost_curve=[10.0, 100.0])
    assert tech.has_cost_curve


def test_generator_exports_only_when_selling_back():
    assert not Generator().can_net_meter
    assert Generator(sells_energy_back_to_grid=True).can_wholesale


def test_scenario_requires_tariff_and_load(base_scenario):
    d = copy.deepcopy(base_scenario)
    del d['ElectricTariff']
    with pytest.raises(ValueError):
        Scenario(d)


def test_scenario_rejects_duplicate_pv_names(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['PV'] = [dict(d['PV'], name='roof'), dict(d['PV'], name='roof')]
    with pytest.raises(ValueError):
        Scenario(d)


def test_scenario_without_storage_has_zero_sized_storage(base_scenario):
    d = copy.deepcopy(base_scenario)
    del d['ElecStorage']
    s = Scenario(d)
    assert s.storage.types == ['elec']
    assert s.storage.max_kw['elec'] == 0.0


def test_bau_scenario_keeps_only_existing_technologies(outage_scenario):
    d = copy.deepcopy(outage_scenario)
    d['Generator']['existing_kw'] = 50.0
    bau = bau_scenario_dict(d)

    assert 'PV' not in bau
    assert bau['Generator']['min_kw'] == bau['Generator']['max_kw'] == 50.0
    assert bau['ElecStorage'] == {'max_kw': 0.0, 'max_kwh': 0.0}
    assert 'outage_durations' not in bau['ElectricUtility']
    # the original scenario is not changed
    assert 'outage_durations' in d['ElectricUtility']
    assert d['ElecStorage']['max_kw'] == 200.0


def test_bau_scenario_fixes_existing_pv(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['PV']['existing_kw'] = 20.0
    bau = bau_scenario_dict(d)
    assert len(bau['PV']) == 1
    assert bau['PV'][0]['max_kw'] == 20.0


def test_reference_profile_requires_directory(monkeypatch):
    monkeypatch.delenv(scenario.PROFILE_DIRECTORY_VARIABLE, raising=False)
    with pytest.raises(ValueError):
        scenario.reference_profile('office')
