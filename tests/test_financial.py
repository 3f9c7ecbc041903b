import pytest

from deropt.financial import annuity, levelization_factor, npv, effective_cost


def test_annuity_one_year_is_discounted_payment():
    assert annuity(1, 0.0, 0.1) == pytest.approx(0.90909)


def test_annuity_without_net_discounting_is_number_of_years():
    assert annuity(25, 0.05, 0.05) == 25


def test_annuity_escalation_increases_present_worth():
    assert annuity(20, 0.03, 0.08) > annuity(20, 0.0, 0.08)


def test_levelization_factor_without_degradation_is_one():
    assert levelization_factor(25, 0.023, 0.083, 0.0) == pytest.approx(1.0, abs=1e-4)


def test_levelization_factor_with_degradation_is_below_one():
    assert levelization_factor(25, 0.023, 0.083, 0.005) < 1.0


def test_npv_discounts_from_year_zero():
    assert npv(0.1, [100.0, 110.0]) == pytest.approx(200.0)


def test_effective_cost_without_incentives_is_installed_cost():
    cost = effective_cost(itc_basis=1000.0, replacement_cost=0.0, replacement_year=10, discount_rate=0.1,
                          tax_rate=0.26, itc=0.0, macrs_schedule=[], macrs_bonus_pct=0.0, macrs_itc_reduction=0.5)
    assert cost == pytest.approx(1000.0)


def test_effective_cost_itc_is_received_at_end_of_year_one():
    cost = effective_cost(itc_basis=1000.0, replacement_cost=0.0, replacement_year=10, discount_rate=0.1,
                          tax_rate=0.26, itc=0.3, macrs_schedule=[], macrs_bonus_pct=0.0, macrs_itc_reduction=0.5)
    assert cost == pytest.approx(1000.0 - 300.0 / 1.1, abs=1e-3)


def test_effective_cost_adds_discounted_replacement():
    cost = effective_cost(itc_basis=0.0, replacement_cost=100.0, replacement_year=1, discount_rate=0.1,
                          tax_rate=0.0, itc=0.0, macrs_schedule=[], macrs_bonus_pct=0.0, macrs_itc_reduction=0.5)
    assert cost == pytest.approx(100.0 / 1.1, abs=1e-3)


def test_effective_cost_depreciation_lowers_cost():
    without = effective_cost(itc_basis=1000.0, replacement_cost=0.0, replacement_year=10, discount_rate=0.08,
                             tax_rate=0.26, itc=0.0, macrs_schedule=[], macrs_bonus_pct=0.0,
                             macrs_itc_reduction=0.5)
    with_macrs = effective_cost(itc_basis=1000.0, replacement_cost=0.0, replacement_year=10, discount_rate=0.08,
                                tax_rate=0.26, itc=0.0, macrs_schedule=[0.2, 0.32, 0.192, 0.1152, 0.1152, 0.0576],
                                macrs_bonus_pct=0.0, macrs_itc_reduction=0.5)
    assert with_macrs < without


def test_effective_cost_is_never_negative():
    cost = effective_cost(itc_basis=100.0, replacement_cost=0.0, replacement_year=10, discount_rate=0.08,
                          tax_rate=0.26, itc=0.0, macrs_schedule=[], macrs_bonus_pct=0.0, macrs_itc_reduction=0.5,
                          rebate_per_kw=500.0)
    assert cost == 0.0
