import copy
import math

import pytest

HOURS = 8760


def solar_profile(n_time_steps=HOURS):
    """Production factor that rises and falls between 6am and 6pm every day."""
    return [max(0.0, math.sin(math.pi * ((h % 24) - 6) / 12.0)) for h in range(n_time_steps)]


@pytest.fixture
def base_scenario():
    """A site with a flat load, a flat energy rate, monthly demand charges, PV and battery storage."""
    return {
        'Settings': {'add_soc_incentive': False},
        'Site': {'latitude': 39.7, 'longitude': -105.2},
        'Financial': {'analysis_years': 20, 'offtaker_discount_pct': 0.07, 'offtaker_tax_pct': 0.26},
        'ElectricLoad': {'loads_kw': [100.0] * HOURS},
        'ElectricTariff': {
            'energy_rates': 0.15,
            'monthly_demand_rates': 10.0,
        },
        'PV': {'max_kw': 500.0, 'production_factor_series': solar_profile()},
        'ElecStorage': {'max_kw': 200.0, 'max_kwh': 800.0},
    }


@pytest.fixture
def outage_scenario(base_scenario):
    d = copy.deepcopy(base_scenario)
    d['Generator'] = {'max_kw': 200.0, 'only_runs_during_grid_outage': True}
    d['ElectricUtility'] = {
        'outage_durations': [2, 4],
        'outage_probabilities': [0.6, 0.4],
        'outage_start_time_steps': [12, 4000],
    }
    d['Financial']['value_of_lost_load_per_kwh'] = 100.0
    return d


@pytest.fixture
def mpc_scenario():
    """A 24 hour horizon with fixed PV and battery sizes."""
    n = 24
    return {
        'Settings': {'add_soc_incentive': False},
        'ElectricLoad': {'loads_kw': [50.0] * n},
        'ElectricTariff': {
            'energy_rates': [0.10] * 12 + [0.30] * 12,
            'monthly_demand_rates': [5.0],
            'time_steps_monthly': [list(range(1, n + 1))],
            'monthly_previous_peak_demands': [40.0],
            'export_rates': [0.05] * n,
            'net_metering': False,
        },
        'PV': {'size_kw': 30.0, 'production_factor_series': solar_profile(n)},
        'ElecStorage': {'size_kw': 20.0, 'size_kwh': 80.0},
    }
