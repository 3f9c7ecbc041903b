"""
Pro forma cash flows of the optimal case relative to business as usual, with net present value,
simple payback and internal rate of return.

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

import numpy as np
import numpy_financial as npf
import pandas as pd


def year_one_savings(results):
    """
    Year one savings before tax relative to business as usual, from combined results.
    :param results: combined results with _bau keys
    :return: (electricity savings, O&M savings, fuel savings)
    """
    tariff = results['ElectricTariff']
    financial = results['Financial']

    elec = (tariff['year_one_bill_bau'] - tariff['year_one_bill']) \
        + (tariff['year_one_coincident_peak_cost_bau'] - tariff['year_one_coincident_peak_cost']) \
        + (tariff['year_one_export_benefit'] - tariff['year_one_export_benefit_bau'])
    om = financial['year_one_om_costs_before_tax_bau'] - financial['year_one_om_costs_before_tax']
    fuel = financial['year_one_fuel_costs_before_tax_bau'] - financial['year_one_fuel_costs_before_tax']
    return elec, om, fuel


def cash_flow_table(p, results):
    """
    After tax cash flows by year: the net capital cost in year zero, then escalated electricity, O&M and
    fuel savings.
    :param p: Inputs of the optimal case
    :param results: combined results with _bau keys
    :return: pandas DataFrame indexed by year
    """
    fin = p.s.financial
    elec, om, fuel = year_one_savings(results)
    if len(p.techs.chp) > 0 or len(p.techs.boiler) > 0:
        fuel_escalation = fin.boiler_fuel_cost_escalation_pct
    else:
        fuel_escalation = fin.generator_fuel_cost_escalation_pct

    years = np.arange(0, p.analysis_years + 1)
    escalate = np.where(years > 0, 1.0, 0.0)
    flows = pd.DataFrame(index=pd.Index(years, name='year'))
    flows['electricity_savings'] = escalate * elec * (1 + fin.elec_cost_escalation_pct) ** (years - 1) \
        * (1 - p.offtaker_tax_pct)
    flows['om_savings'] = escalate * om * (1 + fin.om_cost_escalation_pct) ** (years - 1) * (1 - p.owner_tax_pct)
    flows['fuel_savings'] = escalate * fuel * (1 + fuel_escalation) ** (years - 1) * (1 - p.offtaker_tax_pct)
    flows['capital_costs'] = 0.0
    flows.loc[0, 'capital_costs'] = -1 * results['Financial']['lifecycle_capital_costs']
    flows['net_cash_flow'] = flows[['electricity_savings', 'om_savings', 'fuel_savings', 'capital_costs']].sum(axis=1)
    return flows


def simple_payback(cash_flows):
    """
    Years until the cumulative undiscounted cash flow turns non-negative, interpolated within the year;
    None when the investment is not paid back within the analysis period.
    """
    if cash_flows[0] >= 0:
        return 0.0
    cumulative = np.cumsum(cash_flows)
    for year in range(1, len(cash_flows)):
        if cumulative[year] >= 0:
            return round(year - 1 + -1 * cumulative[year - 1] / cash_flows[year], 2)
    return None


def internal_rate_of_return(cash_flows):
    if cash_flows[0] >= 0:
        return None
    irr = npf.irr(cash_flows)
    if np.isnan(irr) or np.isinf(irr):
        return None
    return round(float(irr), 4)


def proforma_results(p, results):
    """
    Pro forma metrics of combined results.
    :param p: Inputs of the optimal case
    :param results: combined results with _bau keys
    :return: dictionary merged into the Financial results
    """
    flows = cash_flow_table(p, results)
    net = flows['net_cash_flow'].values
    r = {}
    r['npv'] = round(results['Financial']['lcc_bau'] - results['Financial']['lcc'], 2)
    r['net_capital_costs'] = round(results['Financial']['lifecycle_capital_costs'], 2)
    r['simple_payback_years'] = simple_payback(net)
    r['irr_pct'] = internal_rate_of_return(net)
    r['annual_cash_flows'] = [round(float(v), 2) for v in net]
    return r
