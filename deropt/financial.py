"""
Present-worth factors and after-incentive capital costs.

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


def annuity(years, rate_escalation, rate_discount):
    """
    Present worth factor of a stream of payments that starts at 1 in year one and escalates each year.
    :param years: number of payments
    :param rate_escalation: annual escalation of the payment
    :param rate_discount: annual discount rate
    :return: present worth factor, rounded to 5 digits
    """
    x = (1 + rate_escalation) / (1 + rate_discount)
    if x == 1:
        return years
    return round(x * (1 - x ** years) / (1 - x), 5)


def levelization_factor(years, rate_escalation, rate_discount, rate_degradation):
    """
    Ratio of the present worth of a degrading production stream valued at an escalating electricity price
    to the present worth of a non-degrading one (the annuity used for pwf_e).
    Production variables are multiplied by this factor so that year-one production stands in for the
    average production over the analysis period.
    """
    num = 0.0
    for yr in range(1, years + 1):
        num += (1 + rate_escalation) ** yr / (1 + rate_discount) ** yr * (1 - rate_degradation) ** (yr - 1)
    den = annuity(years, rate_escalation, rate_discount)
    return round(num / den, 5)


def npv(rate, cash_flows):
    """Net present value of cash_flows, where the first cash flow occurs in year zero."""
    return sum(cf / (1 + rate) ** i for i, cf in enumerate(cash_flows))


def effective_cost(itc_basis, replacement_cost, replacement_year, discount_rate, tax_rate, itc, macrs_schedule,
                   macrs_bonus_pct, macrs_itc_reduction, rebate_per_kw=0.0):
    """
    Capital cost per unit of size net of the investment tax credit, MACRS depreciation (with bonus
    depreciation), rebates, and the discounted after-tax cost of a mid-life replacement.
    Tax savings are taken at the end of each year, starting with year one.
    :param itc_basis: installed cost per unit of size
    :param replacement_cost: replacement cost per unit of size
    :param replacement_year: year in which the replacement occurs
    :param discount_rate: owner's discount rate
    :param tax_rate: owner's tax rate
    :param itc: investment tax credit fraction
    :param macrs_schedule: fraction of the depreciable basis depreciated in each year
    :param macrs_bonus_pct: fraction of the depreciable basis depreciated in year one
    :param macrs_itc_reduction: fraction of the ITC that reduces the depreciable basis
    :param rebate_per_kw: rebate per unit of size
    :return: effective cost per unit of size, never negative
    """
    depr_basis = itc_basis * (1 - macrs_itc_reduction * itc)
    bonus_depreciation = depr_basis * macrs_bonus_pct
    depr_basis -= bonus_depreciation

    replacement = replacement_cost * (1 - tax_rate) / ((1 + discount_rate) ** replacement_year)

    tax_savings_array = [0.0]
    for idx, macrs_rate in enumerate(macrs_schedule):
        depreciation_amount = macrs_rate * depr_basis
        if idx == 0:
            depreciation_amount += bonus_depreciation
        tax_savings_array.append(depreciation_amount * tax_rate)
    if len(tax_savings_array) == 1:
        tax_savings_array.append(0.0)
    tax_savings_array[1] += itc_basis * itc

    tax_savings = npv(discount_rate, tax_savings_array)

    cap_cost_slope = itc_basis - tax_savings + replacement - rebate_per_kw
    if cap_cost_slope < 0:
        cap_cost_slope = 0.0
    return round(cap_cost_slope, 4)
