"""
Capital costs of technologies, with piecewise-linear cost curves for technologies priced by size.

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

from pyomo.environ import Set, Var, Constraint, Binary, NonNegativeReals

from deropt.variables import binary_warning


def add_capex_constraints(ctx):
    """
    Capital cost of technologies with a single cost per kW: the effective cost per kW times the purchased size.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p
    segmented = set(p.techs.segmented)

    ctx.add_cost('tech_capital', 'linear', p.third_party_factor * sum(
        p.cap_cost_slope[t] * m.Purchase_Size_kW[t] for t in m.TECHS if t not in segmented
    ))
    return ctx


def add_cost_curve_vars_and_constraints(ctx):
    """
    Piecewise-linear capital costs. Exactly one segment of each segmented technology is active, and the
    purchased size lies within the active segment, whose cost is slope * size + intercept.
    :param ctx: BuildContext
    :return: BuildContext
    """
    m = ctx.m
    p = ctx.p

    binary_warning("segmented technology cost curves")
    ctx.add('SEGMENTS', Set(dimen=2, ordered=True,
                            initialize=[(t, k) for t in p.techs.segmented for k in range(1, p.n_segs_by_tech[t] + 1)],
                            doc="(technology, cost curve segment) pairs"))
    ctx.add('SEGMENTED_TECHS', Set(initialize=p.techs.segmented, ordered=True))
    ctx.add('Segment_Size_kW', Var(m.SEGMENTS, within=NonNegativeReals))
    ctx.add('Segment_Active', Var(m.SEGMENTS, within=Binary))

    def one_segment_rule(model, t):
        return sum(model.Segment_Active[t, k] for k in range(1, p.n_segs_by_tech[t] + 1)) == 1

    def segment_min_rule(model, t, k):
        return model.Segment_Size_kW[t, k] >= p.seg_min_size[t, k] * model.Segment_Active[t, k]

    def segment_max_rule(model, t, k):
        return model.Segment_Size_kW[t, k] <= p.seg_max_size[t, k] * model.Segment_Active[t, k]

    def segment_purchase_rule(model, t):
        return sum(model.Segment_Size_kW[t, k] for k in range(1, p.n_segs_by_tech[t] + 1)) \
            == model.Purchase_Size_kW[t]

    ctx.add('One_Segment_Active', Constraint(m.SEGMENTED_TECHS, rule=one_segment_rule))
    ctx.add('Segment_Size_Min', Constraint(m.SEGMENTS, rule=segment_min_rule))
    ctx.add('Segment_Size_Max', Constraint(m.SEGMENTS, rule=segment_max_rule))
    ctx.add('Segment_Purchase_Size', Constraint(m.SEGMENTED_TECHS, rule=segment_purchase_rule))

    ctx.add_cost('tech_capital', 'cost_curve', p.third_party_factor * sum(
        p.seg_slope[t, k] * m.Segment_Size_kW[t, k] + p.seg_yint[t, k] * m.Segment_Active[t, k]
        for (t, k) in m.SEGMENTS
    ))
    return ctx


def add_storage_capex(ctx):
    """Storage capital cost per kW of power and per kWh of energy capacity."""
    m = ctx.m
    p = ctx.p
    s = p.storage

    ctx.add_cost('storage_capital', 'storage', p.third_party_factor * sum(
        s.installed_cost_per_kw[b] * m.Storage_Power_kW[b] + s.installed_cost_per_kwh[b] * m.Storage_Energy_kWh[b]
        for b in m.STORAGE_TYPES
    ))
    return ctx


def add_size_om_costs(ctx):
    """Fixed O&M per kW of technology size."""
    m = ctx.m
    p = ctx.p

    ctx.add_cost('size_om', 'techs', p.third_party_factor * p.pwf_om * sum(
        p.om_cost_per_kw[t] * m.Size_kW[t] for t in m.TECHS
    ))
    return ctx
