"""
Several sites optimized together in one model, each site built in its own block and the objective summing the
lifecycle costs of every site.

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

import copy

from pyomo.environ import ConcreteModel, Set, Block, Objective, minimize

from deropt import export_results
from deropt import load_data
from deropt import model_formulation
from deropt.run_opt import solve
from deropt.variables import add_bounds


def node_scenario(d):
    """
    Copy of a scenario dictionary without the inputs that are not modeled for a node: the generator and
    stochastic outages.
    """
    d = copy.deepcopy(d)
    node = d.get('Site', {}).get('node', 1)
    if 'Generator' in d:
        print("WARNING: Generators are not modeled in multi-node mode; ignoring the Generator of node {}."
              .format(node))
        del d['Generator']
    utility = d.get('ElectricUtility', {})
    if len(utility.get('outage_durations') or []) > 0:
        print("WARNING: Outages are not modeled in multi-node mode; ignoring the outage scenarios of node {}."
              .format(node))
        for key in ('outage_durations', 'outage_probabilities', 'outage_start_time_steps'):
            utility.pop(key, None)
    return d


def check_single_tiers(p):
    """Rate tiers are not modeled in multi-node mode."""
    node = p.s.site.node
    for name, tiers in (('energy', p.energy_tiers), ('monthly demand', p.monthly_demand_tiers),
                        ('TOU demand', p.tou_demand_tiers)):
        if len(tiers) > 1:
            raise ValueError("Node {} has {} {} rate tiers; multi-node models support a single tier".format(
                node, len(tiers), name))


def load_node_inputs(scenarios):
    """
    Inputs of every node, keyed by Site.node.
    :param scenarios: list of scenario dictionaries
    :return: dictionary of node -> Inputs
    """
    ps = {}
    for d in scenarios:
        p = load_data.load_inputs(node_scenario(d))
        node = p.s.site.node
        if node in ps:
            raise ValueError("Site.node values must be unique; node {} is given more than once".format(node))
        check_single_tiers(p)
        ps[node] = p
    return ps


def build_multinode_model(ps):
    """
    One block per node with the single-site formulation, explicit variable bounds, and the objective summing
    the lifecycle costs of every node.
    :param ps: dictionary of node -> Inputs
    :return: (ConcreteModel, dictionary of node -> BuildContext)
    """
    print('Building multi-node model...')
    model = ConcreteModel(name='DEROPT_MultiNode')
    model.NODES = Set(initialize=sorted(ps.keys()), ordered=True)
    contexts = {}

    def node_rule(b, n):
        ctx = model_formulation.build_deropt(ps[n], m=b)
        contexts[n] = add_bounds(ctx)

    model.node = Block(model.NODES, rule=node_rule)

    def total_cost_rule(model):
        return sum(model.node[n].Costs - model_formulation.soc_incentive(contexts[n]) for n in model.NODES)

    model.Total_Cost = Objective(rule=total_cost_rule, sense=minimize)
    print('...model built.')
    return model, contexts


def run_multinode(scenarios):
    """
    Solve several sites together.
    :param scenarios: list of scenario dictionaries, each with a distinct Site.node
    :return: results keyed by node plus status and solver_seconds, or the unsolved model when the solve is
    not optimal
    """
    ps = load_node_inputs(scenarios)
    model, contexts = build_multinode_model(ps)
    settings = ps[model.NODES.first()].settings
    status, solver_seconds = solve(model, settings)
    if status == "not optimal":
        return model

    results = {}
    for n in model.NODES:
        results[n] = export_results.deropt_results(model.node[n], ps[n])
    results['status'] = status
    results['solver_seconds'] = solver_seconds
    return results
