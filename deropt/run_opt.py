#!/usr/bin/env python
# coding: utf-8
"""
This script runs DEROPT by:
1. Loading the scenario and building the model inputs
2. Building the model
3. Solving the model (the business-as-usual and optimal cases concurrently)
4. Loading results
5. Writing results files

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

# DEROPT modules
from deropt import load_data
from deropt import model_formulation
from deropt import export_results
from deropt import create_results_summary
from deropt import proforma
from deropt import fileio

# Pyomo modules
from pyomo.environ import SolverFactory, Var
from pyomo.opt import TerminationCondition
from pyomo.common.tempfiles import TempfileManager

# Third-party modules
import os
import sys
import time
import datetime
from multiprocessing.pool import ThreadPool


# Directory structure
class DirStructure:
    """
    Directory and file structure of a scenario, relative to the working directory.
    """

    def __init__(self, directory, scenario_name):
        self.DIRECTORY = directory
        self.INPUTS_DIRECTORY = os.path.join(self.DIRECTORY, "inputs")
        self.RESULTS_DIRECTORY = os.path.join(self.DIRECTORY, "results")
        self.LOGS_DIRECTORY = os.path.join(self.DIRECTORY, "logs")
        self.SCENARIO_NAME = scenario_name
        self.SCENARIO_INPUTS_DIRECTORY = os.path.join(self.INPUTS_DIRECTORY, scenario_name)
        self.SCENARIO_RESULTS_DIRECTORY = os.path.join(self.RESULTS_DIRECTORY, scenario_name)
        self.SCENARIO_LOGS_DIRECTORY = os.path.join(self.LOGS_DIRECTORY, scenario_name)
        self.SCENARIO_FILE = os.path.join(self.SCENARIO_INPUTS_DIRECTORY, "scenario.json")

    def make_directories(self):
        for directory in (self.RESULTS_DIRECTORY, self.LOGS_DIRECTORY,
                          self.SCENARIO_RESULTS_DIRECTORY, self.SCENARIO_LOGS_DIRECTORY):
            if not os.path.exists(directory):
                os.mkdir(directory)


# Logging
class Logger:
    """
    The print statement will call the write() method of any object you assign to sys.stdout,
    so assign the terminal (stdout) and a log file as output destinations.
    """
    def __init__(self, directory_structure):
        self.terminal = sys.stdout
        self.log_file_path = os.path.join(
            directory_structure.SCENARIO_LOGS_DIRECTORY,
            datetime.datetime.now().strftime('%Y-%m-%d_%H-%M-%S') + "_" +
            str(directory_structure.SCENARIO_NAME) + ".log"
        )
        self.log_file = fileio.filewriter(self.log_file_path, buffering=1)

    def write(self, message):
        self.terminal.write(message)
        self.log_file.write(message)

    def flush(self):
        self.terminal.flush()
        self.log_file.flush()

    def close(self):
        self.log_file.close()


def solve(model, settings):
    """Solve the model and classify the outcome.

    Args:
        model (ConcreteModel): Model to solve.
        settings (Settings): Solver name, time limit and log echo.

    Returns:
        status (str): "optimal", "timed-out" (time limit reached with a feasible solution), or "not optimal".
        solver_seconds (float): Wall-clock solve duration.
    """
    solver = SolverFactory(settings.solver_name)
    solve_kwargs = {'tee': settings.tee, 'load_solutions': False}
    if settings.time_limit_seconds is not None:
        solve_kwargs['timelimit'] = settings.time_limit_seconds

    print('Solving...')
    tstart = time.time()
    results = solver.solve(model, **solve_kwargs)
    solver_seconds = round(time.time() - tstart, 3)

    termination = results.solver.termination_condition
    if termination == TerminationCondition.optimal:
        status = "optimal"
    elif termination == TerminationCondition.maxTimeLimit and len(results.solution) > 0:
        status = "timed-out"
    else:
        print("WARNING: Model did not solve to optimality (termination condition: {}). "
              "Returning the model instead of results.".format(termination))
        return "not optimal", solver_seconds

    model.solutions.load_from(results)
    # variables the solver never saw (e.g. in constraints removed by presolve) have no value
    for v in model.component_data_objects(Var, descend_into=True):
        if v.value is None:
            v.set_value(0)
    print('...solved with status {} in {} seconds.'.format(status, solver_seconds))
    return status, solver_seconds


def run_deropt(p):
    """
    Build and solve the model of one case and export its results.
    :param p: Inputs
    :return: results dictionary, or the unsolved model when the solve is not optimal
    """
    model = model_formulation.build_model(p)
    status, solver_seconds = solve(model, p.settings)
    if status == "not optimal":
        return model

    results = export_results.deropt_results(model, p)
    results['status'] = status
    results['solver_seconds'] = solver_seconds
    return results


def run_with_bau(d):
    """
    Solve the business-as-usual and optimal cases of scenario dictionary d in two threads and combine their results.
    Without Settings.run_bau only the optimal case is solved.
    :param d: scenario dictionary
    :return: combined results, or the model of the first case that did not solve to optimality
    """
    p = load_data.load_inputs(d)
    if not p.settings.run_bau:
        print("WARNING: Not running the business-as-usual case because Settings.run_bau is False.")
        results = run_deropt(p)
        if isinstance(results, dict):
            create_results_summary.organize_multiple_pv_results(p, results)
        return results

    bau_p = load_data.load_bau_inputs(d)
    pool = ThreadPool(processes=2)
    bau_results, opt_results = pool.map(run_deropt, [bau_p, p])
    pool.close()
    pool.join()

    for results in (bau_results, opt_results):
        if not isinstance(results, dict):
            return results

    combined = create_results_summary.combine_results(bau_results, opt_results)
    combined['Financial'].update(proforma.proforma_results(p, combined))
    create_results_summary.organize_multiple_pv_results(p, combined)
    return combined


def run_scenario(directory_structure, solver_name=None):
    """
    Run a scenario: read its scenario file, solve, and write results files.
    :param directory_structure:
    :param solver_name: overrides Settings.solver_name when given
    :return:
    """
    # Write solver temporary files to the log directory
    TempfileManager.tempdir = directory_structure.SCENARIO_LOGS_DIRECTORY

    d = fileio.dictfromjson(directory_structure.SCENARIO_FILE)
    if solver_name is not None:
        d.setdefault('Settings', {})['solver_name'] = solver_name

    results = run_with_bau(d)
    if not isinstance(results, dict):
        print("WARNING: No results written for scenario {}.".format(directory_structure.SCENARIO_NAME))
        return results

    print('\nLifecycle cost is: {:,.2f}'.format(results['Financial']['lcc']))
    create_results_summary.write_results(results, directory_structure.SCENARIO_RESULTS_DIRECTORY)
    print('Done.')
    return results


def main():
    # Scenario to run is given as first script argument (0th argument is the script name)
    # this must be the same name as a folder in the 'inputs' directory
    scenario_name = sys.argv[1]
    solver_name = sys.argv[2] if len(sys.argv) >= 3 else None

    dir_str = DirStructure(os.getcwd(), scenario_name)
    dir_str.make_directories()
    logger = Logger(dir_str)
    print('Running scenario {}...'.format(scenario_name))
    print('Logging run to {}...'.format(logger.log_file_path))
    stdout = sys.stdout
    sys.stdout = logger
    try:
        run_scenario(dir_str, solver_name)
    finally:
        sys.stdout = stdout  # return sys.stdout to original
        logger.close()


if __name__ == "__main__":
    main()
