"""
module to store file in and out related function

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

import csv as _csv
import json as _json
import numpy as _np


def listfromfile(path, stripwhitespace=True, removerowblanks=True):
    """Reads data from a CSV file into a list

    Args:
        path (string): File path
        stripwhitespace (bool): strip whitespace from each value. Defaults to True.
        removerowblanks (bool): if True, empty strings "" are ignored. Defaults to True.

    Returns:
        list: list of data by row

        If the data is 1 dimensional, a single dimension is returned

    """
    data = [parserow(row, stripwhitespace, removerowblanks) for row in csvreader(path)]
    data = [row for row in data if len(row) > 0]
    if all([len(d) == 1 for d in data]):  # checks to see if 1d
        data = flatten_list(data)

    return data


def seriesfromfile(path):
    """Reads a one-column CSV file of numbers (an hourly profile, for example) into a numpy array.

    A header row, if present, is skipped.
    """
    data = listfromfile(path)
    if len(data) > 0 and not is_number(data[0]):
        data = data[1:]
    bad_rows = [i for i, d in enumerate(data) if not is_number(d)]
    if bad_rows:
        raise ValueError("Non-numeric values in {} at rows {}".format(path, bad_rows[:10]))
    return _np.array(data, dtype=float)


def dictfromjson(path):
    """Reads a JSON file (a scenario definition, for example) into a dictionary."""
    with open(path, 'r') as infile:
        return _json.load(infile)


def jsonwriter(path, data):
    """Writes a (possibly nested) dictionary of results to a JSON file."""
    with filewriter(path) as outfile:
        _json.dump(data, outfile, indent=2, default=_json_default)


def _json_default(obj):
    if isinstance(obj, _np.integer):
        return int(obj)
    if isinstance(obj, _np.floating):
        return float(obj)
    if isinstance(obj, _np.ndarray):
        return obj.tolist()
    raise TypeError("{} is not JSON serializable".format(type(obj)))


def is_strint(s):
    """
    Checks to see if a string is an integer.

    Args:
        s (string)

    Returns:
        Boolean
    """
    try:
        int(s)
        return True
    except ValueError:
        return False


def is_strnumeric(s):
    """
    Checks to see if a string is numeric.

    Args:
        s (string)

    Returns:
        Boolean
    """
    try:
        float(s)
        return True
    except ValueError:
        return False


def is_number(d):
    return isinstance(d, (int, float)) and not isinstance(d, bool)


def is_strbool(s):
    return s.lower() in ('true', 't', 'false', 'f')


def csvreader(path):
    """Returns a generator that yields one line of a file at a time"""
    with open(path, 'r') as infile:
        for row in _csv.reader(infile, delimiter=','):
            yield row


def filewriter(path, buffering=-1):
    """Creates new text file."""
    return open(path, 'w', newline='', buffering=buffering)


def parserow(row, stripwhitespace=True, removerowblanks=False):
    """Parse row takes a list of strings and sets datatypes

    Datatyping is done in a specific order:
        1. First, white space is deleted and blanks are removed
        2. Next, the data is made an integer if possible
        3. Next, the data is made a floating point number if possible
        4. Next, the data is made a boolean if possible
        5. Next, is the string 'None'
        6. Otherwise, the data is left as a string

    Args:
        row (list): list of strings to parse
        removerowblanks (bool): remove empty strings. Defaults to False.

    Returns:
        list: the list after data has been parsed

    Example:
        >>> parserow(['8760', '1.5', 'true', 'PV', ''])
        [8760, 1.5, True, 'PV', '']

    """
    if stripwhitespace:
        row = [s.strip() for s in row]
    if removerowblanks:
        row = [s for s in row if s != '']

    newdata = []
    for d in row:
        if is_strint(d):
            newdata.append(int(d))
        elif is_strnumeric(d):
            newdata.append(float(d))
        elif is_strbool(d):
            newdata.append(d.lower() in ('true', 't'))
        elif d.lower() == 'none':
            newdata.append(None)
        else:
            newdata.append(d)

    return newdata


def flatten_list(list_to_flatten):
    """
    Collapse a list of lists into a single list
    """
    return [item for sublist in list_to_flatten for item in sublist]
