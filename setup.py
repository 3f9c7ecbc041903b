"""
This script contains the package metadata and dependencies of the E3 DEROPT Model.

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


from setuptools import setup

setup(
    name='e3deropt',
    version='2021.1.0',
    description='E3 DEROPT distributed energy resource sizing and dispatch model',
    url='https://www.ethree.com',
    author='Energy + Environmental Economics',
    packages=['deropt'],
    python_requires='>=3.8',
    install_requires=[
        'Pyomo>=6.4.0',
        'highspy>=1.5.3',
        'numpy>=1.13.3',
        'pandas>=0.24.0',
        'numpy-financial>=1.0.0'
    ],
    extras_require={
        'test': ['pytest>=6.0']
    }
)
