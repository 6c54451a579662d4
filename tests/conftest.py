import os
import sys

import pytest
import QuantLib as ql

# Allow running tests without installing the package.
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from callable_lattice.config import AppConfig  # noqa: E402
from callable_lattice.instruments import example_callable_bond  # noqa: E402
from callable_lattice.market import TermStructure, flat_forward  # noqa: E402
from callable_lattice.models import HullWhite  # noqa: E402
from callable_lattice.utils import actual_actual_bond  # noqa: E402

VAL_DATE = ql.Date(25, 2, 2019)


@pytest.fixture(autouse=True)
def evaluation_date():
    ql.Settings.instance().evaluationDate = VAL_DATE
    yield VAL_DATE


@pytest.fixture
def cfg():
    c = AppConfig(VAL_DATE, time_steps=100, a=0.03, sigma=0.10)
    c.apply_global_settings()
    return c


@pytest.fixture
def curve_handle():
    return flat_forward(VAL_DATE, 0.0275, actual_actual_bond())


@pytest.fixture
def term_structure(curve_handle):
    return TermStructure(curve_handle)


@pytest.fixture
def model(term_structure):
    return HullWhite(a=0.03, sigma=0.10, term_structure=term_structure)


@pytest.fixture
def bond():
    return example_callable_bond(issue_date=VAL_DATE, call_price=102.0)
