"""Callable bond pricing on a Hull-White trinomial tree (QuantLib).

This package provides:
- Market views (flat / CSV discount curves) and instrument definitions
- A one-factor Hull-White model, time grid and fitted trinomial lattice
- A backward-induction engine for callable fixed-rate bonds
- An orchestrator comparing the manual tree with QuantLib references,
  plus effective duration/convexity and sensitivity sweeps
- The companion examples: fixed-rate bond analytics, FX and basket options
"""

from .config import AppConfig
from .engines import TreeCallableBondEngine, price
from .errors import (
    CalibrationError,
    InvalidConfiguration,
    LatticeInstabilityError,
    NumericalInstabilityError,
    PricingError,
)
from .grid import TimeGrid
from .instruments import Callability, CallabilitySchedule, CallableBondSpec, PriceType
from .lattice import TrinomialLattice, build_lattice
from .market import MarketLoader, TermStructure, flat_forward
from .models import HullWhite
from .pricer import MasterPricer
