from .base import PricingEngine
from .discretized import DiscretizedCallableBond
from .tree import TreeCallableBondEngine, TreeResult, price
