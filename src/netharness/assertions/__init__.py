"""Assertion engine: polls node reporting interfaces until predicates hold."""

from .engine import AssertionEngine, AssertionResult
from .reporter import PrometheusReporter, Reporter, normalize

__all__ = [
    # Engine
    "AssertionEngine",
    "AssertionResult",
    # Reporting
    "PrometheusReporter",
    "Reporter",
    "normalize",
]
