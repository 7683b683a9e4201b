"""
Metrics module for observability.

Counts steps, node launches and script invocations across harness runs.
Exposes metrics in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    generate_metrics,
    nodes_launched,
    script_invocations,
    step_duration,
    steps_total,
)

__all__ = [
    "REGISTRY",
    "generate_metrics",
    "nodes_launched",
    "script_invocations",
    "step_duration",
    "steps_total",
]
