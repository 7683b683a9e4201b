"""
Metric registry using prometheus_client.

Provides pre-defined metrics describing harness runs.
Rendered in Prometheus text format by `generate_metrics`.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a dedicated registry for harness metrics.
#
# Using a dedicated registry avoids pollution from default Python process metrics.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Steps
# -----------------------------------------------------------------------------

steps_total = Counter(
    "netharness_steps_total",
    "Steps that reached a terminal state",
    ["state"],
    registry=REGISTRY,
)

step_duration = Histogram(
    "netharness_step_duration_seconds",
    "Wall-clock duration of executed steps",
    buckets=(0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0),
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Processes and scripts
# -----------------------------------------------------------------------------

nodes_launched = Counter(
    "netharness_nodes_launched_total",
    "Node processes spawned",
    registry=REGISTRY,
)

script_invocations = Counter(
    "netharness_script_invocations_total",
    "External script invocations",
    ["invoker"],
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output as bytes.
    """
    return generate_latest(REGISTRY)
