"""Tests for harness metrics."""

from __future__ import annotations

from netharness.metrics import REGISTRY, generate_metrics, steps_total


class TestGenerateMetrics:
    """Tests for the Prometheus text rendering."""

    def test_harness_metrics_exposed(self) -> None:
        """Every harness metric is rendered."""
        text = generate_metrics().decode()

        for name in (
            "netharness_steps_total",
            "netharness_step_duration_seconds",
            "netharness_nodes_launched_total",
            "netharness_script_invocations_total",
        ):
            assert f"# HELP {name}" in text

    def test_dedicated_registry(self) -> None:
        """Default process and platform collectors are not included."""
        text = generate_metrics().decode()

        assert "process_cpu_seconds_total" not in text
        assert "python_info" not in text

    def test_counter_values(self) -> None:
        """Increments show up in the dedicated registry."""
        before = REGISTRY.get_sample_value("netharness_steps_total", {"state": "passed"}) or 0.0

        steps_total.labels(state="passed").inc()

        assert REGISTRY.get_sample_value("netharness_steps_total", {"state": "passed"}) == (
            before + 1
        )
