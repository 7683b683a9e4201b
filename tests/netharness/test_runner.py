"""Tests for run preparation and execution."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from netharness.assertions import PrometheusReporter
from netharness.bridge import JsScriptInvoker, ScriptBridge, ShellScriptInvoker
from netharness.executor import FailureKind, StepState
from netharness.runner import execute, prepare
from netharness.types import ConfigError, LaunchError
from tests.netharness.helpers import fake_network, random_ports, write_file, write_four_paras


def _python_bridge() -> ScriptBridge:
    """Bridge that runs `js-script` files with this interpreter."""
    return ScriptBridge({"js-script": JsScriptInvoker(sys.executable), "run": ShellScriptInvoker()})


class TestPrepare:
    """Tests for parsing and validating without side effects."""

    def test_four_paras(self, tmp_path: Path) -> None:
        """The plan holds the resolved steps and the topology."""
        plan = prepare(write_four_paras(tmp_path))

        assert len(plan.topology) == 8
        assert plan.scenario.steps[3].targets == ("collator-2000",)

    def test_describe(self, tmp_path: Path) -> None:
        """The dry-run outline lists nodes and steps."""
        text = prepare(write_four_paras(tmp_path)).describe()

        assert f"Network: {(tmp_path / 'network.yaml').resolve()}" in text
        assert "  validator-0 (validator): polkadot on rococo-local" in text
        assert "  collator-2003 (collator para 2003): polkadot-parachain on rococo-local-2003" in text
        assert "Steps (grouped):" in text
        assert "  step-5 [reports] on collator-2001 after step-3: " in text

    def test_unknown_target(self, tmp_path: Path) -> None:
        """A step naming no node or group fails before anything starts."""
        test_file = write_four_paras(tmp_path)
        test_file.write_text(test_file.read_text() + "charlie: is up\n")

        with pytest.raises(ConfigError, match="neither a node nor a group") as exc_info:
            prepare(test_file)

        assert exc_info.value.line == 12
        assert exc_info.value.path == test_file.resolve()

    def test_malformed_metric_key(self, tmp_path: Path) -> None:
        """A metric selector that cannot be parsed is rejected before launch."""
        test_file = write_four_paras(tmp_path)
        test_file.write_text(
            test_file.read_text() + "validator-0: reports block_height{status is 1 within 1 second\n"
        )

        with pytest.raises(ConfigError, match="invalid metric key") as exc_info:
            prepare(test_file)

        assert exc_info.value.line == 12

    def test_missing_network_file(self, tmp_path: Path) -> None:
        """The network file named by the test must exist."""
        test_file = write_file(tmp_path / "t.zndsl", "Network: ./absent.yaml\nalice: is up\n")

        with pytest.raises(ConfigError, match="cannot read network file"):
            prepare(test_file)


@pytest.mark.timeout(60)
class TestExecute:
    """Tests for full runs against fake nodes."""

    async def test_passing_run(self, tmp_path: Path) -> None:
        """Nodes are launched, steps run and every node is stopped afterwards."""
        write_file(tmp_path / "network.yaml", fake_network(validators=2, collators=1))
        write_file(
            tmp_path / "who.js",
            """
            import os, sys
            print(os.environ["NETHARNESS_NODE"], sys.argv[1:])
            sys.exit(0 if os.environ["NETHARNESS_NODE"] == "validator-0" else 1)
            """,
        )
        test_file = write_file(
            tmp_path / "basic.zndsl",
            """
            Description: fake network smoke test
            Network: ./network.yaml

            validator: reports node_roles is 4 within 10 seconds
            collator-2000: reports block height is at least 3 within 10 seconds
            validator-0: js-script ./who.js with "a,b" return is 0 within 10 seconds
            validator-1: reports peers count is at least 1 within 10 seconds
            """,
        )
        workdir = tmp_path / "work"

        report = await execute(
            prepare(test_file), workdir=workdir, bridge=_python_bridge(), ports=random_ports()
        )

        assert report.passed, report.summary()
        assert report.description == "fake network smoke test"
        assert report.step("step-3").output == "validator-0 ['a', 'b']\n"
        for name in ("validator-0", "validator-1", "collator-2000"):
            assert "stopped" in (workdir / f"{name}.log").read_text()

    async def test_failing_script(self, tmp_path: Path) -> None:
        """A failing script is reported and its dependents skipped."""
        write_file(tmp_path / "network.yaml", fake_network(validators=1))
        write_file(tmp_path / "fail.js", "raise SystemExit(2)\n")
        test_file = write_file(
            tmp_path / "t.zndsl",
            """
            Network: ./network.yaml
            validator-0: js-script ./fail.js within 10 seconds
            validator-0: reports node_roles is 4 within 10 seconds
            """,
        )

        report = await execute(
            prepare(test_file), workdir=tmp_path / "w", bridge=_python_bridge(), ports=random_ports()
        )

        assert not report.passed
        assert report.step("step-1").return_code == 2
        assert report.step("step-2").state is StepState.SKIPPED
        assert report.step("step-2").failure_kind is FailureKind.DEPENDENCY

    async def test_run_timeout_from_settings(self, tmp_path: Path) -> None:
        """The network's `settings.timeout` bounds the run when no override is given."""
        network = fake_network(validators=1).replace(
            "settings: {startup_timeout: 20}", "settings: {startup_timeout: 20, timeout: 1}"
        )
        write_file(tmp_path / "network.yaml", network)
        test_file = write_file(
            tmp_path / "t.zndsl",
            "Network: ./network.yaml\nvalidator-0: reports node_roles is 99 within 60 seconds\n",
        )

        async with PrometheusReporter() as reporter:
            report = await execute(
                prepare(test_file), workdir=tmp_path / "w", reporter=reporter, ports=random_ports()
            )

        assert report.run_timed_out
        assert report.step("step-1").failure_kind is FailureKind.RUN_TIMEOUT

    async def test_launch_error(self, tmp_path: Path) -> None:
        """A network that cannot start raises before any step runs."""
        write_file(
            tmp_path / "network.yaml",
            """
            relaychain:
              default_command: /nonexistent/polkadot
              nodes: [{name: alice}]
            """,
        )
        test_file = write_file(tmp_path / "t.zndsl", "Network: ./network.yaml\nalice: is up\n")

        with pytest.raises(LaunchError, match="binary not found"):
            await execute(prepare(test_file), workdir=tmp_path / "w", ports=random_ports())
