"""Tests for the command-line interface."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from netharness.__main__ import (
    EXIT_CONFIG_ERROR,
    EXIT_FAILED,
    EXIT_LAUNCH_ERROR,
    EXIT_PASSED,
    build_parser,
    main,
)
from tests.netharness.helpers import fake_network, write_file, write_four_paras


def _write_run(tmp_path: Path, *, script_exit: int) -> Path:
    """A fake network plus a test file whose `run` script exits with the given code."""
    write_file(tmp_path / "network.yaml", fake_network(validators=1))
    write_file(
        tmp_path / "check.py",
        f"#!{sys.executable}\nimport sys\nprint('checked')\nsys.exit({script_exit})\n",
        executable=True,
    )
    return write_file(
        tmp_path / "t.zndsl",
        """
        Description: cli run
        Network: ./network.yaml
        validator-0: is up within 10 seconds
        validator-0: run ./check.py within 10 seconds
        """,
    )


class TestParser:
    """Tests for argument parsing."""

    def test_run_arguments(self) -> None:
        """The run sub-command accepts its options."""
        args = build_parser().parse_args(
            ["-v", "run", "t.zndsl", "--report", "r.json", "--run-timeout", "90", "--dry-run"]
        )

        assert args.verbose
        assert args.command == "run"
        assert args.test_file == Path("t.zndsl")
        assert args.report == Path("r.json")
        assert args.run_timeout == 90.0
        assert args.dry_run

    def test_command_required(self) -> None:
        """Running without a sub-command is a usage error."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args([])
        assert exc_info.value.code == 2

    def test_non_positive_run_timeout(self, tmp_path: Path) -> None:
        """A run deadline must be positive."""
        with pytest.raises(SystemExit) as exc_info:
            main(["run", str(tmp_path / "t.zndsl"), "--run-timeout", "0"])
        assert exc_info.value.code == 2


class TestExitCodes:
    """Tests for the process exit code of `run`."""

    def test_dry_run(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """A dry run validates and prints the plan without launching."""
        code = main(["--no-color", "run", str(write_four_paras(tmp_path)), "--dry-run"])

        assert code == EXIT_PASSED
        out = capsys.readouterr().out
        assert "collator-2000 (collator para 2000)" in out
        assert not list(tmp_path.glob("*.log"))

    def test_malformed_test_file(self, tmp_path: Path) -> None:
        """Malformed input exits with the configuration error code."""
        test_file = write_file(tmp_path / "t.zndsl", "Network: ./n.yaml\nalice: dances\n")

        assert main(["run", str(test_file)]) == EXIT_CONFIG_ERROR

    def test_missing_test_file(self, tmp_path: Path) -> None:
        """A missing test file is a configuration error."""
        assert main(["run", str(tmp_path / "absent.zndsl")]) == EXIT_CONFIG_ERROR

    def test_launch_error(self, tmp_path: Path) -> None:
        """A network that cannot start exits with the launch error code."""
        write_file(
            tmp_path / "network.yaml",
            """
            relaychain:
              default_command: /nonexistent/polkadot
              nodes: [{name: alice}]
            """,
        )
        test_file = write_file(tmp_path / "t.zndsl", "Network: ./network.yaml\nalice: is up\n")

        assert main(["run", str(test_file), "--workdir", str(tmp_path / "w")]) == EXIT_LAUNCH_ERROR

    @pytest.mark.timeout(60)
    def test_passing_run(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Every step passing exits 0 and writes the report and metrics."""
        test_file = _write_run(tmp_path, script_exit=0)
        report_path = tmp_path / "out" / "report.json"
        metrics_path = tmp_path / "metrics.prom"

        code = main(
            [
                "run",
                str(test_file),
                "--workdir",
                str(tmp_path / "w"),
                "--report",
                str(report_path),
                "--metrics-out",
                str(metrics_path),
            ]
        )

        assert code == EXIT_PASSED
        assert capsys.readouterr().out.splitlines()[-1].startswith("PASSED: 2 passed")

        report = json.loads(report_path.read_text())
        assert report["passed"] is True
        assert report["description"] == "cli run"
        assert report["steps"][1]["returnCode"] == 0
        assert report["steps"][1]["output"] == "checked\n"
        assert "netharness_steps_total" in metrics_path.read_text()

    @pytest.mark.timeout(60)
    def test_failing_run(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """A failed step exits 1 and the summary names it."""
        test_file = _write_run(tmp_path, script_exit=5)

        code = main(["run", str(test_file), "--workdir", str(tmp_path / "w")])

        assert code == EXIT_FAILED
        out = capsys.readouterr().out
        assert "[   FAILED] step-2" in out
        assert "observed 5" in out
        assert out.splitlines()[-1].startswith("FAILED: 1 passed, 1 failed")
