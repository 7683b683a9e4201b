"""
A single supervised node process.

The process runs in its own session so that SIGTERM and SIGKILL reach the
whole process group, including any children the node binary spawns.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import IO, Final

from netharness.types import LaunchError

logger = logging.getLogger(__name__)

GRACE_PERIOD: Final = 5.0
"""Seconds a process has to exit after SIGTERM before it is killed."""


class NodeProcess:
    """
    Owns one OS process and its log file.

    Stopping is idempotent: the first call signals and reaps the process,
    later calls return immediately.
    """

    def __init__(
        self,
        name: str,
        argv: Sequence[str],
        *,
        log_path: Path,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> None:
        self.name = name
        self.argv = tuple(argv)
        self.log_path = log_path
        self.env = dict(env or {})
        self.cwd = cwd
        self._process: asyncio.subprocess.Process | None = None
        self._log: IO[bytes] | None = None
        self._stopped = False

    @property
    def pid(self) -> int | None:
        """OS process id, once spawned."""
        return self._process.pid if self._process is not None else None

    @property
    def returncode(self) -> int | None:
        """Exit code, or None while running or before spawn."""
        return self._process.returncode if self._process is not None else None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def stopped(self) -> bool:
        """Whether `stop` has already run."""
        return self._stopped

    async def start(self) -> None:
        """
        Spawn the process with stdout and stderr appended to the log file.

        Raises:
            LaunchError: If the binary is missing or not executable.
        """
        if self._process is not None:
            raise LaunchError(self.name, "process already started")

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._log = self.log_path.open("ab")

        env = os.environ.copy()
        env.update(self.env)

        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=self._log,
                stderr=asyncio.subprocess.STDOUT,
                env=env,
                cwd=self.cwd,
                start_new_session=True,
            )
        except FileNotFoundError:
            self._close_log()
            raise LaunchError(self.name, f"binary not found: {self.argv[0]}") from None
        except PermissionError:
            self._close_log()
            raise LaunchError(self.name, f"binary not executable: {self.argv[0]}") from None

        logger.info("Spawned %s (pid %d), log %s", self.name, self._process.pid, self.log_path)

    async def stop(self, grace_period: float = GRACE_PERIOD) -> None:
        """
        Terminate the process group: SIGTERM, then SIGKILL after the grace period.

        Safe to call more than once and on a process that already exited.
        """
        if self._stopped:
            return
        self._stopped = True

        process = self._process
        if process is None:
            self._close_log()
            return

        try:
            if process.returncode is None:
                self._signal(signal.SIGTERM)
                try:
                    await asyncio.wait_for(process.wait(), timeout=grace_period)
                except TimeoutError:
                    logger.warning(
                        "%s ignored SIGTERM for %.1fs, sending SIGKILL", self.name, grace_period
                    )
                    self._signal(signal.SIGKILL)
                    await process.wait()
            logger.info("Stopped %s (exit code %s)", self.name, process.returncode)
        finally:
            self._close_log()

    def tail(self, lines: int = 20) -> str:
        """Last lines of the log file, for error messages."""
        try:
            text = self.log_path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return ""
        return "\n".join(text.splitlines()[-lines:])

    def _signal(self, sig: signal.Signals) -> None:
        assert self._process is not None
        try:
            os.killpg(self._process.pid, sig)
        except ProcessLookupError:
            # Already gone between the returncode check and the signal.
            pass

    def _close_log(self) -> None:
        if self._log is not None:
            self._log.close()
            self._log = None
