"""
Shared pytest fixtures for interop tests.

Provides a network directory of fake nodes and a session-wide port allocator.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

from netharness.bridge import JsScriptInvoker, ScriptBridge, ShellScriptInvoker
from netharness.supervisor import PortAllocator
from tests.netharness.helpers import random_ports

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


@pytest.fixture(scope="session")
def port_allocator() -> PortAllocator:
    """
    Provide a shared port allocator across all tests.

    Session-scoped to prevent port conflicts from TIME_WAIT state.
    Each network gets ports that no earlier network used.
    """
    return random_ports()


@pytest.fixture
def bridge() -> ScriptBridge:
    """Bridge whose `js-script` runtime is this interpreter, so scripts can be Python."""
    return ScriptBridge(
        {"js-script": JsScriptInvoker(runtime=sys.executable), "run": ShellScriptInvoker()}
    )


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """Directory for node data and logs."""
    return tmp_path / "work"
