"""Test helpers for netharness unit tests."""

from __future__ import annotations

from .builders import (
    FOUR_PARAS_NETWORK,
    FOUR_PARAS_TEST,
    fake_network,
    fake_node_command,
    fake_topology,
    load_resolved,
    make_endpoints,
    make_registry,
    make_scenario,
    random_ports,
    write_file,
    write_four_paras,
)
from .mocks import Call, FakeInvoker, FakeReporter

__all__ = [
    # Builders
    "FOUR_PARAS_NETWORK",
    "FOUR_PARAS_TEST",
    "fake_network",
    "fake_node_command",
    "fake_topology",
    "load_resolved",
    "make_endpoints",
    "make_registry",
    "make_scenario",
    "random_ports",
    "write_file",
    "write_four_paras",
    # Mocks
    "Call",
    "FakeInvoker",
    "FakeReporter",
]
