"""Topology loader: declarative network description to immutable node graph."""

from .config import (
    NetworkConfig,
    NodeConfig,
    NodeGroupConfig,
    ParachainConfig,
    RelaychainConfig,
    SettingsConfig,
)
from .node import NodeRole, NodeSpec
from .topology import Topology, load_topology

__all__ = [
    # Configuration
    "NetworkConfig",
    "NodeConfig",
    "NodeGroupConfig",
    "ParachainConfig",
    "RelaychainConfig",
    "SettingsConfig",
    # Graph
    "NodeRole",
    "NodeSpec",
    "Topology",
    "load_topology",
]
