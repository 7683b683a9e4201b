"""Process supervisor: node processes, their ports and the live-node registry."""

from .ports import NodePorts, PortAllocator
from .process import GRACE_PERIOD, NodeProcess
from .registry import NodeEndpoints, NodeHandle, NodeRegistry
from .supervisor import ROLE_ARGS, ProcessSupervisor, expand_args

__all__ = [
    # Ports
    "NodePorts",
    "PortAllocator",
    # Processes
    "GRACE_PERIOD",
    "NodeProcess",
    "ProcessSupervisor",
    "ROLE_ARGS",
    "expand_args",
    # Registry
    "NodeEndpoints",
    "NodeHandle",
    "NodeRegistry",
]
