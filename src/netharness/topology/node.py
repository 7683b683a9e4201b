"""Node descriptions produced by the topology loader."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class NodeRole(StrEnum):
    """Role a node plays in the test network."""

    VALIDATOR = "validator"
    """Relay chain validator."""

    COLLATOR = "collator"
    """Parachain collator."""


@dataclass(frozen=True, slots=True)
class NodeSpec:
    """
    Immutable description of one node of the network.

    Carries everything the supervisor needs to launch the process,
    but no runtime state.
    """

    name: str
    """Unique node name."""

    role: NodeRole
    """Validator or collator."""

    index: int
    """Position among the nodes of the same role, starting at 0."""

    chain: str
    """Chain spec name."""

    command: str
    """Binary to launch."""

    args: tuple[str, ...] = ()
    """Extra arguments appended after the role defaults."""

    env: tuple[tuple[str, str], ...] = ()
    """Extra environment variables, as sorted pairs."""

    para_id: int | None = None
    """Parachain id (collators only)."""

    group: str | None = field(default=None)
    """Group this node was expanded from, if any."""

    @property
    def is_validator(self) -> bool:
        """True for relay chain validators."""
        return self.role is NodeRole.VALIDATOR

    @property
    def is_collator(self) -> bool:
        """True for parachain collators."""
        return self.role is NodeRole.COLLATOR
