"""
In-memory network topology.

Built once from a NetworkConfig and never mutated afterwards.
Every later component refers to nodes by name through this graph.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from netharness.types import ConfigError

from .config import NetworkConfig, NodeConfig, NodeGroupConfig, SettingsConfig
from .node import NodeRole, NodeSpec


@dataclass(frozen=True, slots=True)
class Topology:
    """
    Immutable graph of the nodes in a test network.

    Invariants:

    - Node names are unique across the whole network
    - Node indices are unique per role (0..n-1 in declaration order)
    - Parachain ids are unique
    - Group names never shadow a node name
    """

    nodes: tuple[NodeSpec, ...]
    """All nodes, validators first, in declaration order."""

    groups: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    """Group name -> names of the nodes expanded from it."""

    settings: SettingsConfig = field(default_factory=SettingsConfig)
    """Network-wide timing settings."""

    def __post_init__(self) -> None:
        """Check the cross-node invariants."""
        seen: set[str] = set()
        for node in self.nodes:
            if node.name in seen:
                raise ConfigError(f"duplicate node name '{node.name}'")
            seen.add(node.name)

        for role in NodeRole:
            indices = [node.index for node in self.nodes if node.role is role]
            if len(indices) != len(set(indices)):
                raise ConfigError(f"duplicate {role} index in {sorted(indices)}")

        for group, members in self.groups.items():
            if group in seen:
                raise ConfigError(f"group name '{group}' collides with a node name")
            unknown = [name for name in members if name not in seen]
            if unknown:
                raise ConfigError(f"group '{group}' references unknown nodes {unknown}")

    @classmethod
    def from_config(cls, config: NetworkConfig) -> Topology:
        """
        Expand a network description into the node graph.

        Raises:
            ConfigError: If names, indices or parachain ids collide.
        """
        nodes: list[NodeSpec] = []
        groups: dict[str, tuple[str, ...]] = {}

        relay = config.relaychain
        validators = _expand(relay.nodes, relay.node_groups, groups)
        for index, (node, group) in enumerate(validators):
            nodes.append(
                NodeSpec(
                    name=node.name,
                    role=NodeRole.VALIDATOR,
                    index=index,
                    chain=relay.chain,
                    command=node.command or relay.default_command,
                    args=relay.default_args + node.args,
                    env=tuple(sorted(node.env.items())),
                    group=group,
                )
            )

        para_ids: set[int] = set()
        collator_index = 0
        for para in config.parachains:
            if para.id in para_ids:
                raise ConfigError(f"duplicate parachain id {para.id}")
            para_ids.add(para.id)

            singles = ((para.collator,) if para.collator is not None else ()) + para.collators
            for node, group in _expand(singles, para.collator_groups, groups):
                nodes.append(
                    NodeSpec(
                        name=node.name,
                        role=NodeRole.COLLATOR,
                        index=collator_index,
                        chain=para.chain or f"{relay.chain}-{para.id}",
                        command=node.command or para.default_command,
                        args=para.default_args + node.args,
                        env=tuple(sorted(node.env.items())),
                        para_id=para.id,
                        group=group,
                    )
                )
                collator_index += 1

        return cls(nodes=tuple(nodes), groups=MappingProxyType(groups), settings=config.settings)

    def __iter__(self) -> Iterator[NodeSpec]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, name: object) -> bool:
        return any(node.name == name for node in self.nodes)

    @property
    def names(self) -> tuple[str, ...]:
        """Node names in declaration order."""
        return tuple(node.name for node in self.nodes)

    @property
    def validators(self) -> tuple[NodeSpec, ...]:
        """Relay chain validators."""
        return tuple(node for node in self.nodes if node.is_validator)

    @property
    def collators(self) -> tuple[NodeSpec, ...]:
        """Parachain collators."""
        return tuple(node for node in self.nodes if node.is_collator)

    @property
    def parachain_ids(self) -> tuple[int, ...]:
        """Distinct parachain ids in declaration order."""
        return tuple(dict.fromkeys(n.para_id for n in self.collators if n.para_id is not None))

    def node(self, name: str) -> NodeSpec:
        """
        Look up a node by name.

        Raises:
            ConfigError: If no node has that name.
        """
        for node in self.nodes:
            if node.name == name:
                return node
        raise ConfigError(f"unknown node '{name}'")

    def resolve(self, reference: str) -> tuple[str, ...]:
        """
        Resolve a step target to node names.

        A target is either a node name or a group name. Groups expand to
        every node they produced, in index order.

        Raises:
            ConfigError: If the reference matches neither.
        """
        if reference in self.groups:
            return self.groups[reference]
        if reference in self:
            return (reference,)
        raise ConfigError(
            f"'{reference}' is neither a node nor a group (known: {', '.join(self.names)})"
        )


def load_topology(path: Path | str) -> Topology:
    """
    Parse a network file (YAML or TOML) into a topology.

    Raises:
        ConfigError: On any malformed input. Nothing is launched.
    """
    path = Path(path)
    config = NetworkConfig.from_file(path)
    try:
        return Topology.from_config(config)
    except ConfigError as exc:
        raise ConfigError(exc.detail, path=path) from exc


def _expand(
    singles: Iterable[NodeConfig],
    node_groups: Iterable[NodeGroupConfig],
    groups: dict[str, tuple[str, ...]],
) -> list[tuple[NodeConfig, str | None]]:
    """Flatten single nodes and groups into (node, group-name) pairs, recording groups."""
    expanded: list[tuple[NodeConfig, str | None]] = [(node, None) for node in singles]
    for group in node_groups:
        if group.name in groups:
            raise ConfigError(f"duplicate group name '{group.name}'")
        members = []
        for i in range(group.count):
            member = NodeConfig(
                name=f"{group.name}-{i}",
                command=group.command,
                args=group.args,
                env=group.env,
            )
            expanded.append((member, group.name))
            members.append(member.name)
        groups[group.name] = tuple(members)
    return expanded
