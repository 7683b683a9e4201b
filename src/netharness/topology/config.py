"""Network description loader.

Loads the declarative network description from YAML or TOML files.

The expected format describes a relay chain and its parachains:

    relaychain:
      chain: rococo-local
      default_command: polkadot
      node_groups:
      - name: validator
        count: 4
    parachains:
    - id: 2000
      collator:
        name: collator-2000
        command: polkadot-parachain
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, model_validator

from netharness.config import STARTUP_TIMEOUT
from netharness.types import ConfigError, ConfigModel


class NodeConfig(ConfigModel):
    """A single, explicitly named node."""

    name: str = Field(min_length=1)
    """Unique node name, used as the step target in test files."""

    command: str | None = None
    """Binary to launch. Falls back to the chain's default command."""

    args: tuple[str, ...] = ()
    """Extra command-line arguments, appended after the role defaults."""

    env: dict[str, str] = Field(default_factory=dict)
    """Extra environment variables for the process."""


class NodeGroupConfig(ConfigModel):
    """
    A homogeneous group of nodes.

    A group named `validator` with `count: 4` expands to `validator-0` through
    `validator-3`. The group name itself stays addressable from test files.
    """

    name: str = Field(min_length=1)
    """Group name; expanded node names are `<name>-<i>`."""

    count: int = Field(ge=1)
    """Number of nodes in the group."""

    command: str | None = None
    """Binary to launch for every node of the group."""

    args: tuple[str, ...] = ()
    """Extra command-line arguments for every node of the group."""

    env: dict[str, str] = Field(default_factory=dict)
    """Extra environment variables for every node of the group."""


class RelaychainConfig(ConfigModel):
    """Relay chain validators."""

    chain: str = "rococo-local"
    """Chain spec name passed to every validator."""

    default_command: str = "polkadot"
    """Binary used by validators that do not declare their own command."""

    default_args: tuple[str, ...] = ()
    """Arguments shared by every validator."""

    nodes: tuple[NodeConfig, ...] = ()
    """Individually declared validators."""

    node_groups: tuple[NodeGroupConfig, ...] = ()
    """Grouped validators."""

    @model_validator(mode="after")
    def require_validators(self) -> RelaychainConfig:
        """A relay chain without validators cannot produce blocks."""
        if not self.nodes and not self.node_groups:
            raise ValueError("relaychain must declare at least one node or node group")
        return self


class ParachainConfig(ConfigModel):
    """A parachain and the collators producing its blocks."""

    id: int = Field(ge=0)
    """Numeric parachain id."""

    chain: str | None = None
    """Chain spec name for the collators. Defaults to the relay chain's."""

    default_command: str = "polkadot-parachain"
    """Binary used by collators that do not declare their own command."""

    default_args: tuple[str, ...] = ()
    """Arguments shared by every collator of this parachain."""

    collator: NodeConfig | None = None
    """Single collator shorthand."""

    collators: tuple[NodeConfig, ...] = ()
    """Individually declared collators."""

    collator_groups: tuple[NodeGroupConfig, ...] = ()
    """Grouped collators."""

    @model_validator(mode="after")
    def require_collators(self) -> ParachainConfig:
        """Every parachain needs a collator to make progress."""
        if self.collator is None and not self.collators and not self.collator_groups:
            raise ValueError(f"parachain {self.id} must declare at least one collator")
        return self


class SettingsConfig(ConfigModel):
    """Network-wide timing settings."""

    timeout: float | None = Field(default=None, gt=0)
    """Run-level deadline in seconds. None means unlimited."""

    startup_timeout: float = Field(default=STARTUP_TIMEOUT, gt=0)
    """Readiness deadline in seconds, shared by every node of the network."""


class NetworkConfig(ConfigModel):
    """
    Complete declarative description of a test network.

    Parsing only validates shape and value ranges. Cross-node invariants
    (unique names, unique parachain ids) are checked when the topology is built.
    """

    settings: SettingsConfig = Field(default_factory=SettingsConfig)
    """Timing settings."""

    relaychain: RelaychainConfig
    """Relay chain validators."""

    parachains: tuple[ParachainConfig, ...] = ()
    """Registered parachains and their collators."""

    @classmethod
    def from_data(cls, data: Any, *, path: Path | None = None) -> NetworkConfig:
        """
        Validate already-decoded file content.

        Raises:
            ConfigError: If the data fails validation.
        """
        if not isinstance(data, dict):
            raise ConfigError("network description must be a mapping", path=path)
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(_summarize(exc), path=path) from exc

    @classmethod
    def from_yaml(cls, content: str) -> NetworkConfig:
        """Load configuration from a YAML string."""
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML: {exc}") from exc
        return cls.from_data(data)

    @classmethod
    def from_yaml_file(cls, path: Path | str) -> NetworkConfig:
        """
        Load configuration from a YAML file.

        Raises:
            ConfigError: If the file is missing, not valid YAML, or fails validation.
        """
        path = Path(path)
        try:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as exc:
            raise ConfigError(f"cannot read network file: {exc.strerror}", path=path) from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML: {exc}", path=path) from exc
        return cls.from_data(data, path=path)

    @classmethod
    def from_toml_file(cls, path: Path | str) -> NetworkConfig:
        """
        Load configuration from a TOML file.

        Raises:
            ConfigError: If the file is missing, not valid TOML, or fails validation.
        """
        path = Path(path)
        try:
            with path.open("rb") as f:
                data = tomllib.load(f)
        except OSError as exc:
            raise ConfigError(f"cannot read network file: {exc.strerror}", path=path) from exc
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML: {exc}", path=path) from exc
        return cls.from_data(data, path=path)

    @classmethod
    def from_file(cls, path: Path | str) -> NetworkConfig:
        """Load configuration, picking the format from the file suffix."""
        path = Path(path)
        if path.suffix.lower() == ".toml":
            return cls.from_toml_file(path)
        return cls.from_yaml_file(path)


def _summarize(exc: ValidationError) -> str:
    """Flatten a pydantic error into one line: `loc.path: message; ...`."""
    parts = []
    for error in exc.errors():
        loc = ".".join(str(item) for item in error["loc"])
        parts.append(f"{loc}: {error['msg']}" if loc else error["msg"])
    return "; ".join(parts)
