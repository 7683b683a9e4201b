"""
Reporting keys used by `reports` steps.

Keys are written in test files either as friendly phrases or as raw
metric selectors:

- `block height` -> `block_height{status="best"}`
- `finalised height` -> `block_height{status="finalized"}`
- `peers count` -> `sub_libp2p_peers_count`
- `node_roles`, `node roles` -> `node_roles`
- `block_height{status=finalized}` -> as written, quotes optional

Metric names are tried bare and with the `substrate_` and `polkadot_`
prefixes that node binaries add.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Final

METRIC_PREFIXES: Final = ("", "substrate_", "polkadot_")
"""Prefixes tried, in order, when looking a metric up."""


@dataclass(frozen=True, slots=True)
class MetricSelector:
    """A metric name plus the labels a sample must carry."""

    name: str
    """Metric sample name without prefix."""

    labels: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    """Required label values. Extra labels on the sample are ignored."""

    def candidates(self) -> Iterator[str]:
        """Sample names to try, most specific first."""
        for prefix in METRIC_PREFIXES:
            yield f"{prefix}{self.name}"

    def matches(self, labels: Mapping[str, str]) -> bool:
        return all(labels.get(key) == value for key, value in self.labels.items())

    def __str__(self) -> str:
        if not self.labels:
            return self.name
        inner = ",".join(f'{key}="{value}"' for key, value in self.labels.items())
        return f"{self.name}{{{inner}}}"


FRIENDLY_KEYS: Final[Mapping[str, MetricSelector]] = MappingProxyType(
    {
        "block height": MetricSelector("block_height", MappingProxyType({"status": "best"})),
        "finalised height": MetricSelector(
            "block_height", MappingProxyType({"status": "finalized"})
        ),
        "finalized height": MetricSelector(
            "block_height", MappingProxyType({"status": "finalized"})
        ),
        "peers count": MetricSelector("sub_libp2p_peers_count"),
    }
)
"""Phrases accepted in place of raw metric names."""

_SELECTOR = re.compile(r"^(?P<name>[^{}]+?)\s*(?:\{(?P<labels>[^{}]*)\})?$")
_LABEL = re.compile(r'^\s*(?P<key>[A-Za-z_][A-Za-z0-9_]*)\s*=\s*"?(?P<value>[^"]*)"?\s*$')


def resolve_key(key: str) -> MetricSelector:
    """
    Translate a reporting key into a metric selector.

    Raises:
        ValueError: If the key is not a valid selector.
    """
    normalized = " ".join(key.split())
    friendly = FRIENDLY_KEYS.get(normalized.lower())
    if friendly is not None:
        return friendly

    match = _SELECTOR.match(normalized)
    if match is None:
        raise ValueError(f"invalid metric key {key!r}")

    name = match["name"].strip().replace(" ", "_")
    labels: dict[str, str] = {}
    if match["labels"]:
        for part in match["labels"].split(","):
            if not part.strip():
                continue
            label = _LABEL.match(part)
            if label is None:
                raise ValueError(f"invalid label selector {part!r} in {key!r}")
            labels[label["key"]] = label["value"]

    return MetricSelector(name, MappingProxyType(labels))
