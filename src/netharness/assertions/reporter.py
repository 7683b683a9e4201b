"""
Node reporting interface.

A `Reporter` reads named values from a node. The default implementation
scrapes the node's Prometheus text endpoint and looks keys up through
`netharness.dsl.resolve_key`.
"""

from __future__ import annotations

import logging
from typing import Final, Protocol

import httpx
from prometheus_client.parser import text_string_to_metric_families

from netharness.dsl import Value, resolve_key
from netharness.supervisor import NodeEndpoints
from netharness.types import NodeUnreachable

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT: Final = 5.0
"""HTTP timeout for a single scrape in seconds."""


class Reporter(Protocol):
    """Reads values from a live node."""

    async def read(self, node: NodeEndpoints, key: str) -> Value | None:
        """
        Read the current value of a key.

        Returns:
            The value, or None if the node does not report the key (yet).

        Raises:
            NodeUnreachable: If the node cannot be queried right now.
        """
        ...

    async def is_reachable(self, node: NodeEndpoints) -> bool:
        """Whether the node's reporting interface answers."""
        ...


def normalize(value: float) -> int | float:
    """Integral floats are reported as ints."""
    return int(value) if value.is_integer() else value


class PrometheusReporter:
    """
    Reporter backed by the node's Prometheus text endpoint.

    The HTTP client is injectable so that tests can mount a mock transport.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client if client is not None else httpx.AsyncClient(timeout=REQUEST_TIMEOUT)

    async def __aenter__(self) -> PrometheusReporter:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def read(self, node: NodeEndpoints, key: str) -> Value | None:
        selector = resolve_key(key)
        samples = await self.scrape(node)

        for name in selector.candidates():
            for labels, value in samples.get(name, ()):
                if selector.matches(labels):
                    return normalize(value)

        logger.debug("%s does not report %s yet", node.name, selector)
        return None

    async def is_reachable(self, node: NodeEndpoints) -> bool:
        try:
            response = await self._client.get(node.metrics_url)
        except httpx.HTTPError:
            return False
        return response.status_code == httpx.codes.OK

    async def scrape(self, node: NodeEndpoints) -> dict[str, list[tuple[dict[str, str], float]]]:
        """
        Fetch and parse every sample the node exposes.

        Returns:
            Sample name -> list of (labels, value) pairs.

        Raises:
            NodeUnreachable: On transport errors, non-200 responses or unparsable output.
        """
        try:
            response = await self._client.get(node.metrics_url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NodeUnreachable(node.name, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise NodeUnreachable(node.name, f"{type(exc).__name__}: {exc}") from exc

        samples: dict[str, list[tuple[dict[str, str], float]]] = {}
        try:
            for family in text_string_to_metric_families(response.text):
                for sample in family.samples:
                    samples.setdefault(sample.name, []).append((dict(sample.labels), sample.value))
        except ValueError as exc:
            raise NodeUnreachable(node.name, f"malformed metrics: {exc}") from exc
        return samples
