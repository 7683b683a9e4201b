"""
Global configuration for the test-network harness.

This module contains environment-driven defaults that apply across all components.
Network files may override the timing values through their `settings` block.
"""

import os


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"Invalid {name} environment variable: '{raw}' is not a number") from None
    if value <= 0:
        raise ValueError(f"Invalid {name} environment variable: '{raw}' must be positive")
    return value


POLL_INTERVAL = _float_env("NETHARNESS_POLL_INTERVAL", 1.0)
"""Seconds between two reads of a node's reporting interface."""

MAX_POLL_INTERVAL = _float_env("NETHARNESS_MAX_POLL_INTERVAL", 5.0)
"""Ceiling for the polling interval when backoff is enabled."""

DEFAULT_STEP_TIMEOUT = _float_env("NETHARNESS_DEFAULT_TIMEOUT", 300.0)
"""Timeout applied to steps that do not declare `within N seconds`."""

STARTUP_TIMEOUT = _float_env("NETHARNESS_STARTUP_TIMEOUT", 60.0)
"""Maximum time a freshly spawned node has to expose its reporting interface."""

JS_RUNTIME = os.environ.get("NETHARNESS_JS_RUNTIME", "node")
"""Executable used to run `js-script` steps."""

HOST = os.environ.get("NETHARNESS_HOST", "127.0.0.1")
"""Interface the spawned nodes bind their RPC and metrics ports to."""

if not JS_RUNTIME.strip():
    raise ValueError("Invalid NETHARNESS_JS_RUNTIME environment variable: must not be empty")
