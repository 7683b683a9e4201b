"""Shared base models and the harness exception hierarchy."""

from .base import CamelModel, ConfigModel, StrictBaseModel
from .exceptions import (
    AssertionFailure,
    ConfigError,
    HarnessError,
    HarnessTimeoutError,
    InvocationError,
    LaunchError,
    NodeUnreachable,
)

__all__ = [
    # Base models
    "CamelModel",
    "ConfigModel",
    "StrictBaseModel",
    # Exceptions
    "AssertionFailure",
    "ConfigError",
    "HarnessError",
    "HarnessTimeoutError",
    "InvocationError",
    "LaunchError",
    "NodeUnreachable",
]
