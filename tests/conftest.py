"""Pytest configuration and shared fixtures."""

import os

from hypothesis import settings

# Keep polling fast under test unless the caller overrides it.
os.environ.setdefault("NETHARNESS_POLL_INTERVAL", "0.05")
os.environ.setdefault("NETHARNESS_MAX_POLL_INTERVAL", "0.2")

# Create a profile named "no_deadline" with deadline disabled.
settings.register_profile("no_deadline", deadline=None)
settings.load_profile("no_deadline")
