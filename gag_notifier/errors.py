"""Exception types raised across the notifier."""

from __future__ import annotations


class PersistenceError(Exception):
    """A JSON state file could not be written."""


class DeliveryError(Exception):
    """A single message could not be delivered to one destination."""
