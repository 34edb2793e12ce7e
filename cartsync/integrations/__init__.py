"""Integrations package - visitor-side persistence."""

from cartsync.integrations.local_store import LocalStore

__all__ = ["LocalStore"]
