"""Subscription filtering, sync status, LAN bootstrap addresses and health summaries for a peer-to-peer news node."""

__version__ = "0.1.0"

__all__ = [
    "bootstrap",
    "node_status",
    "presentation",
    "subscriptions",
    "sync_status",
]