"""Route modules exposed by the API package."""

from . import notifications, ping, tickets, verification

__all__ = ["notifications", "ping", "tickets", "verification"]
