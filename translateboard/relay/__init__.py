"""HTTP relay for translation requests."""

from .server import create_relay_app, run_relay

__all__ = [
    "create_relay_app",
    "run_relay",
]
