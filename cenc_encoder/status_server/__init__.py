"""Minimal HTTP status server."""

from .app import create_app, serve
from .state import RunStatusTracker

__all__ = [
    "create_app",
    "serve",
    "RunStatusTracker",
]
