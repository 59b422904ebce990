"""HTTP API exposing the host monitor to the dashboard."""

from .app import create_app

__all__ = ["create_app"]
