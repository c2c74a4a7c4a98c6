"""HTTP API package."""

from fintracker.api.app import create_app

__all__ = ["create_app"]
