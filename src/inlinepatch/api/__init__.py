"""HTTP API for the in-page text editor."""

from inlinepatch.api.server import create_app

__all__ = ["create_app"]
