"""REST API layer for fluxdoctor.

Exposes:
    create_app -- FastAPI application factory.
"""

from fluxdoctor.api.app import create_app

__all__ = ["create_app"]
