"""
FastAPI application for the trailer planning engine.

Provides REST endpoints for:
- Planning context (loads, trailers, trailer defaults) and load import
- Plan suggestion and preview
- Plan apply/reject lifecycle
- Event ledger
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
