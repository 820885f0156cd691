"""API routes for Fokus."""

from fokus.web.routes import api

__all__ = ["api"]
