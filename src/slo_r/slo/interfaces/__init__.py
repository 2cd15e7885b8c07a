"""
SLO Interfaces Layer
====================

Interface adapters (controllers) for the SLO list module.

Contains:
- Controllers: FastAPI route handlers

This is the outermost layer - handles HTTP requests/responses and
delegates to the presenter and application services.
"""

from slo_r.slo.interfaces.controllers import slo_router

__all__ = ["slo_router"]
