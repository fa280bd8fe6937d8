"""Installable entry package for the CineList backend.

The FastAPI application lives in the ``app`` package; this package re-exports
it so ``uvicorn cinelist:app`` works after ``pip install``.
"""

from __future__ import annotations

from app.main import app, create_app

__version__ = "1.0.0"

__all__ = ["__version__", "app", "create_app"]
