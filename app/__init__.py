"""CineList FastAPI application package."""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = ["app", "create_app", "register_routes"]

# Importing ``app.main`` builds the application, so defer it until requested.
_LAZY_MODULES = {name: "app.main" for name in __all__}


def __getattr__(name: str) -> Any:
    module_name = _LAZY_MODULES.get(name)
    if module_name is None:
        raise AttributeError(f"module 'app' has no attribute {name}")
    return getattr(import_module(module_name), name)
