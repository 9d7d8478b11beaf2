"""User management service: a users REST API and the page that manages it.

The record store and its errors import without the web stack. The application
factories are resolved on first access so ``usercrud.database`` can be used by
scripts that only have the standard library available.
"""

from __future__ import annotations

import importlib
from typing import Any, Dict

from .database import Database, NotFound, StoreUnavailable, ValidationError, resolve_database_path
from .models import Draft, User

_FACTORY_MODULES: Dict[str, str] = {
    "create_app": ".service",
    "create_api_app": ".service",
    "create_web_app": ".service",
    "create_application": ".application",
}


def __getattr__(name: str) -> Any:
    module_name = _FACTORY_MODULES.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(importlib.import_module(module_name, __name__), name)


__all__ = [
    "Database",
    "Draft",
    "NotFound",
    "StoreUnavailable",
    "User",
    "ValidationError",
    "resolve_database_path",
    *_FACTORY_MODULES,
]
