"""ASGI entry point configured from the environment.

Run with ``uvicorn usercrud.application:create_application --factory``.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from .config import load_settings
from .database import Database
from .service import create_app


def create_application(
    *,
    config_path: Optional[str] = None,
    database_path: Optional[str] = None,
) -> FastAPI:
    """Create the combined API + web application from configuration."""

    settings = load_settings(Path(config_path) if config_path else None)
    if database_path:
        settings = settings.from_mapping({"database_path": database_path}, settings)

    database = Database(settings.database_path)
    return create_app(database=database, settings=settings)


__all__ = ["create_application"]
