"""Application factory wiring the users API and the web interface together."""

from __future__ import annotations

import logging
from datetime import timedelta

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import API_PREFIX, register_api_routes, register_error_handlers
from .client import UsersAPIClient
from .config import Settings, load_settings
from .database import Database
from .manager import ClientStateManager
from .sessions import SessionManager
from .web import register_ui_routes

logger = logging.getLogger("usercrud.service")

_INTERNAL_BASE_URL = "http://usercrud.internal"


def _initialise_database(database: Database) -> Database:
    database.initialize()
    return database


def _build_api_client(
    app: FastAPI,
    settings: Settings,
    *,
    include_api: bool,
) -> UsersAPIClient:
    if settings.api_url:
        return UsersAPIClient(settings.api_url)
    if include_api:
        # The page talks to the API mounted on this same application.
        return UsersAPIClient(
            _INTERNAL_BASE_URL + API_PREFIX,
            transport=httpx.ASGITransport(app=app),
        )
    raise RuntimeError("USERCRUD_API_URL must be configured to serve the web interface on its own")


def create_app(
    *,
    database: Database | None = None,
    settings: Settings | None = None,
    api_client: UsersAPIClient | None = None,
    include_api: bool = True,
    include_web: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application for the user management service."""

    app_settings = settings or load_settings()
    db = database or Database(app_settings.database_path)
    _initialise_database(db)

    app = FastAPI(
        title="User Management API",
        version="1.0.0",
        description="Create, read, update and delete user records.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(app_settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.state.database = db
    app.state.settings = app_settings
    app.state.session_manager = None

    if include_api:
        register_api_routes(app, db)

    if include_web:
        client = api_client or _build_api_client(app, app_settings, include_api=include_api)
        if not app_settings.session_secure:
            logger.warning(
                "Session cookies are not marked as secure. Only disable secure cookies for"
                " local development."
            )

        def _new_state_manager() -> ClientStateManager:
            return ClientStateManager(client, message_timeout=app_settings.message_timeout)

        session_manager = SessionManager(_new_state_manager, ttl=timedelta(hours=8))
        app.state.session_manager = session_manager
        register_ui_routes(
            app,
            session_manager=session_manager,
            secure_cookies=app_settings.session_secure,
            message_timeout=app_settings.message_timeout,
        )

    return app


def create_api_app(
    *,
    database: Database | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Return an application exposing only the JSON API."""

    return create_app(
        database=database,
        settings=settings,
        include_api=True,
        include_web=False,
    )


def create_web_app(
    *,
    database: Database | None = None,
    settings: Settings | None = None,
    api_client: UsersAPIClient | None = None,
) -> FastAPI:
    """Return an application exposing only the web page, backed by a remote API."""

    return create_app(
        database=database,
        settings=settings,
        api_client=api_client,
        include_api=False,
        include_web=True,
    )


__all__ = ["create_app", "create_api_app", "create_web_app"]
