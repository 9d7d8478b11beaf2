"""HTTP API exposing the users collection as a REST resource."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .database import Database, NotFound, StoreUnavailable, UserStoreError, ValidationError
from .models import User

logger = logging.getLogger("usercrud.api")

API_PREFIX = "/api"


class UserPayload(BaseModel):
    """Fields accepted when creating or replacing a user.

    ``name`` and ``email`` are optional here so that missing values reach the
    store and are reported with a readable message instead of a schema dump.
    """

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    age: Optional[Union[int, str]] = None
    address: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    age: Optional[int] = None
    address: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime


class MessageResponse(BaseModel):
    message: str


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        phone=user.phone,
        age=user.age,
        address=user.address,
        createdAt=user.created_at,
        updatedAt=user.updated_at,
    )


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def _describe_request_errors(errors: List[Dict[str, Any]]) -> str:
    parts = []
    for error in errors:
        location = [str(item) for item in error.get("loc", ()) if item != "body"]
        field = ".".join(location)
        detail = str(error.get("msg", "is invalid"))
        parts.append(f"{field}: {detail}" if field else detail)
    return "; ".join(parts) or "Invalid request body"


def register_error_handlers(app: FastAPI) -> None:
    """Render every error as a JSON body carrying a ``message`` field."""

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return _message(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(NotFound)
    async def handle_not_found(request: Request, exc: NotFound) -> JSONResponse:
        return _message(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(StoreUnavailable)
    async def handle_store_unavailable(request: Request, exc: StoreUnavailable) -> JSONResponse:
        return _message(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(UserStoreError)
    async def handle_store_error(request: Request, exc: UserStoreError) -> JSONResponse:
        logger.error("Unhandled store error on %s %s: %s", request.method, request.url.path, exc)
        return _message(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _message(status.HTTP_400_BAD_REQUEST, _describe_request_errors(list(exc.errors())))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )


def register_api_routes(app: FastAPI, database: Database) -> None:
    """Expose the users collection on the provided FastAPI application."""

    router = APIRouter(prefix=API_PREFIX)

    @router.get("", response_model=MessageResponse)
    async def welcome() -> MessageResponse:
        return MessageResponse(message="Welcome to CRUD API")

    @router.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @router.get("/users", response_model=List[UserResponse])
    async def list_users() -> List[UserResponse]:
        return [_user_to_response(user) for user in database.list_users()]

    @router.get("/users/{user_id}", response_model=UserResponse)
    async def get_user(user_id: str) -> UserResponse:
        return _user_to_response(database.get_user(user_id))

    @router.post(
        "/users",
        status_code=status.HTTP_201_CREATED,
        response_model=UserResponse,
    )
    async def create_user(payload: UserPayload) -> UserResponse:
        user = database.create_user(payload.model_dump())
        logger.info("Created user %s <%s>", user.id, user.email)
        return _user_to_response(user)

    @router.put("/users/{user_id}", response_model=UserResponse)
    async def update_user(user_id: str, payload: UserPayload) -> UserResponse:
        user = database.update_user(user_id, payload.model_dump())
        logger.info("Updated user %s", user.id)
        return _user_to_response(user)

    @router.delete("/users/{user_id}", response_model=MessageResponse)
    async def delete_user(user_id: str) -> MessageResponse:
        user = database.delete_user(user_id)
        logger.info("Deleted user %s", user.id)
        return MessageResponse(message="User deleted successfully")

    app.include_router(router)


__all__ = [
    "API_PREFIX",
    "UserPayload",
    "UserResponse",
    "register_api_routes",
    "register_error_handlers",
]
