"""HTTP handlers and HTML view for the user records service."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import anyio
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from .database import Database, ErrorKind, StoreError
from .models import User

logger = logging.getLogger("crudapp.web")

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

MISSING_FIELDS_MESSAGE = "Name and email are required"
INVALID_AGE_MESSAGE = "Age must be a whole number"

MIN_USER_ID = -(2**31)
MAX_USER_ID = 2**31 - 1


class UserView(BaseModel):
    id: int
    name: str
    email: str
    age: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def from_user(user: User) -> "UserView":
        return UserView(**asdict(user))


class UserUpdateResponse(BaseModel):
    success: bool = True
    user: UserView


class UserDeleteResponse(BaseModel):
    success: bool = True
    message: str


class HealthResponse(BaseModel):
    status: str


class UserPayloadError(ValueError):
    """Raised when a request body does not describe a valid user."""


def _template_environment() -> Jinja2Templates:
    return Jinja2Templates(directory=str(TEMPLATE_DIR))


def _error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _parse_user_id(raw: str) -> Optional[int]:
    try:
        value = int(raw)
    except ValueError:
        return None
    # Ids outside the INTEGER column range can never have been issued.
    if not MIN_USER_ID <= value <= MAX_USER_ID:
        return None
    return value


def _decode_form(body: bytes, content_type: str) -> Dict[str, Any]:
    charset = "utf-8"
    if "charset=" in content_type:
        charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or "utf-8"
    try:
        decoded = body.decode(charset)
    except (LookupError, UnicodeDecodeError):
        charset = "utf-8"
        decoded = body.decode(charset, errors="ignore")
    data = parse_qs(decoded, keep_blank_values=True, encoding=charset)
    return {key: values[0] for key, values in data.items() if values}


async def _read_user_payload(request: Request) -> Dict[str, Any]:
    body = await request.body()
    content_type = request.headers.get("content-type", "")
    if "json" in content_type.lower():
        if not body.strip():
            return {}
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise UserPayloadError("Request body must be valid JSON") from exc
        if not isinstance(data, dict):
            raise UserPayloadError("Request body must be a JSON object")
        return data
    return _decode_form(body, content_type)


def _text_field(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _clean_age(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise UserPayloadError(INVALID_AGE_MESSAGE)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise UserPayloadError(INVALID_AGE_MESSAGE)
    cleaned = str(value).strip()
    if not cleaned:
        return None
    try:
        return int(cleaned)
    except ValueError as exc:
        raise UserPayloadError(INVALID_AGE_MESSAGE) from exc


def validate_user_payload(data: Dict[str, Any]) -> Tuple[str, str, Optional[int]]:
    """Return ``(name, email, age)`` or raise :class:`UserPayloadError`."""

    name = _text_field(data.get("name"))
    email = _text_field(data.get("email"))
    if not name.strip() or not email.strip():
        raise UserPayloadError(MISSING_FIELDS_MESSAGE)
    return name, email, _clean_age(data.get("age"))


async def _parse_user_fields(request: Request) -> Tuple[str, str, Optional[int]]:
    return validate_user_payload(await _read_user_payload(request))


def register_routes(
    app: FastAPI,
    database: Database,
    *,
    templates: Jinja2Templates | None = None,
) -> None:
    """Attach the user record endpoints to ``app``."""

    templates = templates or _template_environment()
    router = APIRouter()

    def _render_index(
        request: Request,
        *,
        users: List[User],
        editing_user: User | None = None,
        error: str | None = None,
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        context: Dict[str, object] = {
            "users": users,
            "editing_user": editing_user,
            "error": error,
        }
        return templates.TemplateResponse(request, "index.html", context, status_code=status_code)

    @router.get("/", response_class=HTMLResponse, name="ui_index")
    async def index(request: Request):
        try:
            users = await anyio.to_thread.run_sync(database.list_users)
        except StoreError:
            logger.exception("Error fetching users")
            return _render_index(
                request,
                users=[],
                error="Error fetching users",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return _render_index(request, users=users)

    @router.post("/users", name="create_user")
    async def create_user(request: Request):
        try:
            name, email, age = await _parse_user_fields(request)
        except UserPayloadError as exc:
            logger.warning("Rejected user creation: %s", exc)
            return _error_response(str(exc), status.HTTP_400_BAD_REQUEST)

        try:
            user = await anyio.to_thread.run_sync(database.create_user, name, email, age)
        except StoreError as exc:
            if exc.kind is ErrorKind.CONFLICT:
                logger.warning("Rejected user creation: email %s already exists", email)
                return _render_index(
                    request,
                    users=[],
                    error="Email already exists",
                    status_code=status.HTTP_400_BAD_REQUEST,
                )
            logger.exception("Error creating user")
            return _render_index(
                request,
                users=[],
                error="Error creating user",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        logger.info("User created: %s (#%s)", user.name, user.id)
        return RedirectResponse(request.url_for("ui_index"), status_code=status.HTTP_303_SEE_OTHER)

    @router.get("/users/{user_id}", response_class=HTMLResponse, name="edit_user")
    async def edit_user(request: Request, user_id: str):
        identifier = _parse_user_id(user_id)
        if identifier is None:
            return _error_response("User not found", status.HTTP_404_NOT_FOUND)

        # The record and the list are read independently; a concurrent delete
        # between the two reads is tolerated.
        try:
            user = await anyio.to_thread.run_sync(database.get_user, identifier)
            if user is None:
                return _error_response("User not found", status.HTTP_404_NOT_FOUND)
            users = await anyio.to_thread.run_sync(database.list_users)
        except StoreError:
            logger.exception("Error fetching user %s", identifier)
            return _error_response("Error fetching user", status.HTTP_500_INTERNAL_SERVER_ERROR)

        return _render_index(request, users=users, editing_user=user)

    @router.put("/users/{user_id}", response_model=UserUpdateResponse, name="update_user")
    async def update_user(request: Request, user_id: str):
        try:
            name, email, age = await _parse_user_fields(request)
        except UserPayloadError as exc:
            logger.warning("Rejected update of user %s: %s", user_id, exc)
            return _error_response(str(exc), status.HTTP_400_BAD_REQUEST)

        identifier = _parse_user_id(user_id)
        if identifier is None:
            return _error_response("User not found", status.HTTP_404_NOT_FOUND)

        try:
            user = await anyio.to_thread.run_sync(
                database.update_user, identifier, name, email, age
            )
        except StoreError as exc:
            if exc.kind is ErrorKind.NOT_FOUND:
                logger.warning("Cannot update user %s: not found", identifier)
                return _error_response("User not found", status.HTTP_404_NOT_FOUND)
            if exc.kind is ErrorKind.CONFLICT:
                logger.warning(
                    "Cannot update user %s: email %s already exists", identifier, email
                )
                return _error_response("Email already exists", status.HTTP_400_BAD_REQUEST)
            logger.exception("Error updating user %s", identifier)
            return _error_response("Error updating user", status.HTTP_500_INTERNAL_SERVER_ERROR)

        logger.info("User updated: %s (#%s)", user.name, user.id)
        return UserUpdateResponse(user=UserView.from_user(user))

    @router.delete("/users/{user_id}", response_model=UserDeleteResponse, name="delete_user")
    async def delete_user(user_id: str):
        identifier = _parse_user_id(user_id)
        if identifier is None:
            return _error_response("User not found", status.HTTP_404_NOT_FOUND)

        try:
            user = await anyio.to_thread.run_sync(database.delete_user, identifier)
        except StoreError as exc:
            if exc.kind is ErrorKind.NOT_FOUND:
                logger.warning("Cannot delete user %s: not found", identifier)
                return _error_response("User not found", status.HTTP_404_NOT_FOUND)
            logger.exception("Error deleting user %s", identifier)
            return _error_response("Error deleting user", status.HTTP_500_INTERNAL_SERVER_ERROR)

        logger.info("User deleted: %s (#%s)", user.name, user.id)
        return UserDeleteResponse(message="User deleted successfully")

    @router.get("/health", response_model=HealthResponse, name="health")
    async def healthcheck() -> HealthResponse:
        return HealthResponse(status="OK")

    app.include_router(router)


__all__ = [
    "HealthResponse",
    "UserDeleteResponse",
    "UserPayloadError",
    "UserUpdateResponse",
    "UserView",
    "register_routes",
    "validate_user_payload",
]
