"""FastAPI application exposing the registration endpoints."""

from __future__ import annotations

import json
import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Dict, List, Mapping
from urllib.parse import parse_qs

import anyio
from fastapi import FastAPI, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from .config import load_settings
from .database import Database
from .errors import NotFoundError, RegistrationError, ValidationError
from .models import User
from .validation import validate_registration

logger = logging.getLogger("registration.service")

_USER_ID_PATTERN = re.compile(r"-?[0-9]+")
_SQLITE_INTEGER_MIN = -(2**63)
_SQLITE_INTEGER_MAX = 2**63 - 1


class UserResponse(BaseModel):
    id: int
    name: str
    gender: str
    email: str
    country: str
    created_at: datetime


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        gender=user.gender,
        email=user.email,
        country=user.country,
        created_at=user.created_at,
    )


def _template_environment() -> Jinja2Templates:
    base_dir = Path(__file__).resolve().parent
    return Jinja2Templates(directory=str(base_dir / "templates"))


def _decode_body(body_bytes: bytes, content_type: str) -> str:
    charset = "utf-8"
    if "charset=" in content_type:
        charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or "utf-8"
    try:
        return body_bytes.decode(charset)
    except (LookupError, UnicodeDecodeError):
        return body_bytes.decode("utf-8", errors="ignore")


async def _parse_registration_body(request: Request) -> Mapping[str, object]:
    """Read the submitted fields from a JSON or form-encoded body."""

    body_bytes = await request.body()
    content_type = request.headers.get("content-type", "").lower()
    decoded = _decode_body(body_bytes, content_type)

    if "json" in content_type:
        if not decoded.strip():
            return {}
        try:
            payload = json.loads(decoded)
        except ValueError as exc:
            raise ValidationError("Invalid request body") from exc
        return payload if isinstance(payload, dict) else {}

    if not content_type.startswith("application/x-www-form-urlencoded"):
        return {}

    data = parse_qs(decoded, keep_blank_values=True)
    return {key: values[0] for key, values in data.items() if values}


def _parse_user_id(raw: str) -> int:
    """Convert a path id, treating anything SQLite could not store as unknown."""

    if _USER_ID_PATTERN.fullmatch(raw) is None:
        raise NotFoundError("User not found")
    user_id = int(raw)
    if not _SQLITE_INTEGER_MIN <= user_id <= _SQLITE_INTEGER_MAX:
        raise NotFoundError("User not found")
    return user_id


def _json_error(exc: RegistrationError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


def _text_error(exc: RegistrationError) -> PlainTextResponse:
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def create_app(
    *,
    database: Database | None = None,
    initialize_database: bool = False,
) -> FastAPI:
    """Create the registration application bound to ``database``.

    When no database is supplied one is built from :func:`load_settings` and
    initialised immediately. The connection is closed when the application
    shuts down.
    """

    if database is None:
        database = Database(load_settings().database_path)
        database.initialize()
    elif initialize_database:
        database.initialize()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            logger.info("Shutting down registration service")
            database.close()

    app = FastAPI(
        title="Registration Service",
        description="Collects and serves user registration records",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.database = database
    templates = _template_environment()

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    async def landing_page(request: Request) -> HTMLResponse:
        return templates.TemplateResponse(request, "index.html", {})

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/register", response_class=PlainTextResponse)
    async def register(request: Request) -> Response:
        try:
            payload = await _parse_registration_body(request)
            registration = validate_registration(payload)
            user = await anyio.to_thread.run_sync(database.create_user, registration)
        except RegistrationError as exc:
            return _text_error(exc)

        logger.info("New user registered: %s (ID: %s)", user.name, user.id)
        return PlainTextResponse("User registered successfully", status_code=status.HTTP_200_OK)

    @app.get("/users", response_model=List[UserResponse])
    async def list_users() -> Response | List[UserResponse]:
        try:
            users = await anyio.to_thread.run_sync(database.list_users)
        except RegistrationError as exc:
            return _json_error(exc)
        return [user_to_response(user) for user in users]

    @app.get("/users/{user_id}", response_model=UserResponse)
    async def read_user(user_id: str) -> Response | UserResponse:
        try:
            user = await anyio.to_thread.run_sync(database.get_user, _parse_user_id(user_id))
        except RegistrationError as exc:
            return _json_error(exc)
        return user_to_response(user)

    @app.delete("/users/{user_id}", response_class=PlainTextResponse)
    async def delete_user(user_id: str) -> Response:
        try:
            identifier = _parse_user_id(user_id)
            await anyio.to_thread.run_sync(database.delete_user, identifier)
        except RegistrationError as exc:
            return _text_error(exc)

        logger.info("User deleted: ID %s", identifier)
        return PlainTextResponse("User deleted successfully", status_code=status.HTTP_200_OK)

    return app


__all__ = ["UserResponse", "create_app", "user_to_response"]
