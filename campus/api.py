"""FastAPI application exposing authentication, user, and dataset search endpoints."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Dict, Optional

import anyio
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import (
    AuthWorkflow,
    Email,
    InvalidCredentials,
    LoginRequest,
    Name,
    RegisterRequest,
    ValidationError,
    field_errors,
)
from .config import Settings, load_settings
from .database import Database
from .dataset import DatasetFetcher, DatasetField, DatasetSearch, FetchError
from .models import User
from .responses import api_response
from .tokens import (
    TokenError,
    TokenExpired,
    TokenIssuanceError,
    TokenRevoked,
    TokenService,
)

logger = logging.getLogger("campus.api")

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}
_UNPROCESSABLE = 422


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime
    updated_at: datetime


class AuthResponse(UserResponse):
    token: str


class LogoutRequest(BaseModel):
    token: Optional[str] = None


class UpdateUserRequest(BaseModel):
    name: Name
    email: Email
    password: str = Field(..., min_length=6)


def user_to_response(user: User) -> Dict[str, object]:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        created_at=user.created_at,
        updated_at=user.updated_at,
    ).model_dump(mode="json")


def auth_to_response(user: User, token: str) -> Dict[str, object]:
    return AuthResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        created_at=user.created_at,
        updated_at=user.updated_at,
        token=token,
    ).model_dump(mode="json")


def _token_failure_message(exc: TokenError) -> str:
    if isinstance(exc, TokenExpired):
        return "Token has expired"
    if isinstance(exc, TokenRevoked):
        return "Token has been revoked"
    return "Token is invalid"


def create_app(
    *,
    database: Database | None = None,
    settings: Settings | None = None,
    tokens: TokenService | None = None,
    fetcher: DatasetFetcher | None = None,
    initialize_database: bool = False,
) -> FastAPI:
    if settings is None:
        settings = load_settings()

    if database is None:
        database = Database(settings.database_path)
        database.initialize()
    elif initialize_database:
        database.initialize()

    if tokens is None:
        if not settings.secret_key:
            logger.warning("No token signing key configured; logins will fail until CAMPUS_SECRET_KEY is set")
        tokens = TokenService(settings.secret_key, ttl=settings.token_ttl)

    if fetcher is None:
        fetcher = DatasetFetcher(settings.dataset_url)

    workflow = AuthWorkflow(database, tokens)
    search = DatasetSearch(fetcher)

    app = FastAPI(
        title="Campus Directory",
        description="User accounts with bearer-token authentication and student dataset search",
        version="1.0.0",
    )
    app.state.tokens = tokens

    bearer_security = HTTPBearer(auto_error=False)

    def get_db() -> Database:
        return database

    def get_current_user(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_security),
        db: Database = Depends(get_db),
    ) -> User:
        if credentials is None or not credentials.credentials.strip():
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token not found",
                headers=_BEARER_CHALLENGE,
            )

        try:
            user_id = tokens.validate(credentials.credentials)
        except TokenError as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=_token_failure_message(exc),
                headers=_BEARER_CHALLENGE,
            ) from exc

        user = db.get_user(user_id)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found",
                headers=_BEARER_CHALLENGE,
            )
        return user

    async def run_search(field: DatasetField, param: str, query: str):
        query = query.strip()
        if not query:
            raise ValidationError({param: [f"The {param} field is required."]})

        matches = await anyio.to_thread.run_sync(search.search, field, query)
        if not matches:
            return api_response(status.HTTP_404_NOT_FOUND, None, "User not found")
        return api_response(
            status.HTTP_200_OK,
            [record.to_dict() for record in matches],
            "User found",
        )

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/register")
    async def register(payload: RegisterRequest):
        user, token = workflow.register(
            name=payload.name,
            email=str(payload.email),
            password=payload.password,
            password_confirmation=payload.password_confirmation,
        )
        return api_response(status.HTTP_201_CREATED, auth_to_response(user, token), "Registration successful")

    @app.post("/login")
    async def login(payload: LoginRequest):
        user, token = workflow.login(email=str(payload.email), password=payload.password)
        return api_response(status.HTTP_200_OK, auth_to_response(user, token), "Login successful")

    @app.post("/logout")
    async def logout(
        payload: Optional[LogoutRequest] = None,
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_security),
    ):
        token = payload.token if payload is not None and payload.token else None
        if token is None and credentials is not None:
            token = credentials.credentials

        if not token:
            logger.warning("Logout requested without a token")
            return api_response(status.HTTP_500_INTERNAL_SERVER_ERROR, None, "Failed to logout, please try again")

        try:
            workflow.logout(token)
        except TokenError as exc:
            logger.warning("Logout failed: %s", exc)
            return api_response(status.HTTP_500_INTERNAL_SERVER_ERROR, None, "Failed to logout, please try again")

        return api_response(status.HTTP_200_OK, None, "Successfully logged out")

    @app.get("/users/search/name")
    async def search_by_name(
        name: str = Query(..., min_length=1),
        current_user: User = Depends(get_current_user),
    ):
        return await run_search(DatasetField.NAME, "name", name)

    @app.get("/search/nim")
    async def search_by_nim(
        nim: str = Query(..., min_length=1),
        current_user: User = Depends(get_current_user),
    ):
        return await run_search(DatasetField.NIM, "nim", nim)

    @app.get("/search/ymd")
    async def search_by_ymd(
        ymd: str = Query(..., min_length=1),
        current_user: User = Depends(get_current_user),
    ):
        return await run_search(DatasetField.YMD, "ymd", ymd)

    @app.get("/users/{user_id}")
    async def read_user(
        user_id: int,
        current_user: User = Depends(get_current_user),
        db: Database = Depends(get_db),
    ):
        user = db.get_user(user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return api_response(status.HTTP_200_OK, user_to_response(user), "User retrieved successfully")

    @app.put("/users/{user_id}")
    async def update_user(
        user_id: int,
        payload: UpdateUserRequest,
        current_user: User = Depends(get_current_user),
        db: Database = Depends(get_db),
    ):
        if db.email_in_use(str(payload.email), exclude_user_id=user_id):
            raise ValidationError({"email": ["The email has already been taken."]})

        try:
            updated = db.update_user(
                user_id,
                name=payload.name,
                email=str(payload.email),
                password=payload.password,
            )
        except ValueError as exc:
            raise ValidationError({"email": ["The email has already been taken."]}) from exc
        except sqlite3.DatabaseError:
            logger.exception("Failed to update user %s", user_id)
            return api_response(status.HTTP_500_INTERNAL_SERVER_ERROR, None, "Failed to update user")

        if updated is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

        logger.info("User %s updated user %s", current_user.id, user_id)
        return api_response(status.HTTP_200_OK, user_to_response(updated), "User updated successfully")

    @app.delete("/users/{user_id}")
    async def delete_user(
        user_id: int,
        current_user: User = Depends(get_current_user),
        db: Database = Depends(get_db),
    ):
        try:
            deleted = db.delete_user(user_id)
        except sqlite3.DatabaseError:
            logger.exception("Failed to delete user %s", user_id)
            return api_response(status.HTTP_500_INTERNAL_SERVER_ERROR, None, "Failed to delete user")

        if not deleted:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

        logger.info("User %s deleted user %s", current_user.id, user_id)
        return api_response(status.HTTP_200_OK, None, "User deleted successfully")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException):
        return api_response(exc.status_code, None, str(exc.detail), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_: Request, exc: RequestValidationError):
        return api_response(
            _UNPROCESSABLE,
            None,
            "Validation failed",
            errors=field_errors(exc.errors()),
        )

    @app.exception_handler(ValidationError)
    async def handle_validation_error(_: Request, exc: ValidationError):
        return api_response(_UNPROCESSABLE, None, str(exc), errors=exc.errors)

    @app.exception_handler(InvalidCredentials)
    async def handle_invalid_credentials(_: Request, exc: InvalidCredentials):
        return api_response(status.HTTP_401_UNAUTHORIZED, None, "Invalid credentials")

    @app.exception_handler(TokenIssuanceError)
    async def handle_token_issuance_error(_: Request, exc: TokenIssuanceError):
        logger.error("Could not create token: %s", exc)
        return api_response(status.HTTP_500_INTERNAL_SERVER_ERROR, None, "Could not create token")

    @app.exception_handler(FetchError)
    async def handle_fetch_error(_: Request, exc: FetchError):
        logger.warning("Dataset unavailable: %s", exc)
        return api_response(status.HTTP_500_INTERNAL_SERVER_ERROR, None, "Failed to retrieve data")

    return app


__all__ = ["create_app", "user_to_response"]
