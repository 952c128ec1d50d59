"""Registration, login, and logout workflows."""

from __future__ import annotations

import logging
from typing import Annotated, Dict, Iterable, List, Mapping, Tuple, Type, TypeVar

import pydantic
from email_validator import validate_email
from pydantic import AfterValidator, BaseModel, BeforeValidator, Field, ValidationInfo, field_validator

from .database import Database
from .models import User
from .tokens import TokenIssuanceError, TokenService

logger = logging.getLogger("campus.auth")

ModelT = TypeVar("ModelT", bound=BaseModel)


class AuthError(Exception):
    """Base class for failures reported back to the caller of a workflow."""


class ValidationError(AuthError):
    """Raised when submitted fields fail validation."""

    def __init__(self, errors: Mapping[str, List[str]], message: str = "Validation failed") -> None:
        super().__init__(message)
        self.errors: Dict[str, List[str]] = {key: list(value) for key, value in errors.items()}


class InvalidCredentials(AuthError):
    """Raised when an email/password pair does not match a stored user."""


def _strip_text(value: object) -> object:
    if isinstance(value, str):
        return value.strip()
    return value


def _check_email(value: str) -> str:
    # Validate the format only; the address is kept as the user typed it.
    validate_email(value, check_deliverability=False)
    return value


Name = Annotated[str, BeforeValidator(_strip_text), Field(min_length=1, max_length=255)]
Email = Annotated[
    str,
    BeforeValidator(_strip_text),
    Field(min_length=1, max_length=255),
    AfterValidator(_check_email),
]


class RegisterRequest(BaseModel):
    name: Name
    email: Email
    password: str = Field(..., min_length=6)
    password_confirmation: str

    @field_validator("password_confirmation")
    @classmethod
    def _passwords_match(cls, value: str, info: ValidationInfo) -> str:
        password = info.data.get("password")
        if password is not None and value != password:
            raise ValueError("password confirmation does not match")
        return value


class LoginRequest(BaseModel):
    email: Email
    password: str = Field(..., min_length=6)


def field_errors(errors: Iterable[Mapping[str, object]]) -> Dict[str, List[str]]:
    """Group pydantic error entries by the name of the offending field."""

    grouped: Dict[str, List[str]] = {}
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = location[-1] if location else "__all__"
        grouped.setdefault(field, []).append(str(error.get("msg", "Invalid value")))
    return grouped


def parse_request(model: Type[ModelT], data: Mapping[str, object]) -> ModelT:
    try:
        return model.model_validate(dict(data))
    except pydantic.ValidationError as exc:
        raise ValidationError(field_errors(exc.errors())) from exc


class AuthWorkflow:
    """Orchestrates the credential store and the token service."""

    def __init__(self, database: Database, tokens: TokenService) -> None:
        self._database = database
        self._tokens = tokens

    def register(
        self,
        *,
        name: str,
        email: str,
        password: str,
        password_confirmation: str,
    ) -> Tuple[User, str]:
        request = parse_request(
            RegisterRequest,
            {
                "name": name,
                "email": email,
                "password": password,
                "password_confirmation": password_confirmation,
            },
        )

        if self._database.email_in_use(request.email):
            raise ValidationError({"email": ["The email has already been taken."]})

        try:
            user = self._database.create_user(request.name, request.email, request.password)
        except ValueError as exc:
            # Lost a race with a concurrent registration for the same address.
            raise ValidationError({"email": ["The email has already been taken."]}) from exc

        try:
            token = self._tokens.issue(user.id)
        except TokenIssuanceError:
            self._database.delete_user(user.id)
            raise

        logger.info("Registered user %s <%s>", user.id, user.email)
        return user, token

    def login(self, *, email: str, password: str) -> Tuple[User, str]:
        request = parse_request(LoginRequest, {"email": email, "password": password})

        user = self._database.authenticate_user(request.email, request.password)
        if user is None:
            logger.warning("Failed login attempt for %s", request.email)
            raise InvalidCredentials("Invalid credentials")

        token = self._tokens.issue(user.id)
        logger.info("User %s logged in", user.id)
        return user, token

    def logout(self, token: str) -> None:
        self._tokens.invalidate(token)


__all__ = [
    "AuthError",
    "AuthWorkflow",
    "Email",
    "InvalidCredentials",
    "LoginRequest",
    "Name",
    "RegisterRequest",
    "ValidationError",
    "field_errors",
    "parse_request",
]
