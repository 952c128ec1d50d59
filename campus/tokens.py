"""Signed bearer tokens with an in-process revocation list."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger("campus.tokens")

DEFAULT_TOKEN_TTL = timedelta(minutes=60)


class TokenError(RuntimeError):
    """Base class for tokens that cannot be used to authenticate."""


class TokenInvalid(TokenError):
    """Raised when a token is malformed or its signature does not verify."""


class TokenExpired(TokenError):
    """Raised when a token is past its expiry."""


class TokenRevoked(TokenError):
    """Raised when a token was invalidated before its expiry."""


class TokenIssuanceError(RuntimeError):
    """Raised when a token cannot be signed, e.g. no signing key is configured."""


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    token_id: str
    issued_at: datetime
    expires_at: datetime


def _build_cipher(secret: Optional[str]) -> Optional[Fernet]:
    if not secret:
        return None
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    key = base64.urlsafe_b64encode(digest)
    return Fernet(key)


class TokenService:
    """Issue, validate, and revoke bearer tokens bound to a user id.

    Tokens are Fernet-encrypted JSON claims, so validity is checked without a
    store lookup. Revocation keeps the token id in a denylist until the token
    would have expired anyway; entries are pruned lazily.
    """

    def __init__(self, secret: Optional[str], *, ttl: timedelta = DEFAULT_TOKEN_TTL) -> None:
        if ttl <= timedelta(0):
            raise ValueError("Token TTL must be positive")
        self._cipher = _build_cipher(secret)
        self._ttl = ttl
        self._revoked: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def issue(self, user_id: int) -> str:
        if self._cipher is None:
            raise TokenIssuanceError("Token signing key is not configured")

        issued_at = self._now()
        claims = {
            "sub": int(user_id),
            "jti": secrets.token_urlsafe(16),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self._ttl).timestamp()),
        }
        payload = json.dumps(claims, separators=(",", ":")).encode("utf-8")
        return self._cipher.encrypt(payload).decode("ascii")

    def validate(self, token: str) -> int:
        """Return the user id bound to ``token`` or raise a :class:`TokenError`."""

        claims = self.decode(token)
        now = self._now()
        if claims.expires_at <= now:
            raise TokenExpired("Token has expired")

        with self._lock:
            self._prune(now)
            if claims.token_id in self._revoked:
                raise TokenRevoked("Token has been revoked")

        return claims.user_id

    def invalidate(self, token: str) -> None:
        claims = self.decode(token)
        now = self._now()
        if claims.expires_at <= now:
            return

        with self._lock:
            self._prune(now)
            self._revoked[claims.token_id] = claims.expires_at
        logger.info("Revoked token %s for user %s", claims.token_id, claims.user_id)

    def decode(self, token: str) -> TokenClaims:
        """Verify the signature of ``token`` and return its claims without checking expiry."""

        if self._cipher is None:
            raise TokenInvalid("Token signing key is not configured")

        cleaned = (token or "").strip()
        if not cleaned:
            raise TokenInvalid("Token is empty")

        try:
            payload = self._cipher.decrypt(cleaned.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise TokenInvalid("Token signature could not be verified") from exc

        try:
            raw = json.loads(payload.decode("utf-8"))
            return TokenClaims(
                user_id=int(raw["sub"]),
                token_id=str(raw["jti"]),
                issued_at=datetime.fromtimestamp(int(raw["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(raw["exp"]), tz=timezone.utc),
            )
        except (ValueError, TypeError, KeyError) as exc:
            raise TokenInvalid("Token payload is malformed") from exc

    def _prune(self, now: datetime) -> None:
        expired = [token_id for token_id, expires_at in self._revoked.items() if expires_at <= now]
        for token_id in expired:
            self._revoked.pop(token_id, None)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__ = [
    "DEFAULT_TOKEN_TTL",
    "TokenClaims",
    "TokenError",
    "TokenExpired",
    "TokenInvalid",
    "TokenIssuanceError",
    "TokenRevoked",
    "TokenService",
]
