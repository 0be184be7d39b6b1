"""Bearer-token identity for /api/v1.

A token says who the caller is and nothing else: the ``sub`` claim is
the user id. Which organization a request acts on comes from X-ORG-ID
and is checked against the user's active binding by the org resolver.

Tokens are HS256 JWTs signed with JWT_SECRET_KEY (PyJWT).
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import jwt

from src.shared.errors import AuthenticationError

_ALGORITHM = "HS256"
_BEARER = "Bearer "


@dataclass(frozen=True)
class TokenPayload:
    user_id: str


def encode_token(*, user_id: str, secret: str, ttl_seconds: int = 3600) -> str:
    """Sign a token for ``user_id`` that expires ``ttl_seconds`` from now."""
    issued = int(time.time())
    claims = {"sub": str(user_id), "iat": issued, "exp": issued + ttl_seconds}
    return jwt.encode(claims, secret, algorithm=_ALGORITHM)


def decode_token(token: str, *, secret: str) -> TokenPayload:
    """Verify signature and expiry; raise AuthenticationError otherwise."""
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[_ALGORITHM],
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError(f"Invalid token: {exc}") from exc

    user_id = str(claims["sub"]).strip()
    if not user_id:
        raise AuthenticationError("Invalid token: empty subject")
    return TokenPayload(user_id=user_id)


def extract_bearer(authorization: str | None) -> str | None:
    """Token part of an ``Authorization`` header, or None if it is not a Bearer header."""
    if not authorization or not authorization.startswith(_BEARER):
        return None
    return authorization.removeprefix(_BEARER).strip() or None


class JWTAuthMiddleware:
    """Decides, per path, whether a token is required and whose it is."""

    def __init__(
        self,
        *,
        secret: str,
        exempt_paths: frozenset[str] = frozenset(),
        exempt_prefixes: tuple[str, ...] = (),
    ) -> None:
        self._secret = secret
        self._exempt_paths = exempt_paths
        self._exempt_prefixes = exempt_prefixes

    def is_exempt(self, path: str) -> bool:
        if path in self._exempt_paths:
            return True
        return any(path.startswith(prefix) for prefix in self._exempt_prefixes)

    def authenticate(self, *, token: str | None, path: str) -> TokenPayload | None:
        """Payload for ``token``; None when ``path`` needs no identity."""
        if self.is_exempt(path):
            return None
        if token is None:
            raise AuthenticationError("Unauthorized")
        return decode_token(token, secret=self._secret)
