"""
Session resolution: credential -> ``SessionClaims``.

The credential is a signed JWT, carried either in the session cookie or in
``Authorization: Bearer <token>``. Before trusting anything in it we verify
the signature, the expiry/not-before window, and (when configured) issuer
and audience. Only then are the identity claims read.

A missing, malformed or unverifiable credential resolves to ``None``: "no
session" is a distinct state that the boundary turns into a login redirect
or a 401. It is never treated as an anonymous user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import Request
from jwt.exceptions import PyJWKClientError

from permguard.settings import Settings

from .jwks_client import SessionKeyClient

logger = logging.getLogger(__name__)


class SessionValidationError(Exception):
    """Raised when a session token fails verification. Do not log the token."""


@dataclass(frozen=True)
class SessionClaims:
    """
    Caller identity as asserted by the credential.

    ``org_id`` and ``role_id`` here are hints only: the user context takes
    tenant and role from the user record.
    """

    uid: str
    email: str | None
    org_id: str | None
    role_id: str | None

    def to_dict(self) -> dict[str, object]:
        return {
            "uid": self.uid,
            "email": self.email,
            "org_id": self.org_id,
            "role_id": self.role_id,
        }


def _optional_str(payload: dict[str, Any], *names: str) -> str | None:
    for name in names:
        value = payload.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _extract_claims(payload: dict[str, Any]) -> SessionClaims:
    """
    Build ``SessionClaims`` from a verified payload.

    ``uid`` falls back to ``sub``; camelCase spellings (``orgId``, ``roleId``)
    are accepted alongside snake_case.
    """

    uid = _optional_str(payload, "uid", "sub")
    if uid is None:
        raise SessionValidationError("Invalid session: missing subject")

    return SessionClaims(
        uid=uid,
        email=_optional_str(payload, "email"),
        org_id=_optional_str(payload, "org_id", "orgId"),
        role_id=_optional_str(payload, "role_id", "roleId"),
    )


class SessionTokenVerifier:
    """
    Verifies session JWTs with either a shared secret (HS256) or a JWKS
    endpoint (RS256).
    """

    def __init__(self, settings: Settings, jwks: SessionKeyClient | None = None) -> None:
        if not settings.session_secret and not settings.session_jwks_uri:
            raise ValueError("PERMGUARD_SESSION_SECRET or PERMGUARD_SESSION_JWKS_URI must be set")
        self._settings = settings
        self._jwks = jwks
        if self._jwks is None and settings.session_jwks_uri:
            self._jwks = SessionKeyClient(
                settings.session_jwks_uri,
                lifespan_seconds=settings.jwks_cache_ttl_seconds,
                timeout_seconds=settings.jwks_timeout_seconds,
            )

    def _signing_key(self, token: str) -> Any:
        if self._jwks is None:
            return self._settings.session_secret

        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            raise SessionValidationError("Invalid session: unreadable header") from e
        kid = header.get("kid")
        if not kid:
            raise SessionValidationError("Invalid session: missing key id")
        try:
            return self._jwks.get_signing_key(kid).key
        except PyJWKClientError as e:
            # Unknown kid after a refresh, or the key set could not be fetched.
            raise SessionValidationError(f"Invalid session: no signing key ({type(e).__name__})") from e

    def verify(self, token: str) -> SessionClaims:
        settings = self._settings
        key = self._signing_key(token)
        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=settings.session_algorithms(),
                audience=settings.session_audience,
                issuer=settings.session_issuer,
                leeway=settings.clock_skew_seconds,
                options={
                    "verify_signature": True,
                    "verify_exp": True,
                    "verify_nbf": True,
                    "verify_aud": settings.session_audience is not None,
                    "verify_iss": settings.session_issuer is not None,
                },
            )
        except jwt.ExpiredSignatureError as e:
            raise SessionValidationError("Session expired") from e
        except jwt.InvalidTokenError as e:
            raise SessionValidationError(f"Invalid session: {type(e).__name__}") from e

        return _extract_claims(payload)


class SessionResolver:
    """
    Adapter between an inbound request and ``SessionClaims``.

    Cookie first, then the Authorization header. A cookie that fails
    verification does not hide a valid header credential.
    """

    def __init__(self, settings: Settings, verifier: SessionTokenVerifier | None = None) -> None:
        self._settings = settings
        self._verifier = verifier or SessionTokenVerifier(settings)

    def _cookie_token(self, request: Request) -> str | None:
        cookie = request.cookies.get(self._settings.session_cookie_name)
        if not cookie:
            return None
        return cookie.strip() or None

    def _header_token(self, request: Request) -> str | None:
        settings = self._settings
        raw = request.headers.get(settings.authorization_header)
        if not raw:
            return None

        prefix = f"{settings.bearer_prefix} "
        if not raw.startswith(prefix):
            logger.warning("Invalid %s header format path=%s", settings.authorization_header, request.url.path)
            return None
        return raw[len(prefix) :].strip() or None

    def resolve_token(self, token: str) -> SessionClaims | None:
        try:
            return self._verifier.verify(token)
        except SessionValidationError as exc:
            logger.info("Session rejected: %s", exc)
            return None

    def resolve(self, request: Request) -> SessionClaims | None:
        tokens = [token for token in (self._cookie_token(request), self._header_token(request)) if token]
        if not tokens:
            logger.debug("No session credential path=%s method=%s", request.url.path, request.method)
            return None
        for token in tokens:
            claims = self.resolve_token(token)
            if claims is not None:
                return claims
        return None
