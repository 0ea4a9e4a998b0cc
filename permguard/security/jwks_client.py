"""
Signing keys for RS256 session tokens.

PyJWT's ``PyJWKClient`` owns key-set caching (``lifespan``), per-kid caching
and the single forced refresh when a token names a ``kid`` that is not in
the cached set (key rotation). Only the HTTP fetch is replaced, so key
downloads go through ``requests`` with an explicit timeout.
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from jwt import PyJWKClient
from jwt.exceptions import PyJWKClientConnectionError

logger = logging.getLogger(__name__)


class SessionKeyClient(PyJWKClient):
    def __init__(self, jwks_uri: str, *, lifespan_seconds: int, timeout_seconds: float) -> None:
        super().__init__(jwks_uri, cache_keys=True, cache_jwk_set=True, lifespan=lifespan_seconds)
        self._timeout_seconds = timeout_seconds

    def fetch_data(self) -> Any:
        try:
            resp = requests.get(self.uri, timeout=self._timeout_seconds)
            resp.raise_for_status()
            jwk_set = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise PyJWKClientConnectionError(f"JWKS fetch failed for {self.uri}: {e}") from e

        if self.jwk_set_cache is not None:
            self.jwk_set_cache.put(jwk_set)
        logger.debug("Fetched JWKS uri=%s keys=%d", self.uri, len(jwk_set.get("keys") or []))
        return jwk_set
