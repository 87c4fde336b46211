# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_identity

"""
JWKS Provider component for fetching and caching an issuer's signing keys.
"""

import threading
import time
from typing import Any

import httpx
from pydantic import ValidationError

from authproxy_providers.exceptions import KeySetError
from authproxy_providers.models import OIDCConfig
from authproxy_providers.utils.logger import logger


class JWKSProvider:
    """
    Fetches and caches an issuer's OIDC configuration and JWKS.

    Attributes:
        discovery_url (str): The OIDC discovery URL.
        cache_ttl (int): The cache time-to-live in seconds.
    """

    def __init__(
        self,
        discovery_url: str,
        client: httpx.Client,
        cache_ttl: int = 3600,
        refresh_cooldown: float = 30.0,
        attempts: int = 3,
    ) -> None:
        """
        Initialize the JWKSProvider.

        Args:
            discovery_url: The OIDC discovery URL (e.g., https://accounts.example.com/.well-known/openid-configuration).
            client: The HTTP client to use for requests.
            cache_ttl: Time-to-live for the JWKS cache in seconds. Defaults to 3600 (1 hour).
            refresh_cooldown: Minimum time in seconds between forced refreshes. Defaults to 30.0.
            attempts: Number of attempts per fetch on transport errors. Defaults to 3.
        """
        self.discovery_url = discovery_url
        self.client = client
        self.cache_ttl = cache_ttl
        self.refresh_cooldown = refresh_cooldown
        self.attempts = attempts
        self._jwks_cache: dict[str, Any] | None = None
        self._last_update: float = 0.0
        self._lock = threading.Lock()

    def _fetch_json(self, url: str) -> Any:
        """
        GETs a JSON document, retrying on `httpx.HTTPError` with exponential backoff (initial=0.1s, max=1.0s).

        Raises:
            KeySetError: If the request fails after retries or the body is not JSON.
        """
        wait_initial = 0.1
        wait_max = 1.0

        for attempt in range(self.attempts):
            try:
                response = self.client.get(url)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPError as e:
                if attempt == self.attempts - 1:
                    raise KeySetError(f"Failed to fetch {url}: {e}") from e
                logger.debug(f"Fetching {url} failed (attempt {attempt + 1}/{self.attempts}): {e}")
                time.sleep(min(wait_initial * (2**attempt), wait_max))
            except ValueError as e:
                # Invalid JSON is not transient, do not retry
                raise KeySetError(f"Invalid JSON response from {url}: {e}") from e

        raise KeySetError(f"Failed to fetch {url}")  # pragma: no cover

    def _fetch_oidc_config(self) -> OIDCConfig:
        data = self._fetch_json(self.discovery_url)
        if not isinstance(data, dict):
            raise KeySetError(f"Invalid OIDC configuration from {self.discovery_url}: expected an object")
        try:
            return OIDCConfig(**data)
        except ValidationError as e:
            raise KeySetError(f"Invalid OIDC configuration from {self.discovery_url}: {e}") from e

    def _refresh_critical_section(self, force_refresh: bool) -> dict[str, Any]:
        """
        Critical section for refreshing JWKS.
        Must be called while holding the lock.
        """
        current_time = time.time()
        age = current_time - self._last_update

        if self._jwks_cache is not None:
            # Another thread may have refreshed while we waited for the lock
            if not force_refresh and age < self.cache_ttl:
                return self._jwks_cache
            if force_refresh and age < self.refresh_cooldown:
                logger.warning("JWKS refresh cooldown active. Returning cached keys despite force_refresh request.")
                return self._jwks_cache

        oidc_config = self._fetch_oidc_config()
        jwks = self._fetch_json(oidc_config.jwks_uri)
        if not isinstance(jwks, dict) or not isinstance(jwks.get("keys"), list):
            raise KeySetError(f"Invalid JWKS from {oidc_config.jwks_uri}: missing 'keys'")

        self._jwks_cache = jwks
        self._last_update = current_time
        logger.debug(f"Loaded {len(jwks['keys'])} signing keys from {oidc_config.jwks_uri}")
        return jwks

    def get_jwks(self, force_refresh: bool = False) -> dict[str, Any]:
        """
        Returns the JWKS, using the cache if valid.

        Args:
            force_refresh: If True, bypasses the cache (subject to the refresh cooldown).

        Returns:
            dict[str, Any]: The JWKS dictionary.

        Raises:
            KeySetError: If fetching fails.
        """
        # Double-checked locking (Check 1: No lock)
        if not force_refresh:
            jwks = self._jwks_cache
            if jwks is not None and (time.time() - self._last_update) < self.cache_ttl:
                return jwks

        with self._lock:
            return self._refresh_critical_section(force_refresh)

