# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_identity

import time
from collections.abc import Generator
from unittest.mock import MagicMock, patch

import httpx
import pytest
from conftest import RecordingHandler, make_client

from authproxy_providers.exceptions import KeySetError
from authproxy_providers.jwks import JWKSProvider

DISCOVERY_URL = "https://idp.example.com/.well-known/openid-configuration"
OIDC_CONFIG = {"issuer": "https://idp.example.com", "jwks_uri": "https://idp.example.com/jwks"}
JWKS = {"keys": [{"kty": "RSA", "kid": "k1", "n": "abc", "e": "AQAB"}]}


def idp(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/.well-known/openid-configuration":
        return httpx.Response(200, json=OIDC_CONFIG)
    return httpx.Response(200, json=JWKS)


@pytest.fixture(autouse=True)
def no_sleep() -> Generator[MagicMock, None, None]:
    with patch("authproxy_providers.jwks.time.sleep") as mock:
        yield mock


def test_get_jwks_success() -> None:
    handler = RecordingHandler(idp)
    provider = JWKSProvider(DISCOVERY_URL, make_client(handler))

    assert provider.get_jwks() == JWKS
    assert [str(r.url) for r in handler.requests] == [DISCOVERY_URL, "https://idp.example.com/jwks"]


def test_get_jwks_cache_hit() -> None:
    handler = RecordingHandler(idp)
    provider = JWKSProvider(DISCOVERY_URL, make_client(handler))

    provider.get_jwks()
    provider.get_jwks()

    assert len(handler.requests) == 2


def test_get_jwks_cache_expired() -> None:
    handler = RecordingHandler(idp)
    provider = JWKSProvider(DISCOVERY_URL, make_client(handler), cache_ttl=10)

    provider.get_jwks()
    provider._last_update = time.time() - 11
    provider.get_jwks()

    assert len(handler.requests) == 4


def test_force_refresh_respects_cooldown() -> None:
    handler = RecordingHandler(idp)
    provider = JWKSProvider(DISCOVERY_URL, make_client(handler))

    provider.get_jwks()
    assert provider.get_jwks(force_refresh=True) == JWKS

    assert len(handler.requests) == 2


def test_force_refresh_after_cooldown() -> None:
    handler = RecordingHandler(idp)
    provider = JWKSProvider(DISCOVERY_URL, make_client(handler), refresh_cooldown=30.0)

    provider.get_jwks()
    provider._last_update = time.time() - 31
    provider.get_jwks(force_refresh=True)

    assert len(handler.requests) == 4


def test_retries_transient_errors(no_sleep: MagicMock) -> None:
    responses = iter([httpx.Response(503), httpx.Response(200, json=OIDC_CONFIG), httpx.Response(200, json=JWKS)])
    handler = RecordingHandler(lambda request: next(responses))
    provider = JWKSProvider(DISCOVERY_URL, make_client(handler))

    assert provider.get_jwks() == JWKS
    assert len(handler.requests) == 3
    no_sleep.assert_called_once_with(0.1)


def test_gives_up_after_attempts() -> None:
    handler = RecordingHandler(httpx.ConnectError("unreachable"))
    provider = JWKSProvider(DISCOVERY_URL, make_client(handler), attempts=3)

    with pytest.raises(KeySetError, match="unreachable"):
        provider.get_jwks()

    assert len(handler.requests) == 3


def test_invalid_json_is_not_retried() -> None:
    handler = RecordingHandler(httpx.Response(200, content=b"<html>"))
    provider = JWKSProvider(DISCOVERY_URL, make_client(handler))

    with pytest.raises(KeySetError, match="Invalid JSON"):
        provider.get_jwks()

    assert len(handler.requests) == 1


def test_invalid_oidc_config() -> None:
    handler = RecordingHandler(httpx.Response(200, json={"issuer": "https://idp.example.com"}))
    provider = JWKSProvider(DISCOVERY_URL, make_client(handler))

    with pytest.raises(KeySetError, match="Invalid OIDC configuration"):
        provider.get_jwks()


def test_jwks_without_keys() -> None:
    handler = RecordingHandler(
        lambda request: httpx.Response(200, json=OIDC_CONFIG if "well-known" in request.url.path else {"x": 1})
    )
    provider = JWKSProvider(DISCOVERY_URL, make_client(handler))

    with pytest.raises(KeySetError, match="missing 'keys'"):
        provider.get_jwks()

