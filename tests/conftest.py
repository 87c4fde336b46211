# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_identity

from collections.abc import Callable

import httpx
import pytest

from authproxy_providers.config import ProviderConfig
from authproxy_providers.models import VerifiedToken

Handler = Callable[[httpx.Request], httpx.Response]


class ReversingCipher:
    """Reversible stand-in for the cookie cipher."""

    def encrypt(self, value: str) -> str:
        return "enc:" + value[::-1]

    def decrypt(self, value: str) -> str:
        if not value.startswith("enc:"):
            raise ValueError("not encrypted")
        return value[4:][::-1]


class StubVerifier:
    """JWTVerifier that either returns a fixed token or raises, recording each call."""

    def __init__(self, token: VerifiedToken | None = None, error: Exception | None = None) -> None:
        self.token = token
        self.error = error
        self.calls: list[str] = []

    def verify(self, raw_token: str) -> VerifiedToken:
        self.calls.append(raw_token)
        if self.error is not None:
            raise self.error
        assert self.token is not None
        return self.token


class RecordingHandler:
    """httpx.MockTransport handler returning a canned response and recording requests."""

    def __init__(self, response: httpx.Response | Exception | Handler) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        if isinstance(self.response, httpx.Response):
            return self.response
        return self.response(request)


@pytest.fixture
def config() -> ProviderConfig:
    return ProviderConfig(
        provider_name="Test",
        client_id="client-id",
        client_secret="client-secret",
        login_url="https://idp.example.com/oauth/authorize",
        redeem_url="https://idp.example.com/oauth/token",
        validate_url="https://idp.example.com/oauth/tokeninfo",
        scope="openid email",
        approval_prompt="force",
    )


@pytest.fixture
def cipher() -> ReversingCipher:
    return ReversingCipher()


def make_client(handler: RecordingHandler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))

