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
TokenRedeemer component for the authorization-code-for-token exchange.
"""

import json
import re
from collections.abc import Callable
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, NamedTuple
from urllib.parse import parse_qs

import httpx
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError, model_validator

from authproxy_providers.config import ProviderConfig
from authproxy_providers.exceptions import (
    ConfigurationError,
    HTTPStatusError,
    MalformedResponseError,
    MissingCodeError,
    NoAccessTokenError,
    TransportError,
)
from authproxy_providers.models import SessionRecord
from authproxy_providers.utils.logger import logger

tracer = trace.get_tracer(__name__)

# "%" not followed by two hex digits
_INVALID_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class TokenResponseFormat(StrEnum):
    JSON = "json"
    FORM = "form"


class ParsedTokenResponse(NamedTuple):
    format: TokenResponseFormat
    access_token: str


class JSONTokenResponse(BaseModel):
    """Token endpoint JSON body. Only the access token is consumed."""

    model_config = ConfigDict(extra="ignore")

    access_token: StrictStr | None = None

    @model_validator(mode="before")
    @classmethod
    def match_key_case_insensitively(cls, data: Any) -> Any:
        """
        Picks up `access_token` under any letter case. When several keys match, the last one wins.
        """
        if not isinstance(data, dict):
            return data
        matches = [value for key, value in data.items() if isinstance(key, str) and key.lower() == "access_token"]
        return {"access_token": matches[-1]} if matches else {}


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON literal {name}")


def _parse_json(body: bytes) -> str | None:
    """
    Returns the JSON access token ("" when absent), or None when the body is not a
    JSON token response.
    """
    try:
        data = json.loads(body, parse_constant=_reject_constant)
    except ValueError:
        return None

    if data is None:
        return ""
    if not isinstance(data, dict):
        return None
    try:
        return JSONTokenResponse.model_validate(data).access_token or ""
    except ValidationError:
        return None


def _parse_form(text: str) -> dict[str, list[str]]:
    """
    Parses an x-www-form-urlencoded body.

    Raises:
        ValueError: On semicolon separators or invalid percent escapes.
    """
    if ";" in text:
        raise ValueError("invalid semicolon separator in query")
    match = _INVALID_ESCAPE.search(text)
    if match:
        raise ValueError(f"invalid URL escape {text[match.start() : match.start() + 3]!r}")
    return parse_qs(text, keep_blank_values=True)


def parse_token_response(body: bytes) -> ParsedTokenResponse:
    """
    Decodes a token endpoint body, trying JSON first and form encoding second.

    Any JSON token response is accepted, even one without an access token. A form
    encoded response must carry a non-empty `access_token`.

    Args:
        body: The raw response body.

    Returns:
        ParsedTokenResponse: The detected format and the access token.

    Raises:
        MalformedResponseError: If the body is neither JSON nor form encoded.
        NoAccessTokenError: If the form encoded body has no access token.
    """
    access_token = _parse_json(body)
    if access_token is not None:
        return ParsedTokenResponse(TokenResponseFormat.JSON, access_token)

    text = body.decode("utf-8", errors="replace")
    try:
        values = _parse_form(text)
    except ValueError as e:
        raise MalformedResponseError(f"token response is neither JSON nor form encoded: {e}") from e

    access_token = next(iter(values.get("access_token", [])), "")
    if not access_token:
        raise NoAccessTokenError(text)
    return ParsedTokenResponse(TokenResponseFormat.FORM, access_token)


class TokenRedeemer:
    """
    Exchanges authorization codes for access tokens at the provider's token endpoint.

    Performs exactly one POST per call. Retries belong to the caller.
    """

    def __init__(self, client: httpx.Client, clock: Callable[[], datetime] | None = None) -> None:
        """
        Initialize the TokenRedeemer.

        Args:
            client: The HTTP client. Its timeout configuration bounds the exchange.
            clock: Returns the current time for `created_at`. Defaults to UTC now.
        """
        self.client = client
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def redeem(self, config: ProviderConfig, redirect_uri: str, code: str) -> SessionRecord:
        """
        Redeems an authorization code.

        Args:
            config: The provider configuration.
            redirect_uri: The redirect URI used in the authorization request.
            code: The authorization code from the callback.

        Returns:
            SessionRecord: A session holding the access token. `created_at` is only set for
            form encoded responses.

        Raises:
            MissingCodeError: If `code` is empty. No request is made.
            ConfigurationError: If no redeem URL is configured.
            TransportError: If the token endpoint cannot be reached.
            HTTPStatusError: If the token endpoint answers with a non-200 status.
            MalformedResponseError: If the body is neither JSON nor form encoded.
            NoAccessTokenError: If the form encoded body has no access token.
        """
        if not code:
            raise MissingCodeError("missing code")
        if not config.redeem_url:
            raise ConfigurationError(f"Provider '{config.provider_name}' has no redeem URL configured")

        data = {
            "redirect_uri": redirect_uri,
            "client_id": config.client_id,
            "client_secret": config.client_secret.get_secret_value(),
            "code": code,
            "grant_type": "authorization_code",
        }
        if config.protected_resource_url:
            data["resource"] = config.protected_resource_url

        with tracer.start_as_current_span("redeem_code") as span:
            span.set_attribute("authproxy.provider", config.provider_name)
            try:
                response = self.client.post(
                    config.redeem_url,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            except httpx.RequestError as e:
                logger.error(f"Token request to {config.redeem_url} failed: {e}")
                raise TransportError(f"token request to {config.redeem_url!r} failed: {e}") from e

            body = response.content
            span.set_attribute("http.response.status_code", response.status_code)

            if response.status_code != 200:
                text = body.decode("utf-8", errors="replace")
                logger.warning(f"Token endpoint {config.redeem_url} answered {response.status_code}")
                raise HTTPStatusError(response.status_code, config.redeem_url, text)

            parsed = parse_token_response(body)
            logger.debug(f"Redeemed code at {config.redeem_url} ({parsed.format} response)")
            span.set_attribute("authproxy.token_response_format", str(parsed.format))
            span.set_status(Status(StatusCode.OK))

            if parsed.format is TokenResponseFormat.JSON:
                return SessionRecord(access_token=parsed.access_token)
            return SessionRecord(access_token=parsed.access_token, created_at=self.clock())
