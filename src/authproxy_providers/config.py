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
Configuration for the authproxy-providers package.
"""

from urllib.parse import urlsplit

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from authproxy_providers.verifier import JWTVerifier


class ProviderConfig(BaseSettings):
    """
    Configuration shared by every OAuth2 provider implementation.

    Built once at startup and never mutated afterwards, so one instance can be read
    concurrently by any number of requests.

    Attributes:
        provider_name (str): Human readable provider identifier.
        client_id (str): The OAuth2 client ID.
        client_secret (SecretStr): The OAuth2 client secret.
        login_url (str | None): The authorization endpoint.
        redeem_url (str | None): The token endpoint.
        profile_url (str | None): The user profile endpoint, used by concrete providers.
        protected_resource_url (str | None): Sent as `resource` when redeeming (Azure style providers).
        validate_url (str | None): The token introspection endpoint.
        scope (str): Space-delimited OAuth2 scopes.
        approval_prompt (str): Value of the `approval_prompt` login parameter.
        jwt_verifiers (tuple[JWTVerifier, ...]): Ordered bearer JWT verifiers. Empty disables bearer auth.
        http_timeout (float | None): Timeout in seconds for a provider-owned HTTP client. None imposes none.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTHPROXY_PROVIDER_",
        case_sensitive=False,
        frozen=True,
        arbitrary_types_allowed=True,
    )

    provider_name: str = "OAuth2"
    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    login_url: str | None = None
    redeem_url: str | None = None
    profile_url: str | None = None
    protected_resource_url: str | None = None
    validate_url: str | None = None
    scope: str = ""
    approval_prompt: str = "force"
    jwt_verifiers: tuple[JWTVerifier, ...] = Field(default=(), exclude=True)
    http_timeout: float | None = Field(default=None, description="Timeout in seconds for IdP network operations.")

    @field_validator(
        "login_url", "redeem_url", "profile_url", "protected_resource_url", "validate_url", mode="before"
    )
    @classmethod
    def validate_absolute_url(cls, v: str | None) -> str | None:
        """
        Ensures endpoint URLs are absolute http(s) URLs.
        Empty strings are treated as unset.

        Args:
            v: The raw URL string.

        Returns:
            The stripped URL, or None if unset.

        Raises:
            ValueError: If the URL is not absolute or uses another scheme.
        """
        if v is None:
            return None
        v = str(v).strip()
        if not v:
            return None

        parsed = urlsplit(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Endpoint '{v}' must be an absolute http(s) URL")
        return v

    @field_validator("scope")
    @classmethod
    def normalize_scope(cls, v: str) -> str:
        """Collapses runs of whitespace in the scope string."""
        return " ".join(v.split())
