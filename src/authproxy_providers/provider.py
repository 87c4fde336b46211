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
The provider contract and its default OAuth2 implementation.

Concrete providers subclass `DefaultProvider` and override only what their protocol
changes: identity extraction, group validation, refresh and, when needed, redemption.
"""

from typing import Any, Protocol

import httpx
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from authproxy_providers.bearer import BearerSessionResolver
from authproxy_providers.config import ProviderConfig
from authproxy_providers.exceptions import ProviderNotImplementedError
from authproxy_providers.introspection import validate_token
from authproxy_providers.login import build_login_url
from authproxy_providers.models import SessionRecord
from authproxy_providers.redeem import TokenRedeemer
from authproxy_providers.session import Cipher, JSONSessionCodec, SessionCodec


class Provider(Protocol):
    """Capability set every identity provider exposes to the proxy."""

    def data(self) -> ProviderConfig: ...

    def get_email_address(self, session: SessionRecord) -> str: ...

    def get_user_name(self, session: SessionRecord) -> str: ...

    def redeem(self, redirect_uri: str, code: str) -> SessionRecord: ...

    def validate_group(self, email: str) -> bool: ...

    def validate_session_state(self, session: SessionRecord) -> bool: ...

    def get_login_url(self, redirect_uri: str, state: str) -> str: ...

    def refresh_session_if_needed(self, session: SessionRecord) -> bool: ...

    def cookie_for_session(self, session: SessionRecord, cipher: Cipher | None) -> str: ...

    def session_from_cookie(self, value: str, cipher: Cipher | None) -> SessionRecord: ...

    def get_jwt_session(self, raw_bearer_token: str) -> SessionRecord: ...


class DefaultProvider:
    """
    Generic OAuth2 provider.
    Handles its HTTP client via context manager when it creates one.
    """

    def __init__(
        self,
        config: ProviderConfig,
        client: httpx.Client | None = None,
        codec: SessionCodec | None = None,
        bearer_resolver: BearerSessionResolver | None = None,
    ) -> None:
        """
        Initialize the DefaultProvider.

        Args:
            config: The provider configuration.
            client: External HTTP client (optional). If not provided, one is created using
                `config.http_timeout` and closed by `close()`.
            codec: Session cookie codec. Defaults to `JSONSessionCodec`.
            bearer_resolver: Resolver for bearer JWTs. Defaults to one that logs rejections.
        """
        self.config = config
        self._internal_client = client is None

        if client:
            self._client = client
        else:
            self._client = httpx.Client(timeout=config.http_timeout)
            # Instrument the client for distributed tracing
            HTTPXClientInstrumentor().instrument_client(self._client)

        self.redeemer = TokenRedeemer(self._client)
        self.codec = codec or JSONSessionCodec()
        self.bearer_resolver = bearer_resolver or BearerSessionResolver()

    def __enter__(self) -> "DefaultProvider":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._internal_client:
            self._client.close()

    def data(self) -> ProviderConfig:
        return self.config

    def redeem(self, redirect_uri: str, code: str) -> SessionRecord:
        """
        Exchanges an authorization code for a session.

        Raises:
            RedeemError: See `TokenRedeemer.redeem` for the specific subclasses.
        """
        return self.redeemer.redeem(self.config, redirect_uri, code)

    def get_login_url(self, redirect_uri: str, state: str) -> str:
        return build_login_url(self.config, redirect_uri, state)

    def cookie_for_session(self, session: SessionRecord, cipher: Cipher | None) -> str:
        return self.codec.encode(session, cipher)

    def session_from_cookie(self, value: str, cipher: Cipher | None) -> SessionRecord:
        return self.codec.decode(value, cipher)

    def get_email_address(self, session: SessionRecord) -> str:
        raise ProviderNotImplementedError("not implemented")

    def get_user_name(self, session: SessionRecord) -> str:
        raise ProviderNotImplementedError("not implemented")

    def validate_group(self, email: str) -> bool:
        """Accepts every email. Providers restricting group membership override this."""
        return True

    def validate_session_state(self, session: SessionRecord) -> bool:
        return validate_token(self.config, session.access_token, self._client)

    def refresh_session_if_needed(self, session: SessionRecord) -> bool:
        """
        Refreshes the session if required.

        Returns:
            bool: Whether the session was refreshed. The default never refreshes.
        """
        return False

    def get_jwt_session(self, raw_bearer_token: str) -> SessionRecord:
        """
        Loads a session from a JWT in the Authorization header.

        Raises:
            BearerAuthError: See `BearerSessionResolver.resolve` for the specific subclasses.
        """
        return self.bearer_resolver.resolve(self.config, raw_bearer_token)
