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
Custom exceptions for the authproxy-providers package.
"""


class ProviderError(Exception):
    """Base exception for all authproxy-providers errors."""


class ConfigurationError(ProviderError):
    """Raised when an operation needs provider configuration that is missing or malformed."""


class ProviderNotImplementedError(ProviderError, NotImplementedError):
    """
    Raised by default provider methods that concrete providers must override.
    Also catchable as the builtin `NotImplementedError`.
    """


class RedeemError(ProviderError):
    """Base exception for failures while exchanging an authorization code."""


class MissingCodeError(RedeemError):
    """Raised when an empty authorization code is supplied to redeem."""


class TransportError(RedeemError):
    """Raised when the token endpoint cannot be reached (connect errors, timeouts, protocol errors)."""


class HTTPStatusError(RedeemError):
    """
    Raised when the token endpoint answers with a non-200 status.

    Attributes:
        status_code (int): The HTTP status returned by the token endpoint.
        url (str): The redeem URL that was called.
        body (str): The response body, for operator diagnostics only.
    """

    def __init__(self, status_code: int, url: str, body: str) -> None:
        super().__init__(f"got {status_code} from {url!r} {body}")
        self.status_code = status_code
        self.url = url
        self.body = body


class MalformedResponseError(RedeemError):
    """Raised when the token response is neither JSON nor form-encoded."""


class NoAccessTokenError(RedeemError):
    """
    Raised when a form-encoded token response carries no usable access token.

    Attributes:
        body (str): The raw response body, for operator diagnostics only.
    """

    def __init__(self, body: str) -> None:
        super().__init__(f"no access token found {body}")
        self.body = body


class BearerAuthError(ProviderError):
    """Base exception for failures while resolving a bearer JWT into a session."""


class NoVerifiersConfiguredError(BearerAuthError):
    """Raised when the provider has no JWT verifiers, so bearer authentication is disabled."""


class AllVerifiersFailedError(BearerAuthError):
    """Raised when every configured verifier rejected the bearer token."""


class ClaimsParseError(BearerAuthError):
    """Raised when a token passed verification but its claims payload is structurally invalid."""


class UnverifiedEmailError(BearerAuthError):
    """Raised when the token explicitly marks its email as unverified."""


class InvalidTokenError(ProviderError):
    """
    Raised by verifiers when a token is invalid (expired, bad signature, wrong audience, etc.).
    """


class TokenExpiredError(InvalidTokenError):
    """Raised when the provided token has expired."""


class InvalidAudienceError(InvalidTokenError):
    """Raised when the token's audience does not match the expected value."""


class InvalidIssuerError(InvalidTokenError):
    """Raised when the token's issuer does not match the expected value."""


class SignatureVerificationError(InvalidTokenError):
    """Raised when the token's signature cannot be verified."""


class KeySetError(ProviderError):
    """Raised when OIDC discovery or the JWKS cannot be fetched."""


class SessionCodecError(ProviderError):
    """Raised when a session cookie value cannot be decoded."""
