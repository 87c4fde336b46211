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
JWT verifiers used for bearer authentication.

A verifier checks a raw JWT against one trusted signing authority. Providers hold an
ordered sequence of them so tokens from several issuers can be accepted.
"""

from datetime import datetime, timezone
from typing import Any, Protocol, cast, runtime_checkable

import httpx
from authlib.jose import JsonWebToken
from authlib.jose.errors import BadSignatureError, ExpiredTokenError, InvalidClaimError, JoseError, MissingClaimError

from authproxy_providers.exceptions import (
    ConfigurationError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidTokenError,
    SignatureVerificationError,
    TokenExpiredError,
)
from authproxy_providers.jwks import JWKSProvider
from authproxy_providers.models import VerifiedToken
from authproxy_providers.utils.logger import logger


@runtime_checkable
class JWTVerifier(Protocol):
    """Protocol for a capability that verifies JWTs issued by one signing authority."""

    def verify(self, raw_token: str) -> VerifiedToken:
        """
        Verifies the signature, issuer, audience and expiry of `raw_token`.
        Raises on any verification failure.
        """
        ...


class IDTokenVerifier:
    """
    Verifies OIDC ID tokens against an issuer's JWKS.

    Attributes:
        issuer (str): The expected `iss` claim.
        client_id (str): The expected `aud` claim.
        jwks_provider (JWKSProvider): Source of the issuer's signing keys.
    """

    def __init__(
        self,
        issuer: str,
        client_id: str,
        jwks_provider: JWKSProvider,
        allowed_algorithms: list[str] | None = None,
        leeway: int = 0,
        skip_client_id_check: bool = False,
    ) -> None:
        """
        Initialize the IDTokenVerifier.

        Args:
            issuer: The expected issuer (iss) claim.
            client_id: The expected audience (aud) claim.
            jwks_provider: The JWKSProvider instance to fetch signing keys.
            allowed_algorithms: Accepted JWT signing algorithms. Defaults to ["RS256"].
            leeway: Acceptable clock skew in seconds. Defaults to 0.
            skip_client_id_check: Accept tokens for any audience.
        """
        self.issuer = issuer
        self.client_id = client_id
        self.jwks_provider = jwks_provider
        self.allowed_algorithms = allowed_algorithms or ["RS256"]
        self.leeway = leeway
        self.skip_client_id_check = skip_client_id_check
        # A dedicated JsonWebToken instance rejects algorithms outside the allow list
        self.jwt = JsonWebToken(self.allowed_algorithms)

    def __repr__(self) -> str:
        return f"IDTokenVerifier(issuer={self.issuer!r}, client_id={self.client_id!r})"

    def _claims_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "iss": {"essential": True, "value": self.issuer},
            "exp": {"essential": True},
            "nbf": {"essential": False},
        }
        if not self.skip_client_id_check:
            options["aud"] = {"essential": True, "value": self.client_id}
        return options

    def _decode(self, token: str, jwks: dict[str, Any]) -> Any:
        jwt_any = cast("Any", self.jwt)
        claims = jwt_any.decode(token, jwks, claims_options=self._claims_options())
        claims.validate(leeway=self.leeway)
        return claims

    def verify(self, raw_token: str) -> VerifiedToken:
        """
        Validates the JWT signature and claims.

        Args:
            raw_token: The raw compact JWT.

        Returns:
            VerifiedToken: The verified token with its payload and expiry.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidAudienceError: If the audience is invalid.
            InvalidIssuerError: If the issuer is invalid.
            SignatureVerificationError: If the signature is invalid or the key is unknown.
            InvalidTokenError: For missing claims and other JOSE errors.
            KeySetError: If the signing keys cannot be fetched.
        """
        token = raw_token.strip()

        try:
            jwks = self.jwks_provider.get_jwks()
            try:
                claims = self._decode(token, jwks)
            except (ValueError, BadSignatureError):
                # Unknown kid or bad signature may mean the issuer rotated its keys
                logger.info("Verification failed with cached keys, refreshing JWKS and retrying...")
                jwks = self.jwks_provider.get_jwks(force_refresh=True)
                claims = self._decode(token, jwks)
        except ExpiredTokenError as e:
            raise TokenExpiredError(f"Token has expired: {e}") from e
        except InvalidClaimError as e:
            if "aud" in str(e):
                raise InvalidAudienceError(f"Invalid audience: {e}") from e
            if "iss" in str(e):
                raise InvalidIssuerError(f"Invalid issuer: {e}") from e
            raise InvalidTokenError(f"Invalid claim: {e}") from e
        except MissingClaimError as e:
            raise InvalidTokenError(f"Missing claim: {e}") from e
        except BadSignatureError as e:
            raise SignatureVerificationError(f"Invalid signature: {e}") from e
        except JoseError as e:
            raise InvalidTokenError(f"Token verification failed: {e}") from e
        except ValueError as e:
            # Authlib raises ValueError for a malformed key set or a missing "kid"
            raise SignatureVerificationError(f"Invalid signature or key not found: {e}") from e

        payload = dict(claims)
        exp = payload.get("exp")
        expiry = datetime.fromtimestamp(exp, tz=timezone.utc) if isinstance(exp, (int, float)) else None

        return VerifiedToken(raw=token, payload=payload, issuer=self.issuer, expiry=expiry)


def verifiers_from_issuers(
    issuers: list[str],
    client: httpx.Client,
    allowed_algorithms: list[str] | None = None,
) -> list[IDTokenVerifier]:
    """
    Builds bearer verifiers from "issuer=audience" pairs, preserving their order.

    Args:
        issuers: Entries like "https://accounts.example.com=my-client-id".
        client: HTTP client shared by the verifiers' JWKS providers.
        allowed_algorithms: Accepted JWT signing algorithms.

    Returns:
        list[IDTokenVerifier]: One verifier per entry.

    Raises:
        ConfigurationError: If an entry is not of the form "issuer=audience".
    """
    verifiers = []
    for entry in issuers:
        issuer, sep, audience = entry.partition("=")
        issuer, audience = issuer.strip(), audience.strip()
        if not sep or not issuer or not audience:
            raise ConfigurationError(f"Invalid JWT issuer '{entry}', expected 'issuer=audience'")

        discovery_url = f"{issuer.rstrip('/')}/.well-known/openid-configuration"
        verifiers.append(
            IDTokenVerifier(
                issuer=issuer,
                client_id=audience,
                jwks_provider=JWKSProvider(discovery_url, client),
                allowed_algorithms=allowed_algorithms,
            )
        )
        logger.debug(f"Configured bearer verifier for issuer {issuer}")
    return verifiers
