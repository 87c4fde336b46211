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
BearerSessionResolver component for turning a bearer JWT into a session.
"""

from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import NamedTuple

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from authproxy_providers.config import ProviderConfig
from authproxy_providers.exceptions import (
    AllVerifiersFailedError,
    ClaimsParseError,
    NoVerifiersConfiguredError,
    UnverifiedEmailError,
)
from authproxy_providers.models import SessionRecord, VerifiedClaims
from authproxy_providers.utils.logger import logger
from authproxy_providers.verifier import JWTVerifier

tracer = trace.get_tracer(__name__)

RejectionObserver = Callable[[int, JWTVerifier, Exception], None]


class VerifierOutcome(StrEnum):
    REJECTED = "rejected"
    ACCEPTED = "accepted"
    INVALID = "invalid"


class VerifierStep(NamedTuple):
    """
    Result of trying one verifier.

    REJECTED carries the verifier's error and lets the loop continue.
    ACCEPTED carries the session and stops the loop.
    INVALID carries a BearerAuthError and stops the loop.
    """

    outcome: VerifierOutcome
    session: SessionRecord | None = None
    error: Exception | None = None


def log_rejection(index: int, verifier: JWTVerifier, error: Exception) -> None:
    logger.info(f"failed to verify bearer token with verifier #{index} ({verifier!r}): {error}")


def evaluate_verifier(verifier: JWTVerifier, raw_token: str) -> VerifierStep:
    """
    Runs one verifier against `raw_token` and applies the claims policy.

    Args:
        verifier: The verifier to try.
        raw_token: The raw bearer JWT.

    Returns:
        VerifierStep: The outcome for this verifier.
    """
    try:
        token = verifier.verify(raw_token)
    except Exception as e:
        # Any verifier failure means "not issued by this authority"
        return VerifierStep(VerifierOutcome.REJECTED, error=e)

    try:
        claims = token.claims(VerifiedClaims)
    except (ValueError, TypeError) as e:
        return VerifierStep(
            VerifierOutcome.INVALID, error=ClaimsParseError(f"failed to parse bearer token claims: {e}")
        )

    if claims.email_verified is False:
        return VerifierStep(
            VerifierOutcome.INVALID,
            error=UnverifiedEmailError(f"email in id_token ({claims.email}) isn't verified"),
        )

    session = SessionRecord(
        access_token=raw_token,
        id_token=raw_token,
        refresh_token="",
        expires_on=token.expiry,
        email=claims.email,
        user=claims.email,
    )
    return VerifierStep(VerifierOutcome.ACCEPTED, session=session)


class BearerSessionResolver:
    """
    Resolves a raw bearer JWT into a SessionRecord using the provider's verifiers.

    Verifiers are tried strictly in order. A verifier that rejects the token is reported
    to `on_rejected` and the next one is tried; the first verifier that accepts decides
    the result, whether that is a session or a claims/trust failure.
    """

    def __init__(self, on_rejected: RejectionObserver | None = None) -> None:
        """
        Initialize the BearerSessionResolver.

        Args:
            on_rejected: Called with (index, verifier, error) for each rejecting verifier.
                Defaults to logging the rejection.
        """
        self.on_rejected = on_rejected or log_rejection

    def resolve(self, config: ProviderConfig | None, raw_token: str) -> SessionRecord:
        """
        Loads a session from a bearer JWT.

        Args:
            config: The provider configuration holding the verifiers.
            raw_token: The raw JWT from the Authorization header.

        Returns:
            SessionRecord: A session whose access and ID tokens are the raw JWT.

        Raises:
            NoVerifiersConfiguredError: If there is no configuration or no verifiers.
            ClaimsParseError: If the accepting verifier's token has malformed claims.
            UnverifiedEmailError: If the accepting verifier's token has `email_verified: false`.
            AllVerifiersFailedError: If every verifier rejected the token.
        """
        verifiers: Sequence[JWTVerifier] = config.jwt_verifiers if config is not None else ()
        if not verifiers:
            raise NoVerifiersConfiguredError("No JWT bearer verifiers configured")

        with tracer.start_as_current_span("resolve_bearer") as span:
            span.set_attribute("authproxy.verifier_count", len(verifiers))

            for index, verifier in enumerate(verifiers):
                step = evaluate_verifier(verifier, raw_token)

                if step.outcome is VerifierOutcome.REJECTED:
                    self.on_rejected(index, verifier, step.error)  # type: ignore[arg-type]
                    continue

                if step.outcome is VerifierOutcome.INVALID:
                    logger.warning(f"Bearer token rejected by verifier #{index}: {step.error}")
                    span.set_status(Status(StatusCode.ERROR, str(step.error)))
                    raise step.error  # type: ignore[misc]

                span.set_attribute("authproxy.verifier_index", index)
                span.set_status(Status(StatusCode.OK))
                return step.session  # type: ignore[return-value]

            span.set_status(Status(StatusCode.ERROR, "all verifiers rejected the token"))
            raise AllVerifiersFailedError(
                "failed to process the raw bearer token: rejected by all configured verifiers"
            )

