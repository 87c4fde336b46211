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
Data models for the authproxy-providers package.
"""

from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, field_validator, model_validator

ClaimsT = TypeVar("ClaimsT", bound=BaseModel)


class SessionRecord(BaseModel):
    """
    Normalized representation of an authenticated session.

    Produced by code redemption or bearer resolution and handed to the session codec.
    Token fields are redacted from `repr` so a session can be logged safely.
    """

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "access_token": "ya29.a0Af...",
                "email": "alice@example.com",
                "user": "alice@example.com",
            }
        },
    )

    access_token: str = Field(default="", description="Opaque bearer credential issued by the provider.")
    id_token: str | None = Field(default=None, description="Raw ID token, present when produced from a JWT.")
    refresh_token: str | None = Field(default=None, description="Refresh token, if the provider issued one.")
    email: str | None = Field(default=None, description="Email address of the authenticated account.")
    user: str | None = Field(default=None, description="User name of the authenticated account.")
    created_at: datetime | None = Field(default=None, description="When the session was created.")
    expires_on: datetime | None = Field(default=None, description="When the access token expires.")

    def __repr__(self) -> str:
        # Credentials MUST be redacted in __repr__
        return (
            f"SessionRecord(access_token={'<REDACTED>' if self.access_token else ''!r}, "
            f"id_token={'<REDACTED>' if self.id_token else None!r}, "
            f"refresh_token={'<REDACTED>' if self.refresh_token else None!r}, "
            f"email={self.email!r}, "
            f"user={self.user!r}, "
            f"created_at={self.created_at!r}, "
            f"expires_on={self.expires_on!r})"
        )

    def __str__(self) -> str:
        return self.__repr__()


class VerifiedClaims(BaseModel):
    """
    Identity claims extracted from a verified bearer JWT.

    Types are strict: a token whose `email_verified` is the string "true" is a payload
    contract violation, not a verified email.

    Attributes:
        subject (str): The `sub` claim.
        email (str): The `email` claim, falling back to `subject` when empty.
        email_verified (bool | None): The `email_verified` claim, None when absent.
    """

    model_config = ConfigDict(extra="ignore")

    subject: StrictStr = Field(default="", alias="sub")
    email: StrictStr = ""
    email_verified: StrictBool | None = None

    @field_validator("subject", "email", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @model_validator(mode="after")
    def default_email_to_subject(self) -> "VerifiedClaims":
        if not self.email:
            self.email = self.subject
        return self


class VerifiedToken(BaseModel):
    """
    A JWT that passed signature, issuer, audience and expiry checks.

    Attributes:
        raw (str): The raw compact JWT.
        payload (dict[str, Any]): The decoded claims.
        issuer (str): The issuer the token was verified against.
        expiry (datetime | None): The `exp` claim as a timezone-aware datetime.
    """

    model_config = ConfigDict(frozen=True)

    raw: str
    payload: dict[str, Any] = Field(default_factory=dict)
    issuer: str = ""
    expiry: datetime | None = None

    def claims(self, model: type[ClaimsT]) -> ClaimsT:
        """
        Unmarshals the payload into the given claims model.

        Raises:
            pydantic.ValidationError: If the payload does not fit the model.
        """
        return model.model_validate(self.payload)


class OIDCConfig(BaseModel):
    """
    OIDC Configuration from .well-known/openid-configuration.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    issuer: str = Field(..., description="The OIDC issuer URL.")
    jwks_uri: str = Field(..., description="The URL to the JWKS.")
