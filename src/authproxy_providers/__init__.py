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
Default OAuth2 code exchange, session handling and bearer JWT authentication for
identity providers behind an authenticating reverse proxy.
"""

__version__ = "0.1.0"

from .bearer import BearerSessionResolver
from .config import ProviderConfig
from .exceptions import BearerAuthError, ProviderError, RedeemError
from .jwks import JWKSProvider
from .login import build_login_url
from .models import SessionRecord, VerifiedClaims, VerifiedToken
from .provider import DefaultProvider, Provider
from .redeem import TokenRedeemer
from .session import Cipher, JSONSessionCodec, SessionCodec
from .verifier import IDTokenVerifier, JWTVerifier, verifiers_from_issuers

__all__ = [
    "BearerAuthError",
    "BearerSessionResolver",
    "Cipher",
    "DefaultProvider",
    "IDTokenVerifier",
    "JSONSessionCodec",
    "JWKSProvider",
    "JWTVerifier",
    "Provider",
    "ProviderConfig",
    "ProviderError",
    "RedeemError",
    "SessionCodec",
    "SessionRecord",
    "TokenRedeemer",
    "VerifiedClaims",
    "VerifiedToken",
    "build_login_url",
    "verifiers_from_issuers",
]
