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
Session cookie encoding.

The proxy only depends on the `SessionCodec` protocol. `JSONSessionCodec` is the default
implementation: identity fields are stored in clear, token fields only when a cipher is
available to encrypt them.
"""

import json
from typing import Any, Protocol

from pydantic import ValidationError

from authproxy_providers.exceptions import SessionCodecError
from authproxy_providers.models import SessionRecord

TOKEN_FIELDS = ("access_token", "id_token", "refresh_token")


class Cipher(Protocol):
    """Protocol for the symmetric cipher used to protect tokens inside cookies."""

    def encrypt(self, value: str) -> str: ...

    def decrypt(self, value: str) -> str: ...


class SessionCodec(Protocol):
    """Protocol for turning a SessionRecord into a cookie value and back."""

    def encode(self, session: SessionRecord, cipher: Cipher | None) -> str: ...

    def decode(self, value: str, cipher: Cipher | None) -> SessionRecord: ...


class JSONSessionCodec:
    """
    Encodes sessions as compact JSON.
    Without a cipher, tokens are dropped so they never reach the browser in clear.
    """

    def encode(self, session: SessionRecord, cipher: Cipher | None) -> str:
        data: dict[str, Any] = session.model_dump(mode="json", exclude_none=True)
        for field in TOKEN_FIELDS:
            if field not in data:
                continue
            if cipher is None:
                del data[field]
            elif data[field]:
                data[field] = cipher.encrypt(data[field])
        return json.dumps(data, separators=(",", ":"), sort_keys=True)

    def decode(self, value: str, cipher: Cipher | None) -> SessionRecord:
        """
        Decodes a cookie value produced by `encode`.

        Raises:
            SessionCodecError: If the value is not a valid encoded session or cannot be decrypted.
        """
        try:
            data = json.loads(value)
        except ValueError as e:
            raise SessionCodecError(f"Invalid session cookie: {e}") from e
        if not isinstance(data, dict):
            raise SessionCodecError("Invalid session cookie: expected an object")

        for field in TOKEN_FIELDS:
            if field not in data:
                continue
            if cipher is None:
                del data[field]
            elif isinstance(data[field], str) and data[field]:
                try:
                    data[field] = cipher.decrypt(data[field])
                except ValueError as e:
                    raise SessionCodecError(f"Unable to decrypt {field}: {e}") from e

        try:
            return SessionRecord.model_validate(data)
        except ValidationError as e:
            raise SessionCodecError(f"Invalid session cookie: {e}") from e
