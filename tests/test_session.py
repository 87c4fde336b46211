# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_identity

import json
from datetime import datetime, timezone

import pytest
from conftest import ReversingCipher

from authproxy_providers.exceptions import SessionCodecError
from authproxy_providers.models import SessionRecord
from authproxy_providers.session import JSONSessionCodec


@pytest.fixture
def session() -> SessionRecord:
    return SessionRecord(
        access_token="access-123",
        id_token="id-456",
        refresh_token="refresh-789",
        email="alice@example.com",
        user="alice",
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        expires_on=datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc),
    )


def test_round_trip_with_cipher(session: SessionRecord, cipher: ReversingCipher) -> None:
    codec = JSONSessionCodec()

    value = codec.encode(session, cipher)

    assert codec.decode(value, cipher) == session


def test_tokens_are_encrypted(session: SessionRecord, cipher: ReversingCipher) -> None:
    value = JSONSessionCodec().encode(session, cipher)

    assert "access-123" not in value
    assert json.loads(value)["access_token"] == cipher.encrypt("access-123")
    assert json.loads(value)["email"] == "alice@example.com"


def test_without_cipher_only_identity_is_kept(session: SessionRecord) -> None:
    codec = JSONSessionCodec()

    decoded = codec.decode(codec.encode(session, None), None)

    assert decoded.access_token == ""
    assert decoded.id_token is None
    assert decoded.refresh_token is None
    assert decoded.email == session.email
    assert decoded.user == session.user
    assert decoded.expires_on == session.expires_on


def test_unpopulated_fields_round_trip(cipher: ReversingCipher) -> None:
    codec = JSONSessionCodec()
    session = SessionRecord(access_token="", email="bob@example.com")

    assert codec.decode(codec.encode(session, cipher), cipher) == session


def test_encoding_is_deterministic(session: SessionRecord, cipher: ReversingCipher) -> None:
    codec = JSONSessionCodec()
    assert codec.encode(session, cipher) == codec.encode(session.model_copy(), cipher)


@pytest.mark.parametrize("value", ["not json", "[]", '{"access_token": 1}', '{"unknown": "field"}'])
def test_decode_invalid(value: str, cipher: ReversingCipher) -> None:
    with pytest.raises(SessionCodecError):
        JSONSessionCodec().decode(value, cipher)


def test_decode_undecryptable(cipher: ReversingCipher) -> None:
    with pytest.raises(SessionCodecError, match="access_token"):
        JSONSessionCodec().decode('{"access_token": "plaintext"}', cipher)
