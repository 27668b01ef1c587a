"""Tests for password hashing, tokens and identities."""

import uuid
from datetime import timedelta

import pytest
from jose import jwt

from auth import (
    Identity,
    hash_password,
    verify_password,
    create_token,
    decode_token,
    JWT_SECRET,
    JWT_ALGORITHM
)
from errors import Unauthenticated


def test_password_round_trip():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


def test_same_password_hashes_differently():
    assert hash_password("secret1") != hash_password("secret1")


def test_malformed_hash_does_not_verify():
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_token_carries_user_id():
    user_id = uuid.uuid4()
    assert decode_token(create_token(user_id)) == user_id


def test_expired_token():
    token = create_token(uuid.uuid4(), expires_in=timedelta(seconds=-10))
    with pytest.raises(Unauthenticated) as exc_info:
        decode_token(token)
    assert exc_info.value.message == "Token has expired"


def test_token_signed_with_other_secret():
    token = jwt.encode({'sub': str(uuid.uuid4())}, JWT_SECRET + 'x', algorithm=JWT_ALGORITHM)
    with pytest.raises(Unauthenticated) as exc_info:
        decode_token(token)
    assert exc_info.value.message == "Invalid token"


def test_token_without_subject():
    token = jwt.encode({'foo': 'bar'}, JWT_SECRET, algorithm=JWT_ALGORITHM)
    with pytest.raises(Unauthenticated):
        decode_token(token)


def test_garbage_token():
    with pytest.raises(Unauthenticated):
        decode_token("not.a.token")


def test_identity_roles():
    user = Identity(id=uuid.uuid4(), name="U", email="u@example.com")
    admin = Identity(id=uuid.uuid4(), name="A", email="a@example.com", role="admin")
    assert not user.is_admin
    assert admin.is_admin
