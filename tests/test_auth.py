#!/usr/bin/env python3
"""Tests for password hashing and tokens."""

from datetime import timedelta

import pytest

from fleet import Role, User
from web.auth import (
    AuthError,
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)


class TestPasswords:
    def test_hash_is_not_plaintext(self):
        hashed = hash_password("s3cret-pass")
        assert hashed != "s3cret-pass"
        assert hashed.startswith("$argon2")

    def test_verify(self):
        hashed = hash_password("s3cret-pass")
        assert verify_password("s3cret-pass", hashed)
        assert not verify_password("wrong", hashed)

    def test_verify_plaintext_stored_value_fails(self):
        assert not verify_password("s3cret-pass", "s3cret-pass")


class TestTokens:
    @pytest.fixture
    def user(self):
        return User("gm", "hash", Role.GM)

    def test_round_trip(self, user):
        payload = decode_token(create_access_token(user, "k"), "k")
        assert payload["sub"] == "gm"
        assert payload["role"] == "GM"

    def test_wrong_secret_rejected(self, user):
        with pytest.raises(AuthError):
            decode_token(create_access_token(user, "k"), "other")

    def test_expired_rejected(self, user):
        token = create_access_token(user, "k", timedelta(minutes=-1))
        with pytest.raises(AuthError):
            decode_token(token, "k")

    def test_garbage_rejected(self):
        with pytest.raises(AuthError):
            decode_token("not-a-token", "k")
