"""
tests/test_jwt_startup — JWT Secret Validation at Startup
===========================================================
The API must refuse to start when JWT_SECRET is missing, blank, too short,
or a known weak default.  Also covers token round-trips.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import jwt
import pytest

from quizmize.api import deps


class TestJWTSecretValidation:
    """Prove that _load_jwt_secret() rejects bad secrets and accepts good ones."""

    def test_rejects_missing_secret(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("JWT_SECRET", None)
            with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
                deps._load_jwt_secret()

    def test_rejects_empty_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": ""}):
            with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
                deps._load_jwt_secret()

    def test_rejects_known_weak_default(self):
        with patch.dict(os.environ, {"JWT_SECRET": "quizmize-dev-secret-change-me"}):
            with pytest.raises(RuntimeError, match="known weak default"):
                deps._load_jwt_secret()

    def test_rejects_change_me_variant(self):
        with patch.dict(os.environ, {"JWT_SECRET": "change-me"}):
            with pytest.raises(RuntimeError, match="known weak default"):
                deps._load_jwt_secret()

    def test_rejects_short_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": "tooshort"}):
            with pytest.raises(RuntimeError, match="too short"):
                deps._load_jwt_secret()

    def test_accepts_strong_secret(self):
        good_secret = "a" * 64
        with patch.dict(os.environ, {"JWT_SECRET": good_secret}):
            assert deps._load_jwt_secret() == good_secret


class TestTokens:
    def test_round_trip(self):
        token = deps.create_token(17)
        payload = jwt.decode(token, deps.JWT_SECRET, algorithms=[deps.JWT_ALGORITHM])
        assert payload["id"] == "17"
        assert deps.decode_token(token) == 17

    def test_expires_in_three_days(self):
        token = deps.create_token(1)
        payload = jwt.decode(token, deps.JWT_SECRET, algorithms=[deps.JWT_ALGORITHM])
        remaining = datetime.fromtimestamp(payload["exp"], UTC) - datetime.now(UTC)
        assert timedelta(days=3) - timedelta(minutes=1) < remaining <= timedelta(days=3)

    def test_expired_token_is_rejected(self):
        token = jwt.encode(
            {"id": "1", "exp": datetime.now(UTC) - timedelta(seconds=1)},
            deps.JWT_SECRET,
            algorithm=deps.JWT_ALGORITHM,
        )
        assert deps.decode_token(token) is None

    def test_foreign_signature_is_rejected(self):
        token = jwt.encode({"id": "1"}, "b" * 64, algorithm=deps.JWT_ALGORITHM)
        assert deps.decode_token(token) is None

    @pytest.mark.parametrize("token", [None, "", "garbage"])
    def test_missing_or_malformed(self, token):
        assert deps.decode_token(token) is None

    def test_token_without_id_claim(self):
        token = jwt.encode({"sub": "1"}, deps.JWT_SECRET, algorithm=deps.JWT_ALGORITHM)
        assert deps.decode_token(token) is None
