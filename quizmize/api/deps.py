"""
quizmize.api.deps — FastAPI dependency injection
==================================================

Sessions are a single HS256 JWT carrying the account id (``{"id": ...}``),
stored in the HTTP-only ``jwt`` cookie for three days.  API clients that
cannot hold cookies may send the same token as ``Authorization: Bearer``.
"""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Request
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from quizmize.config import QuizmizeConfig, default_config, load_config
from quizmize.database.engine import create_db_engine
from quizmize.database.models import Account
from quizmize.errors import AuthenticationError, AuthorizationError
from quizmize.realtime.hub import RealtimeHub, get_hub
from quizmize.services import account_service

logger = logging.getLogger(__name__)

_WEAK_SECRETS = frozenset({
    "quizmize-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"
COOKIE_NAME = "jwt"
TOKEN_MAX_AGE = 3 * 24 * 60 * 60  # seconds


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> QuizmizeConfig:
    try:
        return load_config()
    except FileNotFoundError:
        logger.warning("No config.yaml found; using built-in defaults")
        return default_config()


def get_realtime_hub() -> RealtimeHub:
    return get_hub()


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
def create_token(account_id: int) -> str:
    return jwt.encode(
        {
            "id": str(account_id),
            "exp": datetime.now(UTC) + timedelta(seconds=TOKEN_MAX_AGE),
        },
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def decode_token(token: str | None) -> int | None:
    """Account id from *token*, or ``None`` when missing or invalid."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return int(payload["id"])
    except (InvalidTokenError, KeyError, TypeError, ValueError):
        return None


def token_from_request(request: Request) -> str | None:
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    authorization = request.headers.get("authorization", "")
    if authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1]
    return None


# ---------------------------------------------------------------------------
# Current account
# ---------------------------------------------------------------------------
def get_optional_account(
    request: Request,
    engine: Annotated[Engine, Depends(get_engine)],
) -> Account | None:
    account_id = decode_token(token_from_request(request))
    if account_id is None:
        return None
    return account_service.get_account(engine, account_id)


def get_current_account(
    account: Annotated[Account | None, Depends(get_optional_account)],
) -> Account:
    """Require a valid session; raises 401 otherwise."""
    if account is None:
        raise AuthenticationError("Authentication required")
    return account


def get_site_admin(
    account: Annotated[Account, Depends(get_current_account)],
) -> Account:
    if not account.is_admin:
        raise AuthorizationError("Not admin")
    return account


CurrentAccount = Annotated[Account, Depends(get_current_account)]
OptionalAccount = Annotated[Account | None, Depends(get_optional_account)]
SiteAdmin = Annotated[Account, Depends(get_site_admin)]
EngineDep = Annotated[Engine, Depends(get_engine)]
ConfigDep = Annotated[QuizmizeConfig, Depends(get_config)]
HubDep = Annotated[RealtimeHub, Depends(get_realtime_hub)]
