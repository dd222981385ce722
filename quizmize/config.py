"""
quizmize.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for **infrastructure and tuning** settings (site
identity, port, cookie flags, the two leveling curves).  Secrets
(``JWT_SECRET``, ``DATABASE_URL``) stay in the environment / ``.env``.

Usage::

    from quizmize.config import load_config

    cfg = load_config()            # reads ./config.yaml by default
    print(cfg.site_name)           # "Quizmize"
    print(cfg.group_policy.required_xp(1))   # 3000
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from quizmize.constants import ACCOUNT_POLICY, GROUP_POLICY, LevelingPolicy


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class QuizmizeConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    site_name: str
    site_tagline: str

    # Server
    port: int

    # Session cookie
    cookie_secure: bool = False

    # Leveling curves
    group_policy: LevelingPolicy = field(default=GROUP_POLICY)
    account_policy: LevelingPolicy = field(default=ACCOUNT_POLICY)


def default_config() -> QuizmizeConfig:
    """Built-in defaults, used when no ``config.yaml`` is present."""
    return QuizmizeConfig(
        site_name="Quizmize",
        site_tagline="Learn together, level up together",
        port=8000,
    )


def _policy_from_raw(raw: dict | None, fallback: LevelingPolicy) -> LevelingPolicy:
    if not raw:
        return fallback
    return LevelingPolicy(
        name=fallback.name,
        base=int(raw.get("base", fallback.base)),
        step=int(raw.get("step", fallback.step)),
        offset=int(raw.get("offset", fallback.offset)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def config_path() -> Path:
    """Resolve the config file path (``QUIZMIZE_CONFIG`` or ``config.yaml``)."""
    return Path(os.getenv("QUIZMIZE_CONFIG", "config.yaml"))


def load_config(path: str | Path | None = None) -> QuizmizeConfig:
    """Read *path* and return a :class:`QuizmizeConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_file = Path(path) if path is not None else config_path()
    if not config_file.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_file.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_file, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    leveling = raw.get("leveling") or {}
    return QuizmizeConfig(
        site_name=raw["site_name"],
        site_tagline=raw["site_tagline"],
        port=int(raw["port"]),
        cookie_secure=bool(raw.get("cookie_secure", False)),
        group_policy=_policy_from_raw(leveling.get("group"), GROUP_POLICY),
        account_policy=_policy_from_raw(leveling.get("account"), ACCOUNT_POLICY),
    )
