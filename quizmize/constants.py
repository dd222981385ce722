"""
quizmize.constants — Shared Constants & Leveling Policies
==========================================================

Single source of truth for the required-XP formulas.  Groups and accounts
level on two different curves; both are kept as named policies so either
can be retuned without touching the other.
"""

from __future__ import annotations

from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Leveling policies
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LevelingPolicy:
    """Linear required-XP curve::

        required = base + (level - offset) * step
    """

    name: str
    base: int
    step: int
    offset: int = 0

    def required_xp(self, level: int) -> int:
        return self.base + (level - self.offset) * self.step


# Group curve ("flat"): 2000 + level * 1000
GROUP_POLICY = LevelingPolicy(name="group", base=2000, step=1000, offset=0)

# Account curve ("linear-from-base"): 2000 + (level - 1) * 500
ACCOUNT_POLICY = LevelingPolicy(name="account", base=2000, step=500, offset=1)


def xp_for_level(level: int, policy: LevelingPolicy = ACCOUNT_POLICY) -> int:
    """XP required to advance from *level* to the next one."""
    return policy.required_xp(level)


# ---------------------------------------------------------------------------
# Misc presentation / validation constants
# ---------------------------------------------------------------------------
UNIVERSITY_LOCATIONS: tuple[str, ...] = (
    "North America",
    "Europe",
    "Asia",
    "Australia",
    "Africa",
    "South America",
)

WEEKDAYS: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

JOIN_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
JOIN_CODE_LENGTH = 8

CHAT_HISTORY_LIMIT = 100
CHAT_MESSAGE_MAX_LENGTH = 500
POST_MAX_LENGTH = 1000
COMMENT_MAX_LENGTH = 500
