"""
quizmize.engine.leveling — XP Accrual & Level Progression
==========================================================

Pure calculation, no DB I/O.  Persistence lives in
:mod:`quizmize.services.award_service`.

``required_xp`` depends on the level, so each level-up changes the next
threshold.  The award is therefore applied as a carry-propagation loop
(subtract, bump level, recompute threshold) rather than a single division.
"""

from __future__ import annotations

from dataclasses import dataclass

from quizmize.constants import LevelingPolicy
from quizmize.errors import ValidationError

__all__ = ["LevelResult", "apply_xp", "validate_amount"]


@dataclass(frozen=True, slots=True)
class LevelResult:
    """Outcome of applying one XP delta."""

    xp: int
    level: int
    required_xp: int
    leveled_up: bool
    levels_gained: int
    xp_gained: int


def validate_amount(amount: object) -> int:
    """Reject anything that is not a strictly positive integer."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("XP amount must be an integer")
    if amount <= 0:
        raise ValidationError("XP amount must be positive")
    return amount


def apply_xp(xp: int, level: int, amount: int, policy: LevelingPolicy) -> LevelResult:
    """Add *amount* to *xp* at *level* and carry any overflow into levels.

    Returns the remainder XP, the new level and its threshold.  Raises
    :class:`ValidationError` for a non-positive or non-integer amount.
    """
    amount = validate_amount(amount)

    new_xp = xp + amount
    new_level = level
    required = policy.required_xp(new_level)

    while new_xp >= required:
        new_xp -= required
        new_level += 1
        required = policy.required_xp(new_level)

    gained = new_level - level
    return LevelResult(
        xp=new_xp,
        level=new_level,
        required_xp=required,
        leveled_up=gained > 0,
        levels_gained=gained,
        xp_gained=amount,
    )
