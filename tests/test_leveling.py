"""
tests/test_leveling.py — Unit Tests for XP Accrual
===================================================

Pure calculation tests (no I/O, no database) for the carry-propagation
loop and both leveling curves.
"""

from __future__ import annotations

import random

import pytest

from quizmize.constants import ACCOUNT_POLICY, GROUP_POLICY, LevelingPolicy, xp_for_level
from quizmize.engine.leveling import apply_xp, validate_amount
from quizmize.errors import ValidationError


# ---------------------------------------------------------------------------
# Curves
# ---------------------------------------------------------------------------
class TestPolicies:
    def test_group_curve(self):
        assert GROUP_POLICY.required_xp(1) == 3000
        assert GROUP_POLICY.required_xp(2) == 4000
        assert GROUP_POLICY.required_xp(5) == 7000

    def test_account_curve(self):
        assert ACCOUNT_POLICY.required_xp(1) == 2000
        assert ACCOUNT_POLICY.required_xp(2) == 2500
        assert ACCOUNT_POLICY.required_xp(3) == 3000

    def test_xp_for_level_defaults_to_account_curve(self):
        assert xp_for_level(1) == 2000
        assert xp_for_level(1, GROUP_POLICY) == 3000


# ---------------------------------------------------------------------------
# apply_xp
# ---------------------------------------------------------------------------
class TestApplyXp:
    def test_group_single_level_up(self):
        """Level 1 group, 3500 XP → one level-up with 500 left over."""
        result = apply_xp(0, 1, 3500, GROUP_POLICY)
        assert result.xp == 500
        assert result.level == 2
        assert result.required_xp == 4000
        assert result.leveled_up is True
        assert result.levels_gained == 1

    def test_account_double_level_up(self):
        """Level 1 account, 4600 XP → 2000 then 2500 consumed, 100 left."""
        result = apply_xp(0, 1, 4600, ACCOUNT_POLICY)
        assert result.xp == 100
        assert result.level == 3
        assert result.required_xp == 3000
        assert result.levels_gained == 2

    def test_no_level_up_below_threshold(self):
        result = apply_xp(100, 1, 50, ACCOUNT_POLICY)
        assert result.xp == 150
        assert result.level == 1
        assert result.leveled_up is False
        assert result.levels_gained == 0

    def test_exact_threshold_levels_up_to_zero(self):
        result = apply_xp(2999, 1, 1, GROUP_POLICY)
        assert result.xp == 0
        assert result.level == 2

    def test_xp_gained_echoes_amount(self):
        assert apply_xp(0, 1, 15, GROUP_POLICY).xp_gained == 15

    @pytest.mark.parametrize("amount", [0, -5, 1.5, "10", None, True])
    def test_rejects_bad_amounts(self, amount):
        with pytest.raises(ValidationError):
            apply_xp(0, 1, amount, GROUP_POLICY)

    def test_validate_amount_passes_positive_int(self):
        assert validate_amount(7) == 7

    def test_custom_policy(self):
        flat = LevelingPolicy(name="flat", base=10, step=0)
        result = apply_xp(0, 1, 35, flat)
        assert result.level == 4
        assert result.xp == 5


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------
class TestAwardProperties:
    @pytest.mark.parametrize("policy", [GROUP_POLICY, ACCOUNT_POLICY])
    def test_xp_stays_below_threshold_and_nothing_is_lost(self, policy):
        rng = random.Random(1234)
        xp, level, total, consumed = 0, 1, 0, 0
        for _ in range(200):
            amount = rng.randint(1, 5000)
            before_level = level
            result = apply_xp(xp, level, amount, policy)
            for lvl in range(before_level, result.level):
                consumed += policy.required_xp(lvl)
            xp, level = result.xp, result.level
            total += amount

            assert 0 <= xp < policy.required_xp(level)
            assert consumed + xp == total

    def test_replay_is_deterministic(self):
        amounts = [15, 10, 5, 25, 3000, 125, 9999]

        def replay():
            xp, level = 0, 1
            for amount in amounts:
                result = apply_xp(xp, level, amount, GROUP_POLICY)
                xp, level = result.xp, result.level
            return xp, level

        assert replay() == replay()
