"""
tests/test_award_service.py — XP Persistence & Notification Tests
==================================================================

Uses an in-memory SQLite database via the shared conftest fixtures.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from conftest import make_account, run_async
from sqlalchemy.orm import Session

from quizmize.constants import ACCOUNT_POLICY, GROUP_POLICY
from quizmize.database.engine import get_session
from quizmize.database.models import Account, Group, XpLog
from quizmize.engine.events import GroupEvent, group_xp_for, mission_completion_xp
from quizmize.errors import NotFoundError, ValidationError
from quizmize.services import award_service


class _RecordingConnection:
    def __init__(self):
        self.frames: list[dict] = []

    async def send_json(self, data):
        self.frames.append(data)


@pytest.fixture
def engine(db_engine):
    return db_engine


def _seed_group(engine, name: str = "Algebra") -> int:
    with Session(engine) as session:
        group = Group(
            name=name, specialization="Math", level=1, xp=0, total_xp=0,
            required_xp=GROUP_POLICY.required_xp(1),
        )
        session.add(group)
        session.commit()
        return group.id


class TestEventAmounts:
    def test_fixed_amounts(self):
        assert group_xp_for(GroupEvent.POST_CREATED) == 15
        assert group_xp_for(GroupEvent.COMMENT_CREATED) == 10
        assert group_xp_for(GroupEvent.UPVOTE_RECEIVED) == 5
        assert group_xp_for(GroupEvent.MEMBER_JOINED) == 25

    def test_mission_completion_is_half_the_points(self):
        assert mission_completion_xp(250) == 125
        assert mission_completion_xp(101) == 50
        assert group_xp_for(GroupEvent.MISSION_COMPLETED, points=100) == 50


class TestAwardGroupXp:
    def test_single_level_up(self, engine):
        """3500 XP on a fresh group → level 2 with 500 left, threshold 4000."""
        group_id = _seed_group(engine)
        result = award_service.award_group_xp(engine, group_id, 3500, "manual")

        assert result.new_level == 2
        assert result.current_xp == 500
        assert result.required_xp == 4000
        assert result.leveled_up is True
        assert result.levels_gained == 1

        with Session(engine) as session:
            group = session.get(Group, group_id)
            assert (group.xp, group.level, group.required_xp, group.total_xp) == (500, 2, 4000, 3500)

    def test_log_row_written(self, engine):
        group_id = _seed_group(engine)
        award_service.award_group_xp(engine, group_id, 15, "post_created", {"postId": "9"})

        with Session(engine) as session:
            (log,) = session.query(XpLog).all()
            assert log.entity_type == "group"
            assert log.entity_id == group_id
            assert log.amount == 15
            assert log.metadata_ == {"postId": "9"}
            assert (log.level_before, log.level_after) == (1, 1)

    def test_total_xp_is_sum_of_awards(self, engine):
        group_id = _seed_group(engine)
        amounts = [15, 10, 5, 25, 2990, 4000, 1]
        for amount in amounts:
            result = award_service.award_group_xp(engine, group_id, amount, "manual")
            assert 0 <= result.current_xp < result.required_xp
        assert result.total_xp == sum(amounts)

    def test_unknown_group(self, engine):
        with pytest.raises(NotFoundError):
            award_service.award_group_xp(engine, 999, 10, "manual")

    def test_rejects_non_positive(self, engine):
        group_id = _seed_group(engine)
        with pytest.raises(ValidationError):
            award_service.award_group_xp(engine, group_id, 0, "manual")
        with Session(engine) as session:
            assert session.query(XpLog).count() == 0


def _award_account(engine, account_id: int, amount: int, source: str):
    with get_session(engine) as session:
        account = award_service.lock_account(session, account_id)
        return award_service.apply_award(
            session, account, amount, source, policy=ACCOUNT_POLICY
        )


class TestAwardAccountXp:
    def test_double_level_up(self, engine):
        """4600 XP on a fresh account → level 3 with 100 left."""
        account_id = make_account(engine)
        result = _award_account(engine, account_id, 4600, "manual")
        assert (result.current_xp, result.new_level, result.levels_gained) == (100, 3, 2)
        assert result.required_xp == ACCOUNT_POLICY.required_xp(3)

        with Session(engine) as session:
            account = session.get(Account, account_id)
            assert (account.xp, account.level, account.total_xp) == (100, 3, 4600)

    def test_unknown_account(self, engine):
        with pytest.raises(NotFoundError):
            _award_account(engine, 999, 10, "manual")

    def test_history_newest_first(self, engine):
        account_id = make_account(engine)
        _award_account(engine, account_id, 10, "a")
        _award_account(engine, account_id, 20, "b")
        history = award_service.xp_history(engine, "account", account_id)
        assert [h["source"] for h in history] == ["b", "a"]
        assert history[0]["amount"] == 20


class TestAwardAndNotify:
    def test_publishes_xp_update(self, engine, hub):
        group_id = _seed_group(engine)
        conn = _RecordingConnection()
        hub.connect(group_id, conn, 1)

        result = run_async(award_service.award_and_notify(
            engine, hub, group_id, GroupEvent.POST_CREATED
        ))

        assert result.amount == 15
        (frame,) = conn.frames
        assert frame["event"] == "group-xp-updated"
        assert frame["data"]["xpGained"] == 15
        assert frame["data"]["source"] == "New post created"
        assert frame["data"]["groupId"] == str(group_id)

    def test_publishes_level_up(self, engine, hub):
        group_id = _seed_group(engine)
        award_service.award_group_xp(engine, group_id, 2990, "manual")
        conn = _RecordingConnection()
        hub.connect(group_id, conn, 1)

        run_async(award_service.award_and_notify(
            engine, hub, group_id, GroupEvent.COMMENT_CREATED
        ))

        events = [f["event"] for f in conn.frames]
        assert events == ["group-xp-updated", "group-level-up"]
        assert conn.frames[1]["data"] == {"groupId": str(group_id), "newLevel": 2, "levelsGained": 1}

    def test_zero_amount_event_is_skipped(self, engine, hub):
        group_id = _seed_group(engine)
        result = run_async(award_service.award_and_notify(
            engine, hub, group_id, GroupEvent.MISSION_COMPLETED, points=1
        ))
        assert result is None
        with Session(engine) as session:
            assert session.query(XpLog).count() == 0

    def test_failure_is_swallowed(self, engine, hub):
        conn = _RecordingConnection()
        hub.connect(999, conn, 1)
        result = run_async(award_service.award_and_notify(
            engine, hub, 999, GroupEvent.POST_CREATED
        ))
        assert result is None
        assert conn.frames == []

    def test_unexpected_error_is_logged_not_raised(self, engine, hub):
        group_id = _seed_group(engine)
        with patch.object(award_service, "award_group_xp", side_effect=RuntimeError("db down")):
            result = run_async(award_service.award_and_notify(
                engine, hub, group_id, GroupEvent.MEMBER_JOINED
            ))
        assert result is None
