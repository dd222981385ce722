"""
quizmize.services.mission_service — Missions & Participants
============================================================

Persistence around :mod:`quizmize.engine.missions`.  Mission rows are
loaded ``FOR UPDATE`` on join and answer so two concurrent answers from
the same participant serialize on PostgreSQL.

Completing a mission pays out twice:

* the account gets its mission ``score`` as personal XP and a
  ``mission_completions`` row, in the same transaction as the final answer;
* the group gets ``floor(points * 0.5)`` XP, awarded by the route through
  the award orchestrator once that transaction has committed.
"""

from __future__ import annotations

import logging
import random
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizmize.constants import ACCOUNT_POLICY, LevelingPolicy
from quizmize.database.engine import get_session
from quizmize.database.models import (
    GroupRole,
    Mission,
    MissionAnswer,
    MissionCompletion,
    MissionParticipant,
    MissionStatus,
    MissionType,
)
from quizmize.engine import membership
from quizmize.engine import missions as tracker
from quizmize.errors import ConflictError, NotFoundError, ValidationError
from quizmize.services.award_service import apply_award, lock_account
from quizmize.services.group_service import ADMIN_ONLY, NOT_MEMBER, load_group

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def _iso(dt) -> str | None:
    return dt.isoformat() if dt else None


def _find_participant(mission: Mission, account_id: int) -> MissionParticipant | None:
    return next(
        (p for p in mission.participants if str(p.account_id) == str(account_id)), None
    )


def progress_dict(p: MissionParticipant | None, question_count: int) -> dict:
    if p is None:
        return {"joined": False, "totalQuestions": question_count}
    return {
        "joined": True,
        "joinedAt": _iso(p.joined_at),
        "currentQuestion": p.current_question,
        "totalQuestions": question_count,
        "score": p.score,
        "completed": p.completed,
        "completedAt": _iso(p.completed_at),
        "answers": [
            {
                "questionIndex": a.question_index,
                "selectedAnswer": a.selected_answer,
                "isCorrect": a.is_correct,
                "answeredAt": _iso(a.answered_at),
            }
            for a in p.answers
        ],
    }


def mission_dict(mission: Mission, viewer_id: int | None = None, *, detail: bool = False) -> dict:
    data = {
        "id": str(mission.id),
        "groupId": str(mission.group_id),
        "title": mission.title,
        "description": mission.description,
        "type": mission.type,
        "points": mission.points,
        "duration": mission.duration,
        "deadline": _iso(mission.deadline),
        "status": tracker.effective_status(mission.status, mission.deadline),
        "createdBy": str(mission.created_by),
        "questionCount": len(mission.questions),
        "participantCount": len(mission.participants),
        "completedCount": sum(1 for p in mission.participants if p.completed),
        "createdAt": _iso(mission.created_at),
    }
    if detail:
        mine = _find_participant(mission, viewer_id) if viewer_id is not None else None
        reveal = mine is not None and mine.completed
        data["questions"] = tracker.public_questions(mission.questions, reveal=reveal)
        data["progress"] = progress_dict(mine, len(mission.questions))
        data["leaderboard"] = [
            {
                "accountId": str(p.account_id),
                "score": p.score,
                "completed": p.completed,
            }
            for p in sorted(mission.participants, key=lambda p: (-p.score, p.id))
        ]
    return data


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------
def _load_mission(
    session: Session, group_id: int, mission_id: int, *, lock: bool = False
) -> Mission:
    query = select(Mission).where(Mission.id == mission_id, Mission.group_id == group_id)
    if lock:
        query = query.with_for_update()
    mission = session.scalar(query)
    if mission is None:
        raise NotFoundError("Mission not found")
    return mission


def _require_group_member(session: Session, group_id: int, account_id: int, *, admin: bool = False):
    group = load_group(session, group_id)
    return membership.require_member(
        group.members,
        account_id,
        roles={GroupRole.ADMIN} if admin else None,
        message=NOT_MEMBER,
        role_message=ADMIN_ONLY,
    )


# ---------------------------------------------------------------------------
# Missions
# ---------------------------------------------------------------------------
def list_missions(engine: Engine, group_id: int, account_id: int) -> list[dict]:
    with get_session(engine) as session:
        _require_group_member(session, group_id, account_id)
        rows = session.scalars(
            select(Mission)
            .where(Mission.group_id == group_id)
            .order_by(Mission.created_at.desc(), Mission.id.desc())
        ).all()
        return [mission_dict(m, account_id) for m in rows]


def create_mission(
    engine: Engine,
    group_id: int,
    account_id: int,
    *,
    title: str,
    mission_type: str,
    duration: int,
    description: str = "",
    questions: list[dict] | None = None,
    points: int = 100,
    deadline: datetime | None = None,
    rng: random.Random | None = None,
) -> dict:
    """Create a mission; only group Admins may.

    System missions get a generated bank of ``duration * 5`` questions,
    stored with the mission.
    """
    title = (title or "").strip()
    if not title:
        raise ValidationError("Mission title is required")
    try:
        kind = MissionType(mission_type)
    except ValueError:
        raise ValidationError("Mission type must be 'system' or 'custom'") from None
    duration = tracker.validate_duration(duration)
    if isinstance(points, bool) or not isinstance(points, int) or points < 1:
        raise ValidationError("Points must be a positive integer")

    if kind is MissionType.SYSTEM:
        bank = tracker.generate_system_questions(duration, rng)
    else:
        bank = tracker.validate_custom_questions(questions)

    now = datetime.now(UTC)
    if deadline is None:
        deadline = now + timedelta(days=duration)
    else:
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=UTC)
        if deadline <= now:
            raise ValidationError("Deadline must be in the future")

    with get_session(engine) as session:
        _require_group_member(session, group_id, account_id, admin=True)
        mission = Mission(
            group_id=group_id,
            created_by=account_id,
            title=title,
            description=(description or "").strip(),
            type=kind.value,
            questions=bank,
            points=points,
            duration=duration,
            deadline=deadline,
            status=MissionStatus.ACTIVE.value,
        )
        session.add(mission)
        session.flush()
        session.refresh(mission)
        logger.info(
            "Mission %s (%s, %d questions) created in group %s",
            mission.id, kind.value, len(bank), group_id,
        )
        return mission_dict(mission, account_id, detail=True)


def get_mission(engine: Engine, group_id: int, mission_id: int, account_id: int) -> dict:
    """Mission detail; answers stay hidden until the viewer has completed."""
    with get_session(engine) as session:
        _require_group_member(session, group_id, account_id)
        mission = _load_mission(session, group_id, mission_id)
        return mission_dict(mission, account_id, detail=True)


def delete_mission(engine: Engine, group_id: int, mission_id: int, account_id: int) -> None:
    with get_session(engine) as session:
        _require_group_member(session, group_id, account_id, admin=True)
        mission = _load_mission(session, group_id, mission_id)
        session.delete(mission)
    logger.info("Mission %s deleted from group %s", mission_id, group_id)


# ---------------------------------------------------------------------------
# Participants
# ---------------------------------------------------------------------------
def join_mission(engine: Engine, group_id: int, mission_id: int, account_id: int) -> dict:
    try:
        with get_session(engine) as session:
            _require_group_member(session, group_id, account_id)
            mission = _load_mission(session, group_id, mission_id, lock=True)
            tracker.ensure_can_join(
                mission.participants, account_id,
                status=mission.status, deadline=mission.deadline,
            )
            participant = MissionParticipant(account_id=account_id)
            mission.participants.append(participant)
            session.flush()
            session.refresh(participant)
            return progress_dict(participant, len(mission.questions))
    except IntegrityError:
        raise ConflictError("You have already joined this mission") from None


def _record_completion(
    session: Session,
    mission: Mission,
    participant: MissionParticipant,
    policy: LevelingPolicy,
) -> dict | None:
    """Account-side payout for a participant who just completed."""
    account = lock_account(session, participant.account_id)
    account.mission_completions.append(MissionCompletion(
        mission_id=mission.id,
        group_id=mission.group_id,
        mission_title=mission.title,
        score=participant.score,
        completed_at=participant.completed_at,
    ))
    if participant.score <= 0:
        return None
    award = apply_award(
        session, account, participant.score, "mission_completed",
        {"missionId": mission.id, "groupId": mission.group_id},
        policy=policy,
    )
    return award.to_dict()


def submit_answer(
    engine: Engine,
    group_id: int,
    mission_id: int,
    account_id: int,
    question_index: object,
    selected_answer: object,
    *,
    account_policy: LevelingPolicy = ACCOUNT_POLICY,
) -> dict:
    """Score one answer.  ``justCompleted`` tells the caller to pay the group."""
    with get_session(engine) as session:
        _require_group_member(session, group_id, account_id)
        mission = _load_mission(session, group_id, mission_id, lock=True)
        participant = _find_participant(mission, account_id)
        if participant is None:
            raise ValidationError("Join the mission before answering")
        if not participant.completed and not tracker.is_open(mission.status, mission.deadline):
            raise ValidationError("Mission is not active")

        outcome = tracker.record_answer(
            participant,
            mission.questions,
            question_index,
            selected_answer,
            points=mission.points,
            answer_factory=MissionAnswer,
        )

        account_award = None
        if outcome.just_completed:
            account_award = _record_completion(session, mission, participant, account_policy)
            logger.info(
                "Account %s completed mission %s with score %d",
                account_id, mission.id, participant.score,
            )

        session.flush()
        return {
            "isCorrect": outcome.is_correct,
            "correctAnswer": outcome.correct_answer,
            "explanation": outcome.explanation,
            "pointsAwarded": outcome.points_awarded,
            "score": participant.score,
            "currentQuestion": participant.current_question,
            "totalQuestions": len(mission.questions),
            "completed": participant.completed,
            "justCompleted": outcome.just_completed,
            "missionPoints": mission.points,
            "accountAward": account_award,
        }


def complete_mission(engine: Engine, group_id: int, mission_id: int, account_id: int) -> dict:
    """Confirm completion; only a participant who answered through the last
    question is completed, and asking again changes nothing."""
    with get_session(engine) as session:
        _require_group_member(session, group_id, account_id)
        mission = _load_mission(session, group_id, mission_id)
        participant = _find_participant(mission, account_id)
        if participant is None:
            raise ValidationError("You have not joined this mission")
        if not participant.completed:
            raise ValidationError("Answer every question before completing the mission")
        return progress_dict(participant, len(mission.questions))


def get_progress(engine: Engine, group_id: int, mission_id: int, account_id: int) -> dict:
    with get_session(engine) as session:
        _require_group_member(session, group_id, account_id)
        mission = _load_mission(session, group_id, mission_id)
        return progress_dict(_find_participant(mission, account_id), len(mission.questions))
