"""
quizmize.services.award_service — XP Persistence & Notification Fan-out
========================================================================

Turns a domain event into a persisted XP award and, once that award is
committed, into realtime notifications for the group's room.

Two layers:

* :func:`apply_award` mutates an already-loaded (and locked) Group or
  Account row inside the caller's session and appends an ``xp_log`` row.
  Services that award XP as part of a larger write use this directly.
* :func:`award_group_xp` owns its transaction: lock the group row, apply,
  commit.  Account XP is always part of a larger write (quiz attempt,
  mission completion), so it goes through :func:`apply_award`.

:func:`award_and_notify` is the async side-effect path used after a
content action (post, comment, upvote, join, mission completion).  The
content is already committed when it runs, so a failing award is logged
and swallowed; it is never retried and never rolls the content back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from quizmize.constants import GROUP_POLICY, LevelingPolicy
from quizmize.database.engine import get_session, run_db
from quizmize.database.models import Account, Group, XpEntity, XpLog
from quizmize.engine.events import EVENT_DESCRIPTIONS, GroupEvent, group_xp_for
from quizmize.engine.leveling import apply_xp
from quizmize.errors import NotFoundError
from quizmize.realtime import hub as rt

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from quizmize.realtime.hub import RealtimeHub

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AwardResult:
    """What an award did to one Group or Account."""

    entity_type: str
    entity_id: int
    amount: int
    source: str
    new_level: int
    current_xp: int
    required_xp: int
    total_xp: int
    leveled_up: bool
    levels_gained: int

    def to_dict(self) -> dict:
        return {
            "newLevel": self.new_level,
            "currentXp": self.current_xp,
            "requiredXp": self.required_xp,
            "totalXp": self.total_xp,
            "leveledUp": self.leveled_up,
            "levelsGained": self.levels_gained,
        }


# ---------------------------------------------------------------------------
# In-session application
# ---------------------------------------------------------------------------
def lock_group(session: Session, group_id: int) -> Group:
    group = session.scalar(select(Group).where(Group.id == group_id).with_for_update())
    if group is None:
        raise NotFoundError("Group not found")
    return group


def lock_account(session: Session, account_id: int) -> Account:
    account = session.scalar(
        select(Account).where(Account.id == account_id).with_for_update()
    )
    if account is None:
        raise NotFoundError("Account not found")
    return account


def apply_award(
    session: Session,
    entity: Group | Account,
    amount: int,
    source: str,
    metadata: dict | None = None,
    *,
    policy: LevelingPolicy,
) -> AwardResult:
    """Apply *amount* XP to *entity* (already loaded in *session*)."""
    result = apply_xp(entity.xp, entity.level, amount, policy)
    level_before = entity.level

    entity.xp = result.xp
    entity.level = result.level
    entity.total_xp = (entity.total_xp or 0) + amount
    kind = XpEntity.GROUP if isinstance(entity, Group) else XpEntity.ACCOUNT
    if kind is XpEntity.GROUP:
        entity.required_xp = result.required_xp

    session.add(XpLog(
        entity_type=kind.value,
        entity_id=entity.id,
        amount=amount,
        source=source,
        metadata_=metadata,
        level_before=level_before,
        level_after=result.level,
    ))

    logger.debug(
        "XP %s %s +%d (%s) lvl %d → %d",
        kind.value, entity.id, amount, source, level_before, result.level,
    )
    if result.leveled_up:
        logger.info(
            "%s %s leveled up: %d → %d", kind.value.title(), entity.id,
            level_before, result.level,
        )

    return AwardResult(
        entity_type=kind.value,
        entity_id=entity.id,
        amount=amount,
        source=source,
        new_level=result.level,
        current_xp=result.xp,
        required_xp=result.required_xp,
        total_xp=entity.total_xp,
        leveled_up=result.leveled_up,
        levels_gained=result.levels_gained,
    )


# ---------------------------------------------------------------------------
# Self-contained awards
# ---------------------------------------------------------------------------
def award_group_xp(
    engine: Engine,
    group_id: int,
    amount: int,
    source: str,
    metadata: dict | None = None,
    *,
    policy: LevelingPolicy = GROUP_POLICY,
) -> AwardResult:
    with get_session(engine) as session:
        group = lock_group(session, group_id)
        return apply_award(session, group, amount, source, metadata, policy=policy)


def xp_history(engine: Engine, entity_type: str, entity_id: int, limit: int = 50) -> list[dict]:
    """Most recent awards for one entity, newest first."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(XpLog)
            .where(XpLog.entity_type == entity_type, XpLog.entity_id == entity_id)
            .order_by(XpLog.id.desc())
            .limit(limit)
        ).all()
        return [
            {
                "amount": r.amount,
                "source": r.source,
                "metadata": r.metadata_,
                "levelBefore": r.level_before,
                "levelAfter": r.level_after,
                "createdAt": r.created_at.isoformat() if r.created_at else None,
            }
            for r in rows
        ]


# ---------------------------------------------------------------------------
# Award + notify
# ---------------------------------------------------------------------------
async def notify_group_award(hub: RealtimeHub, group_id: int, result: AwardResult) -> None:
    source = result.source
    try:
        source = EVENT_DESCRIPTIONS[GroupEvent(result.source)]
    except ValueError:
        pass

    await hub.publish(group_id, rt.GROUP_XP_UPDATED, {
        "groupId": str(group_id),
        "xp": result.current_xp,
        "level": result.new_level,
        "requiredXp": result.required_xp,
        "totalXp": result.total_xp,
        "xpGained": result.amount,
        "source": source,
    })
    if result.leveled_up:
        await hub.publish(group_id, rt.GROUP_LEVEL_UP, {
            "groupId": str(group_id),
            "newLevel": result.new_level,
            "levelsGained": result.levels_gained,
        })


async def award_and_notify(
    engine: Engine,
    hub: RealtimeHub,
    group_id: int,
    event: GroupEvent,
    *,
    metadata: dict | None = None,
    points: int | None = None,
    policy: LevelingPolicy = GROUP_POLICY,
) -> AwardResult | None:
    """Award the XP *event* earns to *group_id*, then tell the room.

    Returns ``None`` when the award failed or the event earns nothing.
    """
    amount = group_xp_for(event, points=points)
    if amount <= 0:
        return None

    try:
        result = await run_db(
            award_group_xp, engine, group_id, amount, event.value, metadata,
            policy=policy,
        )
    except Exception:
        logger.exception("XP award failed for group %s (%s)", group_id, event.value)
        return None

    await notify_group_award(hub, group_id, result)
    return result
