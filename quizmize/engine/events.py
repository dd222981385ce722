"""
quizmize.engine.events — Group Events & XP Amounts
===================================================

Every group activity that earns XP is named here, together with the amount
it earns and the human-readable description sent with the realtime
``group-xp-updated`` event.
"""

from __future__ import annotations

import enum

__all__ = ["GroupEvent", "BASE_GROUP_XP", "EVENT_DESCRIPTIONS", "group_xp_for", "mission_completion_xp"]


class GroupEvent(enum.StrEnum):
    POST_CREATED = "post_created"
    COMMENT_CREATED = "comment_created"
    UPVOTE_RECEIVED = "upvote_received"
    MEMBER_JOINED = "member_joined"
    MISSION_COMPLETED = "mission_completed"


# ---------------------------------------------------------------------------
# Base group XP per event
# ---------------------------------------------------------------------------
BASE_GROUP_XP: dict[GroupEvent, int] = {
    GroupEvent.POST_CREATED: 15,
    GroupEvent.COMMENT_CREATED: 10,
    GroupEvent.UPVOTE_RECEIVED: 5,
    GroupEvent.MEMBER_JOINED: 25,
    GroupEvent.MISSION_COMPLETED: 0,  # varies, see mission_completion_xp()
}

EVENT_DESCRIPTIONS: dict[GroupEvent, str] = {
    GroupEvent.POST_CREATED: "New post created",
    GroupEvent.COMMENT_CREATED: "New comment added",
    GroupEvent.UPVOTE_RECEIVED: "Post received an upvote",
    GroupEvent.MEMBER_JOINED: "New member joined",
    GroupEvent.MISSION_COMPLETED: "Mission completed",
}

MISSION_COMPLETION_RATE = 0.5


def mission_completion_xp(points: int) -> int:
    """Half the mission's point budget, rounded down."""
    return int(points * MISSION_COMPLETION_RATE)


def group_xp_for(event: GroupEvent, *, points: int | None = None) -> int:
    if event is GroupEvent.MISSION_COMPLETED:
        return mission_completion_xp(points or 0)
    return BASE_GROUP_XP[event]
