"""
quizmize.api.routes.groups — Study groups, feed & votes
=========================================================

Each mutation runs its service call on a worker thread, then (after the
commit) publishes the realtime event and hands XP to the award
orchestrator.  The award never blocks or fails the response body.
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, status
from pydantic import BaseModel

from quizmize.api.deps import ConfigDep, CurrentAccount, EngineDep, HubDep, OptionalAccount
from quizmize.database.engine import run_db
from quizmize.engine.events import GroupEvent
from quizmize.realtime import hub as rt
from quizmize.services import award_service, chat_service, group_service
from quizmize.services.award_service import award_and_notify

router = APIRouter(prefix="/groups", tags=["groups"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class GroupCreate(BaseModel):
    name: str
    specialization: str
    description: str = ""


class RoleUpdate(BaseModel):
    role: str


class ContentBody(BaseModel):
    content: str


class VoteBody(BaseModel):
    type: Literal["up", "down"]


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------
@router.get("")
async def list_groups(engine: EngineDep):
    return await run_db(group_service.list_groups, engine)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_group(body: GroupCreate, account: CurrentAccount, engine: EngineDep, cfg: ConfigDep):
    group = await run_db(
        group_service.create_group, engine, account.id,
        body.name, body.specialization, body.description,
        policy=cfg.group_policy,
    )
    return {"success": True, "group": group}


@router.get("/{group_id}")
async def get_group(group_id: int, engine: EngineDep):
    return await run_db(group_service.get_group, engine, group_id)


@router.post("/{group_id}/join")
async def join_group(
    group_id: int, account: CurrentAccount, engine: EngineDep, hub: HubDep, cfg: ConfigDep
):
    member = await run_db(group_service.join_group, engine, group_id, account.id)
    await hub.publish(group_id, rt.MEMBER_JOINED, {"groupId": str(group_id), "member": member})
    await award_and_notify(
        engine, hub, group_id, GroupEvent.MEMBER_JOINED,
        metadata={"accountId": account.id}, policy=cfg.group_policy,
    )
    return {"message": "Joined group", "member": member}


@router.post("/{group_id}/leave")
async def leave_group(group_id: int, account: CurrentAccount, engine: EngineDep):
    await run_db(group_service.leave_group, engine, group_id, account.id)
    return {"message": "Left group"}


@router.patch("/{group_id}/members/{account_id}")
async def set_member_role(
    group_id: int, account_id: int, body: RoleUpdate, account: CurrentAccount, engine: EngineDep
):
    return await run_db(
        group_service.set_member_role, engine, group_id, account.id, account_id, body.role
    )


@router.get("/{group_id}/xp")
async def xp_history(group_id: int, engine: EngineDep):
    await run_db(group_service.get_group, engine, group_id)
    return await run_db(award_service.xp_history, engine, "group", group_id)


@router.get("/{group_id}/chat")
async def chat_history(group_id: int, account: CurrentAccount, engine: EngineDep):
    await run_db(group_service.require_group_member, engine, group_id, account.id)
    return await run_db(chat_service.get_chat_history, engine, group_id)


# ---------------------------------------------------------------------------
# Posts, comments, votes
# ---------------------------------------------------------------------------
@router.get("/{group_id}/posts")
async def list_posts(group_id: int, account: OptionalAccount, engine: EngineDep):
    viewer = account.id if account else None
    return await run_db(group_service.list_posts, engine, group_id, viewer)


@router.post("/{group_id}/posts", status_code=status.HTTP_201_CREATED)
async def create_post(
    group_id: int, body: ContentBody, account: CurrentAccount,
    engine: EngineDep, hub: HubDep, cfg: ConfigDep,
):
    post = await run_db(group_service.create_post, engine, group_id, account.id, body.content)
    await hub.publish(group_id, rt.NEW_POST, post)
    await award_and_notify(
        engine, hub, group_id, GroupEvent.POST_CREATED,
        metadata={"postId": post["id"], "accountId": account.id}, policy=cfg.group_policy,
    )
    return post


@router.post("/posts/{post_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    post_id: int, body: ContentBody, account: CurrentAccount,
    engine: EngineDep, hub: HubDep, cfg: ConfigDep,
):
    comment = await run_db(group_service.add_comment, engine, post_id, account.id, body.content)
    group_id = int(comment["groupId"])
    await hub.publish(group_id, rt.NEW_COMMENT, comment)
    await award_and_notify(
        engine, hub, group_id, GroupEvent.COMMENT_CREATED,
        metadata={"postId": post_id, "commentId": comment["id"]}, policy=cfg.group_policy,
    )
    return comment


@router.post("/posts/{post_id}/vote")
async def vote_post(
    post_id: int, body: VoteBody, account: CurrentAccount,
    engine: EngineDep, hub: HubDep, cfg: ConfigDep,
):
    result = await run_db(group_service.vote_post, engine, post_id, account.id, body.type)
    group_id = int(result["groupId"])
    await hub.publish(group_id, rt.VOTE_UPDATE, {
        "postId": result["postId"],
        "upvotes": result["upvotes"],
        "downvotes": result["downvotes"],
        "voteCount": result["voteCount"],
    })
    if result["newUpvote"]:
        await award_and_notify(
            engine, hub, group_id, GroupEvent.UPVOTE_RECEIVED,
            metadata={"postId": post_id, "voterId": account.id}, policy=cfg.group_policy,
        )
    return result


@router.delete("/posts/{post_id}")
async def delete_post(post_id: int, account: CurrentAccount, engine: EngineDep, hub: HubDep):
    group_id = await run_db(group_service.delete_post, engine, post_id, account.id)
    await hub.publish(group_id, rt.POST_DELETED, {"postId": str(post_id)})
    return {"message": "Post deleted"}
