"""
quizmize.services.group_service — Groups, Posts, Comments & Votes
==================================================================

Synchronous service layer (called from async routes via ``run_db``).
Every mutation checks membership through
:func:`quizmize.engine.membership.require_member` before writing anything,
and returns plain dicts built while the session is still open.

XP for these actions is *not* awarded here: routes hand the returned ids
to :func:`quizmize.services.award_service.award_and_notify` after the
content commit.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizmize.constants import GROUP_POLICY, LevelingPolicy
from quizmize.database.engine import get_session
from quizmize.database.models import (
    Account,
    Comment,
    Group,
    GroupMember,
    GroupRole,
    Post,
    PostVote,
)
from quizmize.engine import membership, voting
from quizmize.errors import ConflictError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

NOT_MEMBER = "You are not a member of this group"
ADMIN_ONLY = "Only group Admins can do that"
GROUP_NAME_TAKEN = "Group name already exists"


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def _iso(dt) -> str | None:
    return dt.isoformat() if dt else None


def _author(account: Account | None) -> dict | None:
    if account is None:
        return None
    return {"id": str(account.id), "fullName": account.full_name, "email": account.email}


def member_dict(m: GroupMember) -> dict:
    return {
        "accountId": str(m.account_id),
        "fullName": m.account.full_name if m.account else "",
        "role": m.role,
        "joinedAt": _iso(m.joined_at),
    }


def group_dict(group: Group, *, include_members: bool = False) -> dict:
    data = {
        "id": str(group.id),
        "name": group.name,
        "specialization": group.specialization,
        "description": group.description,
        "level": group.level,
        "xp": group.xp,
        "totalXp": group.total_xp,
        "requiredXp": group.required_xp,
        "memberCount": len(group.members),
        "createdAt": _iso(group.created_at),
    }
    if include_members:
        data["members"] = [member_dict(m) for m in group.members]
    return data


def comment_dict(c: Comment) -> dict:
    return {
        "id": str(c.id),
        "postId": str(c.post_id),
        "content": c.content,
        "author": _author(c.author),
        "votes": c.votes,
        "createdAt": _iso(c.created_at),
    }


def post_dict(post: Post, viewer_id: int | None = None) -> dict:
    my_vote = None
    if viewer_id is not None:
        mine = next((v for v in post.voters if str(v.account_id) == str(viewer_id)), None)
        my_vote = mine.value if mine else None
    return {
        "id": str(post.id),
        "groupId": str(post.group_id),
        "content": post.content,
        "author": _author(post.author),
        "upvotes": post.upvotes,
        "downvotes": post.downvotes,
        "voteCount": post.vote_count,
        "myVote": my_vote,
        "comments": [comment_dict(c) for c in post.comments],
        "createdAt": _iso(post.created_at),
        "updatedAt": _iso(post.updated_at),
    }


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------
def load_group(session: Session, group_id: int, *, lock: bool = False) -> Group:
    query = select(Group).where(Group.id == group_id)
    if lock:
        query = query.with_for_update()
    group = session.scalar(query)
    if group is None:
        raise NotFoundError("Group not found")
    return group


def load_post(session: Session, post_id: int, *, lock: bool = False) -> Post:
    query = select(Post).where(Post.id == post_id)
    if lock:
        query = query.with_for_update()
    post = session.scalar(query)
    if post is None:
        raise NotFoundError("Post not found")
    return post


def _clean_text(content: str | None, what: str, max_length: int | None = None) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError(f"{what} cannot be empty")
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{what} must be at most {max_length} characters")
    return text


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------
def list_groups(engine: Engine) -> list[dict]:
    with get_session(engine) as session:
        groups = session.scalars(select(Group).order_by(Group.id)).all()
        return [group_dict(g) for g in groups]


def get_group(engine: Engine, group_id: int) -> dict:
    with get_session(engine) as session:
        return group_dict(load_group(session, group_id), include_members=True)


def create_group(
    engine: Engine,
    founder_id: int,
    name: str,
    specialization: str,
    description: str = "",
    *,
    policy: LevelingPolicy = GROUP_POLICY,
) -> dict:
    """Create a group; the founder becomes its first Admin."""
    name = (name or "").strip()
    specialization = (specialization or "").strip()
    if not name or not specialization:
        raise ValidationError("Name and specialization are required")

    try:
        with get_session(engine) as session:
            taken = session.scalar(
                select(Group.id).where(func.lower(Group.name) == name.lower())
            )
            if taken is not None:
                raise ConflictError(GROUP_NAME_TAKEN)
            group = Group(
                name=name,
                specialization=specialization,
                description=(description or "").strip(),
                level=1,
                xp=0,
                total_xp=0,
                required_xp=policy.required_xp(1),
            )
            group.members.append(
                GroupMember(account_id=founder_id, role=GroupRole.ADMIN.value)
            )
            session.add(group)
            session.flush()
            data = group_dict(group, include_members=True)
    except IntegrityError:
        raise ConflictError(GROUP_NAME_TAKEN) from None

    logger.info("Group %s (%s) created by account %s", data["id"], name, founder_id)
    return data


def join_group(engine: Engine, group_id: int, account_id: int) -> dict:
    """Add *account_id* as a Member; returns the new member entry."""
    try:
        with get_session(engine) as session:
            group = load_group(session, group_id, lock=True)
            try:
                entry = membership.add_member(
                    group.members,
                    GroupMember(account_id=account_id, role=GroupRole.MEMBER.value),
                )
            except ConflictError:
                raise ConflictError("You are already a member of this group") from None
            session.flush()
            session.refresh(entry)
            return member_dict(entry)
    except IntegrityError:
        raise ConflictError("You are already a member of this group") from None


def _admin_count(group: Group) -> int:
    return sum(1 for m in group.members if m.role == GroupRole.ADMIN)


def leave_group(engine: Engine, group_id: int, account_id: int) -> None:
    with get_session(engine) as session:
        group = load_group(session, group_id, lock=True)
        member = membership.require_member(group.members, account_id, message=NOT_MEMBER)
        if member.role == GroupRole.ADMIN and _admin_count(group) == 1:
            raise ValidationError("Promote another Admin before leaving the group")
        membership.remove_member(group.members, account_id)
    logger.info("Account %s left group %s", account_id, group_id)


def set_member_role(
    engine: Engine, group_id: int, actor_id: int, target_id: int, role: str
) -> dict:
    try:
        new_role = GroupRole(role)
    except ValueError:
        raise ValidationError(f"Unknown role '{role}'") from None

    with get_session(engine) as session:
        group = load_group(session, group_id, lock=True)
        membership.require_member(
            group.members, actor_id, roles={GroupRole.ADMIN},
            message=NOT_MEMBER, role_message=ADMIN_ONLY,
        )
        target = membership.find_member(group.members, target_id)
        if target is None:
            raise NotFoundError("That account is not a member of this group")
        if (
            target.role == GroupRole.ADMIN
            and new_role != GroupRole.ADMIN
            and _admin_count(group) == 1
        ):
            raise ValidationError("A group needs at least one Admin")
        target.role = new_role.value
        session.flush()
        return member_dict(target)


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------
def list_posts(engine: Engine, group_id: int, viewer_id: int | None = None) -> list[dict]:
    """Group feed, newest first, with vote tallies and comments."""
    with get_session(engine) as session:
        load_group(session, group_id)
        posts = session.scalars(
            select(Post)
            .where(Post.group_id == group_id)
            .order_by(Post.created_at.desc(), Post.id.desc())
        ).all()
        return [post_dict(p, viewer_id) for p in posts]


def create_post(engine: Engine, group_id: int, account_id: int, content: str) -> dict:
    text = _clean_text(content, "Post content")
    with get_session(engine) as session:
        group = load_group(session, group_id)
        membership.require_member(group.members, account_id, message=NOT_MEMBER)
        post = Post(group_id=group.id, author_id=account_id, content=text)
        session.add(post)
        session.flush()
        session.refresh(post)
        return post_dict(post, account_id)


def add_comment(engine: Engine, post_id: int, account_id: int, content: str) -> dict:
    text = _clean_text(content, "Comment")
    with get_session(engine) as session:
        post = load_post(session, post_id)
        group = load_group(session, post.group_id)
        membership.require_member(group.members, account_id, message=NOT_MEMBER)
        comment = Comment(post_id=post.id, author_id=account_id, content=text)
        session.add(comment)
        session.flush()
        session.refresh(comment)
        data = comment_dict(comment)
        data["groupId"] = str(post.group_id)
        return data


def vote_post(engine: Engine, post_id: int, account_id: int, direction: str) -> dict:
    """Toggle a vote; ``newUpvote`` tells the caller whether XP is due."""
    voting.parse_direction(direction)
    with get_session(engine) as session:
        post = load_post(session, post_id, lock=True)
        group = load_group(session, post.group_id)
        membership.require_member(group.members, account_id, message=NOT_MEMBER)

        outcome = voting.apply_vote(
            post.voters,
            account_id,
            direction,
            lambda aid, value: PostVote(account_id=aid, value=value),
        )
        session.flush()
        return {
            "postId": str(post.id),
            "groupId": str(post.group_id),
            "upvotes": post.upvotes,
            "downvotes": post.downvotes,
            "voteCount": post.vote_count,
            "myVote": outcome.current,
            "newUpvote": outcome.new_upvote,
        }


def delete_post(engine: Engine, post_id: int, account_id: int) -> int:
    """Admin-only; comments and votes go with the post.  Returns the group id."""
    with get_session(engine) as session:
        post = load_post(session, post_id)
        group = load_group(session, post.group_id)
        membership.require_member(
            group.members, account_id, roles={GroupRole.ADMIN},
            message=NOT_MEMBER, role_message=ADMIN_ONLY,
        )
        group_id = post.group_id
        session.delete(post)
    logger.info("Post %s deleted from group %s by %s", post_id, group_id, account_id)
    return group_id


def require_group_member(engine: Engine, group_id: int, account_id: int | None) -> str:
    """Membership gate for read paths outside this module; returns the role."""
    with get_session(engine) as session:
        group = load_group(session, group_id)
        return membership.require_member(group.members, account_id, message=NOT_MEMBER).role
