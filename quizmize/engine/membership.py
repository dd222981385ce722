"""
quizmize.engine.membership — Member & Role Predicates
======================================================

Read-only checks (and the two list mutations) over an aggregate's member
list.  Works on anything shaped like ``[{account_id, role}, …]`` — group
members and university members alike.

Ids are compared by their string form: an id can arrive as an ``int`` from
the ORM, as a ``str`` from a path parameter, or as a JWT claim.
"""

from __future__ import annotations

from collections.abc import Collection, MutableSequence, Sequence
from typing import Protocol, TypeVar

from quizmize.errors import AuthenticationError, AuthorizationError, ConflictError


class MemberLike(Protocol):
    account_id: int
    role: str


M = TypeVar("M", bound=MemberLike)


def _same(a: object, b: object) -> bool:
    return str(a) == str(b)


def find_member(members: Sequence[M], account_id: object) -> M | None:
    for member in members:
        if _same(member.account_id, account_id):
            return member
    return None


def is_member(members: Sequence[MemberLike], account_id: object) -> bool:
    return find_member(members, account_id) is not None


def get_role(members: Sequence[MemberLike], account_id: object) -> str | None:
    member = find_member(members, account_id)
    return member.role if member is not None else None


def add_member(members: MutableSequence[M], entry: M) -> M:
    """Append *entry*; an account may only appear once."""
    if is_member(members, entry.account_id):
        raise ConflictError("Account is already a member")
    members.append(entry)
    return entry


def remove_member(members: MutableSequence[M], account_id: object) -> M | None:
    """Drop the entry for *account_id*; returns it, or ``None`` if absent."""
    member = find_member(members, account_id)
    if member is not None:
        members.remove(member)
    return member


def require_member(
    members: Sequence[M],
    account_id: object | None,
    *,
    roles: Collection[str] | None = None,
    message: str = "You are not a member of this group",
    role_message: str | None = None,
) -> M:
    """The authorization gate used by every mutation endpoint.

    * no account → :class:`AuthenticationError` (401)
    * not a member → :class:`AuthorizationError` (403)
    * role outside *roles* → :class:`AuthorizationError` (403)
    """
    if account_id is None:
        raise AuthenticationError("Authentication required")
    member = find_member(members, account_id)
    if member is None:
        raise AuthorizationError(message)
    if roles is not None and member.role not in roles:
        raise AuthorizationError(role_message or "Insufficient role for this action")
    return member
