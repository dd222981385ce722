"""
quizmize.engine.voting — Vote & Like Toggles
=============================================

Group posts carry signed votes (+1 / -1); university and course posts carry
a plain like list.  Both are toggles keyed by account id.
"""

from __future__ import annotations

from collections.abc import Callable, MutableSequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

from quizmize.errors import ValidationError

VOTE_VALUES: dict[str, int] = {"up": 1, "down": -1}


class VoteLike(Protocol):
    account_id: int
    value: int


class LikeLike(Protocol):
    account_id: int


V = TypeVar("V", bound=VoteLike)
L = TypeVar("L", bound=LikeLike)


@dataclass(frozen=True, slots=True)
class VoteOutcome:
    previous: int | None
    current: int | None

    @property
    def new_upvote(self) -> bool:
        """True only on the transition from no vote into an upvote."""
        return self.previous is None and self.current == 1


def parse_direction(direction: object) -> int:
    if direction not in VOTE_VALUES:
        raise ValidationError("Vote type must be 'up' or 'down'")
    return VOTE_VALUES[direction]  # type: ignore[index]


def apply_vote(
    voters: MutableSequence[V],
    account_id: int,
    direction: object,
    factory: Callable[[int, int], V],
) -> VoteOutcome:
    """Toggle *account_id*'s vote in *voters*.

    Voting the same way twice removes the vote; voting the other way
    switches it.  *factory(account_id, value)* builds a new voter entry.
    """
    value = parse_direction(direction)
    existing = next((v for v in voters if str(v.account_id) == str(account_id)), None)

    if existing is None:
        voters.append(factory(account_id, value))
        return VoteOutcome(previous=None, current=value)

    previous = existing.value
    if previous == value:
        voters.remove(existing)
        return VoteOutcome(previous=previous, current=None)

    existing.value = value
    return VoteOutcome(previous=previous, current=value)


def tally(voters: MutableSequence[V]) -> int:
    return sum(v.value for v in voters)


def toggle_like(
    likes: MutableSequence[L],
    account_id: int,
    factory: Callable[[int], L],
) -> bool:
    """Like or unlike; returns whether the account now likes the post."""
    existing = next((like for like in likes if str(like.account_id) == str(account_id)), None)
    if existing is not None:
        likes.remove(existing)
        return False
    likes.append(factory(account_id))
    return True
