"""
tests/test_group_service.py — Groups, Posts, Comments & Votes
==============================================================
"""

from __future__ import annotations

import pytest
from conftest import make_account
from sqlalchemy.orm import Session

from quizmize.database.models import Comment, GroupMember, Post, PostVote
from quizmize.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from quizmize.services import group_service


@pytest.fixture
def engine(db_engine):
    return db_engine


@pytest.fixture
def founder(engine):
    return make_account(engine, "founder@quizmize.io", "Founder")


@pytest.fixture
def outsider(engine):
    return make_account(engine, "outsider@quizmize.io", "Outsider")


@pytest.fixture
def group(engine, founder):
    return group_service.create_group(engine, founder, "Algebra Club", "Math", "x + y")


class TestGroups:
    def test_create_makes_founder_admin(self, group, founder):
        assert group["level"] == 1
        assert group["xp"] == 0
        assert group["requiredXp"] == 3000
        assert group["memberCount"] == 1
        assert group["members"][0]["accountId"] == str(founder)
        assert group["members"][0]["role"] == "Admin"

    def test_duplicate_name_case_insensitive(self, engine, group, founder):
        with pytest.raises(ConflictError, match="already exists"):
            group_service.create_group(engine, founder, "ALGEBRA CLUB", "Math")

    def test_requires_name_and_specialization(self, engine, founder):
        with pytest.raises(ValidationError):
            group_service.create_group(engine, founder, "  ", "Math")

    def test_join_and_list(self, engine, group, outsider):
        member = group_service.join_group(engine, int(group["id"]), outsider)
        assert member["role"] == "Member"
        assert member["fullName"] == "Outsider"
        (listed,) = group_service.list_groups(engine)
        assert listed["memberCount"] == 2

    def test_join_twice_conflicts(self, engine, group, founder):
        with pytest.raises(ConflictError):
            group_service.join_group(engine, int(group["id"]), founder)
        with Session(engine) as session:
            assert session.query(GroupMember).count() == 1

    def test_join_unknown_group(self, engine, outsider):
        with pytest.raises(NotFoundError):
            group_service.join_group(engine, 404, outsider)

    def test_leave(self, engine, group, outsider):
        gid = int(group["id"])
        group_service.join_group(engine, gid, outsider)
        group_service.leave_group(engine, gid, outsider)
        assert group_service.get_group(engine, gid)["memberCount"] == 1

    def test_last_admin_cannot_leave(self, engine, group, founder):
        with pytest.raises(ValidationError):
            group_service.leave_group(engine, int(group["id"]), founder)

    def test_admin_promotes_member(self, engine, group, founder, outsider):
        gid = int(group["id"])
        group_service.join_group(engine, gid, outsider)
        updated = group_service.set_member_role(engine, gid, founder, outsider, "Strategist")
        assert updated["role"] == "Strategist"

    def test_member_cannot_change_roles(self, engine, group, founder, outsider):
        gid = int(group["id"])
        group_service.join_group(engine, gid, outsider)
        with pytest.raises(AuthorizationError):
            group_service.set_member_role(engine, gid, outsider, founder, "Member")

    def test_unknown_role(self, engine, group, founder):
        with pytest.raises(ValidationError):
            group_service.set_member_role(engine, int(group["id"]), founder, founder, "King")


class TestPosts:
    def test_member_posts(self, engine, group, founder):
        post = group_service.create_post(engine, int(group["id"]), founder, "  hello  ")
        assert post["content"] == "hello"
        assert post["author"]["fullName"] == "Founder"
        assert post["voteCount"] == 0
        assert post["comments"] == []

    def test_non_member_post_is_forbidden_and_writes_nothing(self, engine, group, outsider):
        with pytest.raises(AuthorizationError) as exc:
            group_service.create_post(engine, int(group["id"]), outsider, "sneaky")
        assert exc.value.status_code == 403
        with Session(engine) as session:
            assert session.query(Post).count() == 0

    def test_anonymous_post_is_unauthenticated(self, engine, group):
        with pytest.raises(AuthenticationError):
            group_service.create_post(engine, int(group["id"]), None, "who am i")

    def test_empty_post_rejected(self, engine, group, founder):
        with pytest.raises(ValidationError):
            group_service.create_post(engine, int(group["id"]), founder, "   ")

    def test_feed_newest_first(self, engine, group, founder):
        gid = int(group["id"])
        group_service.create_post(engine, gid, founder, "first")
        group_service.create_post(engine, gid, founder, "second")
        feed = group_service.list_posts(engine, gid)
        assert [p["content"] for p in feed] == ["second", "first"]

    def test_comment(self, engine, group, founder):
        post = group_service.create_post(engine, int(group["id"]), founder, "hi")
        comment = group_service.add_comment(engine, int(post["id"]), founder, "reply")
        assert comment["groupId"] == group["id"]
        assert comment["content"] == "reply"
        feed = group_service.list_posts(engine, int(group["id"]))
        assert feed[0]["comments"][0]["content"] == "reply"

    def test_outsider_cannot_comment(self, engine, group, founder, outsider):
        post = group_service.create_post(engine, int(group["id"]), founder, "hi")
        with pytest.raises(AuthorizationError):
            group_service.add_comment(engine, int(post["id"]), outsider, "nope")
        with Session(engine) as session:
            assert session.query(Comment).count() == 0

    def test_comment_on_unknown_post(self, engine, founder):
        with pytest.raises(NotFoundError):
            group_service.add_comment(engine, 404, founder, "lost")

    def test_delete_is_admin_only(self, engine, group, founder, outsider):
        gid = int(group["id"])
        group_service.join_group(engine, gid, outsider)
        post = group_service.create_post(engine, gid, outsider, "mine")
        with pytest.raises(AuthorizationError):
            group_service.delete_post(engine, int(post["id"]), outsider)
        assert group_service.delete_post(engine, int(post["id"]), founder) == gid
        assert group_service.list_posts(engine, gid) == []


class TestVotes:
    def test_up_toggle_then_down(self, engine, group, founder):
        post = group_service.create_post(engine, int(group["id"]), founder, "vote me")
        pid = int(post["id"])

        first = group_service.vote_post(engine, pid, founder, "up")
        assert (first["voteCount"], first["myVote"], first["newUpvote"]) == (1, 1, True)

        second = group_service.vote_post(engine, pid, founder, "up")
        assert (second["voteCount"], second["myVote"], second["newUpvote"]) == (0, None, False)

        third = group_service.vote_post(engine, pid, founder, "down")
        assert (third["voteCount"], third["downvotes"], third["newUpvote"]) == (-1, 1, False)

        with Session(engine) as session:
            (vote,) = session.query(PostVote).all()
            assert vote.value == -1

    def test_my_vote_in_feed(self, engine, group, founder):
        gid = int(group["id"])
        post = group_service.create_post(engine, gid, founder, "vote me")
        group_service.vote_post(engine, int(post["id"]), founder, "down")
        assert group_service.list_posts(engine, gid, founder)[0]["myVote"] == -1
        assert group_service.list_posts(engine, gid)[0]["myVote"] is None

    def test_bad_direction(self, engine, group, founder):
        post = group_service.create_post(engine, int(group["id"]), founder, "vote me")
        with pytest.raises(ValidationError):
            group_service.vote_post(engine, int(post["id"]), founder, "sideways")

    def test_outsider_cannot_vote(self, engine, group, founder, outsider):
        post = group_service.create_post(engine, int(group["id"]), founder, "vote me")
        with pytest.raises(AuthorizationError):
            group_service.vote_post(engine, int(post["id"]), outsider, "up")
