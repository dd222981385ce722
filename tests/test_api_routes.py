"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Integration tests for the JSON API, the page routes and the group
websocket, using the FastAPI TestClient against in-memory SQLite.

These tests verify:
- Session cookie / bearer token handling
- Auth and membership guards (401 / 403)
- Error translation (JSON under /api, error page elsewhere)
- Realtime fan-out and XP awards after content actions
"""

from __future__ import annotations

import dataclasses

import pytest
from conftest import auth, make_account
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from starlette.websockets import WebSocketDisconnect

from quizmize.api.deps import get_config
from quizmize.api.main import app
from quizmize.config import default_config
from quizmize.constants import LevelingPolicy
from quizmize.database.models import Group, Post


class _Conn:
    """Stand-in websocket that records every frame it is sent."""

    def __init__(self):
        self.frames: list[dict] = []

    async def send_json(self, data):
        self.frames.append(data)

    def events(self) -> list[str]:
        return [f["event"] for f in self.frames]


def _create_group(client: TestClient, account_id: int, name: str = "Algebra") -> str:
    resp = client.post(
        "/api/groups",
        json={"name": name, "specialization": "Math"},
        headers=auth(account_id),
    )
    assert resp.status_code == 201
    return resp.json()["group"]["id"]


# ===========================================================================
# Health & pages
# ===========================================================================
class TestHealthAndPages:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_home_page(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert "Quizmize" in resp.text

    def test_groups_page_lists_groups(self, client, db_engine):
        founder = make_account(db_engine)
        _create_group(client, founder, "Page Group")
        resp = client.get("/groups")
        assert resp.status_code == 200
        assert "Page Group" in resp.text

    def test_unknown_university_page_renders_error(self, client):
        resp = client.get("/universities/999")
        assert resp.status_code == 404
        assert "University not found" in resp.text
        assert resp.headers["content-type"].startswith("text/html")

    def test_university_detail_page(self, client, db_engine):
        admin = make_account(db_engine)
        created = client.post(
            "/api/universities",
            json={"name": "Page U", "location": "Europe"},
            headers=auth(admin),
        ).json()
        resp = client.get(f"/universities/{created['university']['id']}")
        assert resp.status_code == 200
        assert "Page U" in resp.text


# ===========================================================================
# Auth
# ===========================================================================
class TestAuth:
    def test_signup_sets_cookie_and_userdata_works(self, client):
        resp = client.post(
            "/api/user/signup",
            json={"email": "new@quizmize.io", "password": "secret1", "fullName": "New"},
        )
        assert resp.status_code == 201
        assert "user" in resp.json()
        set_cookie = resp.headers["set-cookie"]
        assert set_cookie.startswith("jwt=")
        assert "HttpOnly" in set_cookie

        me = client.get("/api/user/userdata")
        assert me.status_code == 200
        assert me.json()["email"] == "new@quizmize.io"
        assert me.json()["fullName"] == "New"

    def test_signup_field_errors(self, client):
        resp = client.post("/api/user/signup", json={"email": "bad", "password": "1"})
        assert resp.status_code == 400
        errors = resp.json()["errors"]
        assert errors["email"]
        assert errors["password"]

    def test_duplicate_signup(self, client):
        body = {"email": "dup@quizmize.io", "password": "secret1"}
        assert client.post("/api/user/signup", json=body).status_code == 201
        resp = client.post("/api/user/signup", json=body)
        assert resp.status_code == 400
        assert resp.json()["errors"]["email"] == "That email is already registered"

    def test_login_wrong_password(self, client):
        client.post("/api/user/signup", json={"email": "eve@quizmize.io", "password": "secret1"})
        resp = client.post("/api/user/login", json={"email": "eve@quizmize.io", "password": "nope!!"})
        assert resp.status_code == 400
        assert resp.json()["errors"]["password"] == "That password is incorrect"

    def test_logout_clears_cookie(self, client):
        client.post("/api/user/signup", json={"email": "bye@quizmize.io", "password": "secret1"})
        resp = client.get("/api/user/logout", follow_redirects=False)
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"
        assert 'jwt=""' in resp.headers["set-cookie"] or "jwt=;" in resp.headers["set-cookie"]

    def test_userdata_requires_session(self, client):
        resp = client.get("/api/user/userdata")
        assert resp.status_code == 401
        assert resp.json() == {"error": "Authentication required"}

    def test_invalid_bearer_is_401(self, client):
        resp = client.get("/api/user/userdata", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401

    def test_save_quiz_history(self, client, db_engine):
        account = make_account(db_engine)
        resp = client.post(
            "/api/user/saveQuizHistory",
            json={"quizTopic": "Sets", "subject": "Math", "quizList": "A",
                  "score": 3, "totalQuestions": 4, "xp": 150},
            headers=auth(account),
        )
        assert resp.status_code == 200
        assert resp.json()["xp"] == 150
        history = client.get("/api/user/userdata", headers=auth(account)).json()["quizHistory"]
        assert history[0]["quizTopic"] == "Sets"

        journal = client.get("/api/user/xpHistory", headers=auth(account)).json()
        assert [(e["amount"], e["source"]) for e in journal] == [(150, "quiz_completed")]

    def test_xp_history_requires_session(self, client):
        assert client.get("/api/user/xpHistory").status_code == 401

    def test_update_profile(self, client, db_engine):
        account = make_account(db_engine)
        resp = client.post(
            "/api/user/updateProfile", json={"fullName": "Renamed"}, headers=auth(account)
        )
        assert resp.status_code == 200
        assert resp.json()["fullName"] == "Renamed"

    def test_profile_endpoints_agree_on_configured_curve(self, client, db_engine):
        steep = dataclasses.replace(
            default_config(),
            account_policy=LevelingPolicy(name="steep", base=500, step=50, offset=1),
        )
        app.dependency_overrides[get_config] = lambda: steep
        account = make_account(db_engine)

        updated = client.post(
            "/api/user/updateProfile", json={"fullName": "Renamed"}, headers=auth(account)
        ).json()
        profile = client.get("/api/user/userdata", headers=auth(account)).json()

        assert updated["requiredXp"] == profile["requiredXp"] == 500


# ===========================================================================
# Groups, posts & votes
# ===========================================================================
class TestGroupRoutes:
    def test_create_requires_auth(self, client):
        resp = client.post("/api/groups", json={"name": "X", "specialization": "Y"})
        assert resp.status_code == 401

    def test_validation_error_shape(self, client, db_engine):
        account = make_account(db_engine)
        resp = client.post("/api/groups", json={"specialization": "Y"}, headers=auth(account))
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("name")

    def test_non_integer_path_is_400(self, client):
        assert client.get("/api/groups/abc").status_code == 400

    def test_xp_history_of_unknown_group(self, client):
        assert client.get("/api/groups/999/xp").status_code == 404

    def test_unknown_group_is_404(self, client):
        resp = client.get("/api/groups/999")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Group not found"}

    def test_duplicate_group_name(self, client, db_engine):
        account = make_account(db_engine)
        _create_group(client, account)
        resp = client.post(
            "/api/groups", json={"name": "algebra", "specialization": "Math"},
            headers=auth(account),
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Group name already exists"}

    def test_non_member_post_is_forbidden(self, client, db_engine):
        founder = make_account(db_engine)
        outsider = make_account(db_engine, "out@quizmize.io", "Out")
        gid = _create_group(client, founder)

        resp = client.post(
            f"/api/groups/{gid}/posts", json={"content": "hi"}, headers=auth(outsider)
        )

        assert resp.status_code == 403
        assert resp.json() == {"error": "You are not a member of this group"}
        with Session(db_engine) as session:
            assert session.query(Post).count() == 0
            assert session.get(Group, int(gid)).xp == 0

    def test_join_publishes_and_awards(self, client, db_engine, hub):
        founder = make_account(db_engine)
        joiner = make_account(db_engine, "join@quizmize.io", "Joiner")
        gid = _create_group(client, founder)
        conn = _Conn()
        hub.connect(gid, conn, founder)

        resp = client.post(f"/api/groups/{gid}/join", headers=auth(joiner))

        assert resp.status_code == 200
        assert resp.json()["member"]["role"] == "Member"
        assert conn.events() == ["member-joined", "group-xp-updated"]
        assert conn.frames[1]["data"]["xpGained"] == 25
        assert client.get(f"/api/groups/{gid}").json()["xp"] == 25

        journal = client.get(f"/api/groups/{gid}/xp").json()
        assert [(e["amount"], e["source"]) for e in journal] == [(25, "member_joined")]

    def test_post_comment_vote_flow(self, client, db_engine, hub):
        founder = make_account(db_engine)
        gid = _create_group(client, founder)
        conn = _Conn()
        hub.connect(gid, conn, founder)

        post = client.post(
            f"/api/groups/{gid}/posts", json={"content": "first!"}, headers=auth(founder)
        )
        assert post.status_code == 201
        pid = post.json()["id"]

        comment = client.post(
            f"/api/groups/posts/{pid}/comments", json={"content": "nice"}, headers=auth(founder)
        )
        assert comment.status_code == 201

        up = client.post(f"/api/groups/posts/{pid}/vote", json={"type": "up"}, headers=auth(founder))
        assert up.json()["voteCount"] == 1
        again = client.post(f"/api/groups/posts/{pid}/vote", json={"type": "up"}, headers=auth(founder))
        assert again.json()["voteCount"] == 0

        assert conn.events() == [
            "new-post", "group-xp-updated",
            "new-comment", "group-xp-updated",
            "vote-update", "group-xp-updated",
            "vote-update",
        ]
        # 15 (post) + 10 (comment) + 5 (first upvote only)
        assert client.get(f"/api/groups/{gid}").json()["xp"] == 30

        feed = client.get(f"/api/groups/{gid}/posts", headers=auth(founder)).json()
        assert feed[0]["comments"][0]["content"] == "nice"
        assert feed[0]["myVote"] is None

    def test_bad_vote_type(self, client, db_engine):
        founder = make_account(db_engine)
        gid = _create_group(client, founder)
        pid = client.post(
            f"/api/groups/{gid}/posts", json={"content": "x"}, headers=auth(founder)
        ).json()["id"]
        resp = client.post(
            f"/api/groups/posts/{pid}/vote", json={"type": "meh"}, headers=auth(founder)
        )
        assert resp.status_code == 400

    def test_delete_post_publishes(self, client, db_engine, hub):
        founder = make_account(db_engine)
        gid = _create_group(client, founder)
        pid = client.post(
            f"/api/groups/{gid}/posts", json={"content": "x"}, headers=auth(founder)
        ).json()["id"]
        conn = _Conn()
        hub.connect(gid, conn, founder)

        resp = client.delete(f"/api/groups/posts/{pid}", headers=auth(founder))

        assert resp.status_code == 200
        assert conn.frames == [{"event": "post-deleted", "data": {"postId": pid}}]

    def test_chat_history_is_member_only(self, client, db_engine):
        founder = make_account(db_engine)
        outsider = make_account(db_engine, "out@quizmize.io", "Out")
        gid = _create_group(client, founder)
        assert client.get(f"/api/groups/{gid}/chat", headers=auth(founder)).json() == []
        assert client.get(f"/api/groups/{gid}/chat", headers=auth(outsider)).status_code == 403


# ===========================================================================
# Missions
# ===========================================================================
class TestMissionRoutes:
    def test_complete_mission_awards_group(self, client, db_engine, hub):
        founder = make_account(db_engine)
        gid = _create_group(client, founder)
        created = client.post(
            f"/api/groups/{gid}/missions",
            json={
                "title": "Quick one",
                "type": "custom",
                "duration": 1,
                "points": 100,
                "questions": [
                    {"text": "Q", "choices": ["a", "b", "c", "d"], "correctAnswer": 2}
                ],
            },
            headers=auth(founder),
        )
        assert created.status_code == 201
        mid = created.json()["id"]

        assert client.post(
            f"/api/groups/{gid}/missions/{mid}/join", headers=auth(founder)
        ).status_code == 200

        conn = _Conn()
        hub.connect(gid, conn, founder)
        answer = client.post(
            f"/api/groups/{gid}/missions/{mid}/answer",
            json={"questionIndex": 0, "selectedAnswer": 2},
            headers=auth(founder),
        ).json()

        assert answer["isCorrect"] is True
        assert answer["justCompleted"] is True
        assert answer["score"] == 100
        assert conn.events() == ["group-xp-updated"]
        assert conn.frames[0]["data"]["xpGained"] == 50
        assert conn.frames[0]["data"]["source"] == "Mission completed"

        progress = client.get(
            f"/api/groups/{gid}/missions/{mid}/progress", headers=auth(founder)
        ).json()
        assert progress["completed"] is True

        profile = client.get("/api/user/userdata", headers=auth(founder)).json()
        assert profile["xp"] == 100

    def test_member_cannot_create(self, client, db_engine):
        founder = make_account(db_engine)
        member = make_account(db_engine, "m@quizmize.io", "M")
        gid = _create_group(client, founder)
        client.post(f"/api/groups/{gid}/join", headers=auth(member))
        resp = client.post(
            f"/api/groups/{gid}/missions",
            json={"title": "x", "type": "system", "duration": 1},
            headers=auth(member),
        )
        assert resp.status_code == 403


# ===========================================================================
# Universities & quizzes
# ===========================================================================
class TestUniversityRoutes:
    def test_register_and_join_by_code(self, client, db_engine):
        admin = make_account(db_engine)
        student = make_account(db_engine, "s@quizmize.io", "S")
        created = client.post(
            "/api/universities",
            json={"name": "Route U", "location": "Asia", "isPublic": True},
            headers=auth(admin),
        )
        assert created.status_code == 201
        code = created.json()["university"]["joinCode"]

        joined = client.post(f"/api/universities/join/{code}", headers=auth(student))
        assert joined.status_code == 200
        assert joined.json()["message"] == "Successfully joined Route U!"

    def test_bad_code(self, client, db_engine):
        student = make_account(db_engine)
        resp = client.post("/api/universities/join/NOPE1234", headers=auth(student))
        assert resp.status_code == 404
        assert resp.json() == {"error": "Invalid university code"}

    def test_posts_envelope(self, client, db_engine):
        admin = make_account(db_engine)
        uid = client.post(
            "/api/universities", json={"name": "Env U", "location": "Asia"}, headers=auth(admin)
        ).json()["university"]["id"]
        created = client.post(
            f"/api/universities/{uid}/posts", json={"content": "Hello"}, headers=auth(admin)
        )
        assert created.status_code == 201
        assert created.json()["message"] == "Post created successfully!"
        listed = client.get(f"/api/universities/{uid}/posts").json()
        assert listed["posts"][0]["content"] == "Hello"


class TestQuizRoutes:
    def test_writes_need_site_admin(self, client, db_engine):
        user = make_account(db_engine)
        resp = client.post(
            "/api/quizzes/subjects", json={"category": "Sci", "name": "Math"}, headers=auth(user)
        )
        assert resp.status_code == 403
        assert resp.json() == {"error": "Not admin"}

    def test_admin_builds_catalog(self, client, db_engine):
        admin = make_account(db_engine, is_admin=True)
        assert client.post(
            "/api/quizzes/subjects", json={"category": "Sci", "name": "Math"}, headers=auth(admin)
        ).status_code == 201
        quiz = client.post(
            "/api/quizzes",
            json={
                "subject": "Math", "quizTopic": "Add", "quizList": "1",
                "questions": [{"question": "1+1?", "choices": ["1", "2"], "answer": 1}],
            },
            headers=auth(admin),
        )
        assert quiz.status_code == 201
        listed = client.get("/api/quizzes", params={"subject": "Math"}).json()
        assert listed[0]["questions"][0]["answer"] == 1
        assert client.get("/api/quizzes/subjects").json()[0]["name"] == "Math"

    def test_topics_and_quiz_topics(self, client, db_engine):
        admin = make_account(db_engine, is_admin=True)
        assert client.post(
            "/api/quizzes/topics", json={"name": "Science"}, headers=auth(admin)
        ).status_code == 201
        renamed = client.put(
            "/api/quizzes/topics/Science", json={"newName": "Sciences"}, headers=auth(admin)
        )
        assert renamed.json()["name"] == "Sciences"
        assert [t["name"] for t in client.get("/api/quizzes/topics").json()] == ["Sciences"]

        created = client.post(
            "/api/quizzes/quiz-topics",
            json={"subject": "Math", "name": "Fractions", "total": 4},
            headers=auth(admin),
        ).json()
        progress = client.patch(
            f"/api/quizzes/quiz-topics/{created['id']}/progress",
            json={"done": 5}, headers=auth(admin),
        )
        assert progress.status_code == 400
        listed = client.get("/api/quizzes/quiz-topics", params={"subject": "Math"}).json()
        assert [(t["name"], t["total"], t["done"]) for t in listed] == [("Fractions", 4, 0)]

    def test_quiz_list_cards_by_index(self, client, db_engine):
        admin = make_account(db_engine, is_admin=True)
        for title in ("Halves", "Thirds"):
            resp = client.post(
                "/api/quizzes/lists/Fractions/Set A",
                json={"cardTitle": title, "cardDifficulty": "Easy"},
                headers=auth(admin),
            )
            assert resp.status_code == 201
        client.patch(
            "/api/quizzes/lists/Fractions/Set A/1", json={"newTitle": "Fourths"},
            headers=auth(admin),
        )
        missing = client.delete("/api/quizzes/lists/Fractions/Set A/5", headers=auth(admin))
        assert missing.status_code == 404
        assert missing.json() == {"error": "Quiz card not found"}

        cards = client.get("/api/quizzes/lists/Fractions/Set A").json()["quizlist"]
        assert [c["cardTitle"] for c in cards] == ["Halves", "Fourths"]

    def test_page_question_upsert(self, client, db_engine):
        admin = make_account(db_engine, is_admin=True)
        body = {
            "subject": "Math", "quizTopic": "Add", "quizList": "1",
            "question": "1+1?", "choices": ["1", "2"], "answer": 1,
        }
        first = client.post("/api/quizzes/page-questions", json=body, headers=auth(admin))
        second = client.post("/api/quizzes/page-questions", json=body, headers=auth(admin))
        assert first.status_code == second.status_code == 201
        assert second.json()["id"] == first.json()["id"]
        assert len(client.get(f"/api/quizzes/{first.json()['id']}").json()["questions"]) == 2

    def test_card_writes_need_site_admin(self, client, db_engine):
        user = make_account(db_engine)
        resp = client.post(
            "/api/quizzes/lists/Fractions/Set A", json={"cardTitle": "Halves"}, headers=auth(user)
        )
        assert resp.status_code == 403


# ===========================================================================
# Websocket
# ===========================================================================
class TestGroupChannel:
    def test_rejects_missing_token(self, client, db_engine):
        founder = make_account(db_engine)
        gid = _create_group(client, founder)
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(f"/api/ws/groups/{gid}"):
                pass
        assert exc.value.code == 1008

    def test_rejects_non_member(self, client, db_engine):
        founder = make_account(db_engine)
        outsider = make_account(db_engine, "out@quizmize.io", "Out")
        gid = _create_group(client, founder)
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(f"/api/ws/groups/{gid}", headers=auth(outsider)):
                pass
        assert exc.value.code == 1008

    def test_chat_round_trip(self, client, db_engine, hub):
        founder = make_account(db_engine, full_name="Founder")
        gid = _create_group(client, founder)

        with client.websocket_connect(f"/api/ws/groups/{gid}", headers=auth(founder)) as ws:
            joined = ws.receive_json()
            assert joined == {
                "event": "user-joined-chat",
                "data": {"userId": str(founder), "userName": "Founder"},
            }
            count = ws.receive_json()
            assert count == {"event": "online-count", "data": {"groupId": gid, "count": 1}}

            ws.send_json({"content": "   "})
            assert ws.receive_json() == {
                "event": "error", "data": {"error": "Message cannot be empty"},
            }

            ws.send_text("not json {")
            assert ws.receive_json() == {
                "event": "error", "data": {"error": "Messages must be JSON"},
            }

            ws.send_json({"content": "hello room"})
            message = ws.receive_json()
            assert message["event"] == "chat-message"
            assert message["data"]["content"] == "hello room"
            assert message["data"]["userName"] == "Founder"

        history = client.get(f"/api/groups/{gid}/chat", headers=auth(founder)).json()
        assert [m["content"] for m in history] == ["hello room"]
        assert hub.online_count(gid) == 0
