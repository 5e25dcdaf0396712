"""
Postboard Backend — API Endpoint Tests
=======================================

What:  End-to-end behavior of every route against a real (SQLite) database.
How:   HTTPX AsyncClient over ASGITransport; each test gets its own database
       file through the test_app fixture.
"""

from datetime import datetime

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import bearer
from postboard.models.post import Post
from postboard.models.user import User
from postboard.services.post_service import PostService

OUT_OF_RANGE_ID = "99999999999999999999"


async def count_rows(app, model) -> int:
    async with app.state.session_factory() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


def post_body(user_id: int, **overrides) -> dict:
    body = {
        "author": "Alice",
        "title": "Hello",
        "content": "First post",
        "thumbnail": "https://img.example/hello.png",
        "userId": user_id,
    }
    body.update(overrides)
    return body


# ══════════════════════════════════════════════════════════════════════════
# Auth
# ══════════════════════════════════════════════════════════════════════════


class TestAuthFlow:

    @pytest.mark.asyncio
    async def test_signup_login_scenario(self, test_client, test_app):
        """alice/pw1 → 201; alice/pw2 → 400; login pw1 → 200; login wrong → 401."""
        first = await test_client.post("/auth/signup", json={"username": "alice", "password": "pw1"})
        assert first.status_code == 201
        assert "message" in first.json()

        second = await test_client.post("/auth/signup", json={"username": "alice", "password": "pw2"})
        assert second.status_code == 400
        assert second.json()["error"] == "conflict"
        assert await count_rows(test_app, User) == 1

        good = await test_client.post("/auth/login", json={"username": "alice", "password": "pw1"})
        assert good.status_code == 200
        assert good.json()["auth"] is True
        claims = test_app.state.auth_service.verify_token(good.json()["token"])
        assert claims.username == "alice"

        bad = await test_client.post("/auth/login", json={"username": "alice", "password": "wrong"})
        assert bad.status_code == 401
        assert bad.json() == {"auth": False, "token": None}

    @pytest.mark.asyncio
    async def test_login_unknown_user(self, test_client):
        response = await test_client.post("/auth/login", json={"username": "ghost", "password": "x"})
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_password_is_stored_hashed(self, test_client, test_app):
        await test_client.post("/auth/signup", json={"username": "alice", "password": "pw1"})

        async with test_app.state.session_factory() as session:
            user = (await session.execute(select(User))).scalar_one()
        assert user.password_hash != "pw1"

    @pytest.mark.asyncio
    async def test_signup_missing_password_is_bad_request(self, test_client):
        response = await test_client.post("/auth/signup", json={"username": "alice"})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert any(e["field"].endswith("password") for e in body["details"]["errors"])


# ══════════════════════════════════════════════════════════════════════════
# Posts
# ══════════════════════════════════════════════════════════════════════════


class TestPostLifecycle:

    @pytest.mark.asyncio
    async def test_create_update_delete(self, test_client, register_user):
        user_id, token = await register_user()

        created = await test_client.post("/posts", json=post_body(user_id), headers=bearer(token))
        assert created.status_code == 200
        post = created.json()
        assert post["user_id"] == user_id
        assert post["title"] == "Hello"

        listed = await test_client.get("/posts")
        assert post["id"] in [p["id"] for p in listed.json()]

        updated = await test_client.put(
            f"/posts/{post['id']}",
            json={"title": "Hello again", "userId": user_id},
            headers=bearer(token),
        )
        assert updated.status_code == 200
        payload = updated.json()
        assert payload["status"] == "success"
        new = payload["updatedPost"]
        assert new["title"] == "Hello again"
        assert new["content"] == post["content"]
        assert new["author"] == post["author"]
        assert new["thumbnail"] == post["thumbnail"]
        assert datetime.fromisoformat(new["updated_at"]) > datetime.fromisoformat(post["updated_at"])

        deleted = await test_client.request(
            "DELETE", f"/posts/{post['id']}", json={"userId": user_id}, headers=bearer(token)
        )
        assert deleted.status_code == 200
        snapshot = deleted.json()["deletedPost"]
        assert snapshot["id"] == post["id"]
        assert snapshot["title"] == "Hello again"

        listed = await test_client.get("/posts")
        assert post["id"] not in [p["id"] for p in listed.json()]

    @pytest.mark.asyncio
    async def test_list_by_user_filters_on_owner(self, test_client, register_user):
        alice_id, alice_token = await register_user("alice", "pw1")
        bob_id, bob_token = await register_user("bob", "pw2")

        await test_client.post("/posts", json=post_body(alice_id), headers=bearer(alice_token))
        await test_client.post("/posts", json=post_body(bob_id, author="Bob"), headers=bearer(bob_token))
        await test_client.post("/posts", json=post_body(bob_id, title="Two"), headers=bearer(bob_token))

        response = await test_client.get(f"/posts/{bob_id}")
        assert response.status_code == 200
        posts = response.json()
        assert len(posts) == 2
        assert {p["user_id"] for p in posts} == {bob_id}

        assert (await test_client.get("/posts/9999")).json() == []

    @pytest.mark.asyncio
    async def test_create_for_unknown_user(self, test_client, test_app):
        token = test_app.state.auth_service.issue_token(999, "ghost")

        response = await test_client.post("/posts", json=post_body(999), headers=bearer(token))

        assert response.status_code == 400
        assert "does not exist" in response.json()["message"]
        assert await count_rows(test_app, Post) == 0


class TestPostAuthorization:

    @pytest.mark.asyncio
    async def test_create_without_header(self, test_client, test_app):
        response = await test_client.post("/posts", json=post_body(1))

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert await count_rows(test_app, Post) == 0

    @pytest.mark.asyncio
    async def test_create_with_garbage_token(self, test_client):
        response = await test_client.post("/posts", json=post_body(1), headers=bearer("garbage"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_create_with_expired_token(self, test_client, test_app, register_user):
        user_id, _ = await register_user()
        expired = test_app.state.auth_service.issue_token(user_id, "alice", expires_in=-5)

        response = await test_client.post("/posts", json=post_body(user_id), headers=bearer(expired))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_quoted_token_accepted(self, test_client, register_user):
        user_id, token = await register_user()

        response = await test_client.post(
            "/posts", json=post_body(user_id), headers={"Authorization": f'Bearer "{token}"'}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_identity_mismatch_leaves_store_unchanged(self, test_client, register_user):
        alice_id, alice_token = await register_user("alice", "pw1")
        bob_id, bob_token = await register_user("bob", "pw2")
        post = (await test_client.post(
            "/posts", json=post_body(alice_id), headers=bearer(alice_token)
        )).json()

        create = await test_client.post("/posts", json=post_body(alice_id), headers=bearer(bob_token))
        update = await test_client.put(
            f"/posts/{post['id']}", json={"title": "Hijacked", "userId": alice_id}, headers=bearer(bob_token)
        )
        delete = await test_client.request(
            "DELETE", f"/posts/{post['id']}", json={"userId": alice_id}, headers=bearer(bob_token)
        )

        assert [create.status_code, update.status_code, delete.status_code] == [400, 400, 400]
        posts = (await test_client.get("/posts")).json()
        assert len(posts) == 1
        assert posts[0]["title"] == "Hello"

    @pytest.mark.asyncio
    async def test_cannot_modify_someone_elses_post(self, test_client, register_user):
        alice_id, alice_token = await register_user("alice", "pw1")
        bob_id, bob_token = await register_user("bob", "pw2")
        post = (await test_client.post(
            "/posts", json=post_body(alice_id), headers=bearer(alice_token)
        )).json()

        update = await test_client.put(
            f"/posts/{post['id']}", json={"title": "Bob was here", "userId": bob_id}, headers=bearer(bob_token)
        )
        delete = await test_client.request(
            "DELETE", f"/posts/{post['id']}", json={"userId": bob_id}, headers=bearer(bob_token)
        )

        assert update.status_code == 403
        assert delete.status_code == 403
        assert (await test_client.get("/posts")).json()[0]["title"] == "Hello"

    @pytest.mark.asyncio
    async def test_update_and_delete_missing_post(self, test_client, test_app, register_user):
        user_id, token = await register_user()
        await test_client.post("/posts", json=post_body(user_id), headers=bearer(token))

        update = await test_client.put(
            "/posts/9999", json={"title": "Nope", "userId": user_id}, headers=bearer(token)
        )
        delete = await test_client.request(
            "DELETE", "/posts/9999", json={"userId": user_id}, headers=bearer(token)
        )

        assert update.status_code == 404
        assert delete.status_code == 404
        assert update.json()["error"] == "not_found"
        assert await count_rows(test_app, Post) == 1


# ══════════════════════════════════════════════════════════════════════════
# Health
# ══════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_health_reports_database(test_client):
    response = await test_client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"


# ══════════════════════════════════════════════════════════════════════════
# Timestamps, ids and transactions
# ══════════════════════════════════════════════════════════════════════════


class TestTimestamps:

    @pytest.mark.asyncio
    async def test_reread_timestamps_carry_utc_offset(self, test_client, register_user):
        """Rows read back from the store serialize with an offset like fresh ones."""
        user_id, token = await register_user()
        post = (await test_client.post(
            "/posts", json=post_body(user_id), headers=bearer(token)
        )).json()

        updated = await test_client.put(
            f"/posts/{post['id']}", json={"title": "Later", "userId": user_id}, headers=bearer(token)
        )
        listed = (await test_client.get("/posts")).json()[0]

        new = updated.json()["updatedPost"]
        for stamp in (new["created_at"], new["updated_at"], listed["created_at"], listed["updated_at"]):
            assert stamp.endswith(("Z", "+00:00")), stamp


class TestIdBounds:

    @pytest.mark.asyncio
    async def test_out_of_range_ids_are_bad_requests(self, test_client, test_app, register_user):
        user_id, token = await register_user()

        listing = await test_client.get(f"/posts/{OUT_OF_RANGE_ID}")
        update = await test_client.put(
            f"/posts/{OUT_OF_RANGE_ID}", json={"title": "Nope", "userId": user_id}, headers=bearer(token)
        )
        delete = await test_client.request(
            "DELETE", f"/posts/{OUT_OF_RANGE_ID}", json={"userId": user_id}, headers=bearer(token)
        )

        for response in (listing, update, delete):
            assert response.status_code == 400
            assert response.json()["error"] == "validation_error"
        assert test_app.state.engine.pool.checkedout() == 0

    @pytest.mark.asyncio
    async def test_zero_id_is_bad_request(self, test_client):
        response = await test_client.get("/posts/0")
        assert response.status_code == 400


class TestTransactionTiming:

    @pytest.mark.asyncio
    async def test_commit_happens_before_response_starts(self, test_app, monkeypatch):
        events = []
        original_commit = AsyncSession.commit

        async def recording_commit(session):
            events.append("commit")
            await original_commit(session)

        monkeypatch.setattr(AsyncSession, "commit", recording_commit)

        async def recording_app(scope, receive, send):
            async def record(message):
                if message["type"] == "http.response.start":
                    events.append(f"response.start {message['status']}")
                await send(message)

            await test_app(scope, receive, record)

        transport = ASGITransport(app=recording_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/auth/signup", json={"username": "alice", "password": "pw1"})

        assert response.status_code == 201
        assert events == ["commit", "response.start 201"]

    @pytest.mark.asyncio
    async def test_failed_commit_is_reported_not_acknowledged(self, test_client, test_app, monkeypatch):
        async def failing_commit(session):
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(AsyncSession, "commit", failing_commit)

        response = await test_client.post("/auth/signup", json={"username": "alice", "password": "pw1"})

        assert response.status_code == 500
        assert response.json()["error"] == "server_error"
        assert "locked" not in response.text
        monkeypatch.undo()
        assert await count_rows(test_app, User) == 0
        assert test_app.state.engine.pool.checkedout() == 0


# ══════════════════════════════════════════════════════════════════════════
# Server errors and connection release
# ══════════════════════════════════════════════════════════════════════════


class TestServerErrors:

    @pytest.mark.asyncio
    async def test_query_failure_is_generic_500(self, test_client, test_app, monkeypatch):
        async def failing_execute(session, *args, **kwargs):
            raise OperationalError("SELECT posts.id", {}, Exception("disk I/O error at /var/lib/db"))

        monkeypatch.setattr(AsyncSession, "execute", failing_execute)

        response = await test_client.get("/posts", headers={"X-Request-ID": "trace-500"})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "server_error"
        assert body["request_id"] == "trace-500"
        assert "disk I/O" not in response.text
        assert "SELECT" not in response.text
        assert test_app.state.engine.pool.checkedout() == 0

    @pytest.mark.asyncio
    async def test_failure_mid_transaction_releases_connection(
        self, test_client, test_app, register_user, monkeypatch
    ):
        """The user lookup holds a connection when the insert fails."""
        user_id, token = await register_user()

        async def failing_flush(session, objects=None):
            raise OperationalError("INSERT INTO posts", {}, Exception("disk full"))

        monkeypatch.setattr(AsyncSession, "flush", failing_flush)

        response = await test_client.post("/posts", json=post_body(user_id), headers=bearer(token))

        assert response.status_code == 500
        assert response.json()["message"] == "Could not create the post. Please try again."
        assert "disk full" not in response.text
        assert test_app.state.engine.pool.checkedout() == 0
        monkeypatch.undo()
        assert await count_rows(test_app, Post) == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic_500(self, test_client, test_app, monkeypatch):
        async def broken_listing(self, db):
            raise RuntimeError("internal invariant broken")

        monkeypatch.setattr(PostService, "list_posts", broken_listing)

        response = await test_client.get("/posts")

        assert response.status_code == 500
        assert response.json()["error"] == "internal_server_error"
        assert "invariant" not in response.text
        assert test_app.state.engine.pool.checkedout() == 0

    @pytest.mark.asyncio
    async def test_client_errors_release_connection(self, test_client, test_app, register_user):
        alice_id, alice_token = await register_user("alice", "pw1")
        bob_id, bob_token = await register_user("bob", "pw2")
        post = (await test_client.post(
            "/posts", json=post_body(alice_id), headers=bearer(alice_token)
        )).json()

        mismatch = await test_client.put(
            f"/posts/{post['id']}", json={"title": "X", "userId": alice_id}, headers=bearer(bob_token)
        )
        forbidden = await test_client.put(
            f"/posts/{post['id']}", json={"title": "X", "userId": bob_id}, headers=bearer(bob_token)
        )

        assert [mismatch.status_code, forbidden.status_code] == [400, 403]
        assert test_app.state.engine.pool.checkedout() == 0
