"""Tests for POST /api/auth/signup."""

import threading

import bcrypt
from sqlalchemy.exc import IntegrityError

import auth
from database import User

ALICE = {"username": "alice", "email": "alice@example.com", "password": "s3cret-pass"}


def _users(store, **filters):
    with store.acquire() as db:
        return db.query(User).filter_by(**filters).all()


class TestSignup:
    def test_creates_account(self, client):
        response = client.post("/api/auth/signup", json=ALICE)
        assert response.status_code == 201
        body = response.json()
        assert body["id"] > 0
        assert body["username"] == "alice"
        assert body["email"] == "alice@example.com"
        assert body["created_at"]

    def test_response_has_no_credentials(self, client, store):
        response = client.post("/api/auth/signup", json=ALICE)
        assert set(response.json()) == {"id", "username", "email", "created_at"}

        [user] = _users(store, username="alice")
        assert ALICE["password"] not in response.text
        assert user.password_hash not in response.text

    def test_password_is_stored_hashed(self, client, store):
        client.post("/api/auth/signup", json=ALICE)
        [user] = _users(store, username="alice")
        assert user.password_hash != ALICE["password"]
        assert bcrypt.checkpw(ALICE["password"].encode(), user.password_hash.encode())

    def test_duplicate_username_conflicts(self, client, store):
        assert client.post("/api/auth/signup", json=ALICE).status_code == 201

        response = client.post(
            "/api/auth/signup", json={**ALICE, "email": "other@example.com"}
        )
        assert response.status_code == 409
        assert response.json() == {"detail": "Username or email already exists"}
        assert len(_users(store, username="alice")) == 1

    def test_duplicate_email_conflicts(self, client, store):
        assert client.post("/api/auth/signup", json=ALICE).status_code == 201

        response = client.post("/api/auth/signup", json={**ALICE, "username": "bob"})
        assert response.status_code == 409
        assert _users(store, username="bob") == []
        assert len(_users(store, email="alice@example.com")) == 1

    def test_missing_field_is_rejected(self, client, store):
        response = client.post(
            "/api/auth/signup", json={"username": "alice", "password": "x"}
        )
        assert response.status_code == 400
        assert _users(store) == []

    def test_malformed_json_is_rejected(self, client, store):
        response = client.post(
            "/api/auth/signup",
            content="username=alice",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert _users(store) == []

    def test_password_over_bcrypt_limit_is_rejected(self, client, store):
        response = client.post("/api/auth/signup", json={**ALICE, "password": "x" * 100})
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid request body"}
        assert _users(store) == []

    def test_password_limit_counts_bytes(self, client, store):
        # 36 two-byte characters fill the 72 bytes exactly
        response = client.post("/api/auth/signup", json={**ALICE, "password": "é" * 36})
        assert response.status_code == 201

        response = client.post(
            "/api/auth/signup",
            json={"username": "bob", "email": "bob@example.com", "password": "é" * 37},
        )
        assert response.status_code == 400
        assert _users(store, username="bob") == []

    def test_concurrent_duplicates_leave_one_account(self, client, store):
        statuses = []
        lock = threading.Lock()

        def post():
            response = client.post("/api/auth/signup", json=ALICE)
            with lock:
                statuses.append(response.status_code)

        threads = [threading.Thread(target=post) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(statuses) == [201] + [409] * 7
        assert len(_users(store, username="alice")) == 1


class TestUniqueViolation:
    def test_postgres_sqlstate(self):
        class PgError(Exception):
            pgcode = "23505"

        assert auth.is_unique_violation(IntegrityError("INSERT", {}, PgError("dup")))

    def test_sqlite_message(self):
        orig = Exception("UNIQUE constraint failed: users.username")
        assert auth.is_unique_violation(IntegrityError("INSERT", {}, orig))

    def test_not_null_is_not_a_conflict(self):
        orig = Exception("NOT NULL constraint failed: users.email")
        assert not auth.is_unique_violation(IntegrityError("INSERT", {}, orig))
