"""
Auth flow tests: registration, login with lockout, refresh rotation, logout,
password change and the kids-data onboarding gate.

Run with: pytest tests/test_auth.py -v
"""
import threading

import pytest

from core.database import SessionLocal
from core.exceptions import ErrorCode, InvalidTokenError
from core.security import hash_refresh_token
from models import RefreshToken, User
from services import auth_service
from api_helpers import DEFAULT_PASSWORD, auth_headers, create_user


def _login(client, email, password=DEFAULT_PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


def _tokens(response):
    return response.json()["data"]["tokens"]


class TestRegister:
    def test_register_returns_tokens_and_user(self, client):
        response = client.post(
            "/auth/register",
            json={"email": "New.Person@Example.com", "password": DEFAULT_PASSWORD, "name": "New Person"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["ok"] is True
        data = body["data"]
        assert data["user"]["email"] == "new.person@example.com"
        assert data["user"]["role"] == "client"
        assert data["tokens"]["token_type"] == "bearer"
        assert len(data["tokens"]["refresh_token"]) == 64
        assert data["tokens"]["expires_in"] == 15 * 60

    def test_register_duplicate_email_is_case_insensitive(self, client):
        create_user("client", email="taken@example.com")
        response = client.post(
            "/auth/register",
            json={"email": "TAKEN@example.com", "password": DEFAULT_PASSWORD, "name": "Someone"},
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == ErrorCode.RESOURCE_ALREADY_EXISTS

    def test_register_rejects_weak_password(self, client):
        response = client.post(
            "/auth/register",
            json={"email": "weak@example.com", "password": "password", "name": "Weak"},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == ErrorCode.VALIDATION_ERROR

    def test_register_cannot_self_assign_admin(self, client):
        response = client.post(
            "/auth/register",
            json={"email": "sneaky@example.com", "password": DEFAULT_PASSWORD, "name": "Sneaky", "role": "admin"},
        )
        assert response.status_code == 422

    def test_refresh_token_is_stored_hashed(self, client):
        response = client.post(
            "/auth/register",
            json={"email": "hash@example.com", "password": DEFAULT_PASSWORD, "name": "Hash", "role": "coach"},
        )
        raw = _tokens(response)["refresh_token"]
        db = SessionLocal()
        try:
            row = db.query(RefreshToken).one()
            assert row.token_hash == hash_refresh_token(raw)
            assert row.token_hash != raw
        finally:
            db.close()


class TestLogin:
    def test_login_success_stamps_last_login(self, client, coach_user):
        response = _login(client, coach_user.email)
        assert response.status_code == 200
        assert response.json()["data"]["user"]["id"] == str(coach_user.id)

        db = SessionLocal()
        try:
            assert db.get(User, coach_user.id).last_login_at is not None
        finally:
            db.close()

    def test_login_unknown_email(self, client):
        response = _login(client, "nobody@example.com")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == ErrorCode.AUTH_INVALID_CREDENTIALS

    def test_login_wrong_password_counts_failure(self, client, coach_user):
        response = _login(client, coach_user.email, "Wr0ngPassword")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == ErrorCode.AUTH_INVALID_CREDENTIALS

        db = SessionLocal()
        try:
            assert db.get(User, coach_user.id).failed_login_attempts == 1
        finally:
            db.close()

    def test_login_is_case_insensitive_on_email(self, client, coach_user):
        assert _login(client, coach_user.email.upper()).status_code == 200

    def test_suspended_account_cannot_log_in(self, client):
        user = create_user("coach", status="suspended")
        response = _login(client, user.email)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == ErrorCode.AUTH_ACCOUNT_INACTIVE


class TestLockout:
    def test_sixth_attempt_is_locked_even_with_correct_password(self, client, coach_user):
        for _ in range(5):
            assert _login(client, coach_user.email, "Wr0ngPassword").status_code == 401

        response = _login(client, coach_user.email)
        assert response.status_code == 401
        assert response.json()["error"]["code"] == ErrorCode.AUTH_ACCOUNT_LOCKED
        assert "Retry-After" in response.headers

    def test_four_failures_do_not_lock(self, client, coach_user):
        for _ in range(4):
            _login(client, coach_user.email, "Wr0ngPassword")
        assert _login(client, coach_user.email).status_code == 200

    def test_login_succeeds_after_lockout_window_and_resets_counter(self, client, coach_user, frozen_clock):
        for _ in range(5):
            _login(client, coach_user.email, "Wr0ngPassword")
        assert _login(client, coach_user.email).status_code == 401

        frozen_clock(minutes=31)
        response = _login(client, coach_user.email)
        assert response.status_code == 200

        db = SessionLocal()
        try:
            user = db.get(User, coach_user.id)
            assert user.failed_login_attempts == 0
            assert user.locked_until is None
        finally:
            db.close()

    def test_success_before_threshold_resets_counter(self, client, coach_user):
        for _ in range(3):
            _login(client, coach_user.email, "Wr0ngPassword")
        assert _login(client, coach_user.email).status_code == 200
        for _ in range(4):
            _login(client, coach_user.email, "Wr0ngPassword")
        assert _login(client, coach_user.email).status_code == 200


class TestRefresh:
    def test_refresh_rotates_token(self, client, coach_user):
        first = _tokens(_login(client, coach_user.email))

        response = client.post("/auth/refresh", json={"refresh_token": first["refresh_token"]})
        assert response.status_code == 200
        second = _tokens(response)
        assert second["refresh_token"] != first["refresh_token"]

        # The presented token is spent
        replay = client.post("/auth/refresh", json={"refresh_token": first["refresh_token"]})
        assert replay.status_code == 401
        assert replay.json()["error"]["code"] == ErrorCode.AUTH_TOKEN_INVALID

        # The new one works
        assert client.post("/auth/refresh", json={"refresh_token": second["refresh_token"]}).status_code == 200

    def test_refresh_with_unknown_token(self, client):
        response = client.post("/auth/refresh", json={"refresh_token": "f" * 64})
        assert response.status_code == 401

    def test_refresh_with_expired_token(self, client, coach_user, frozen_clock):
        tokens = _tokens(_login(client, coach_user.email))
        frozen_clock(days=8)
        response = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401

    def test_suspended_account_cannot_refresh(self, client, coach_user):
        tokens = _tokens(_login(client, coach_user.email))
        db = SessionLocal()
        try:
            db.get(User, coach_user.id).status = "suspended"
            db.commit()
        finally:
            db.close()

        response = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 403
        assert response.json()["error"]["code"] == ErrorCode.AUTH_ACCOUNT_INACTIVE

        db = SessionLocal()
        try:
            # No new pair was minted
            assert db.query(RefreshToken).filter(RefreshToken.user_id == coach_user.id).count() == 1
        finally:
            db.close()

    def test_staff_suspension_revokes_refresh_tokens(self, client, coach_user, team_user):
        tokens = _tokens(_login(client, coach_user.email))

        response = client.patch(
            f"/users/{coach_user.id}",
            json={"status": "suspended"},
            headers=auth_headers(team_user),
        )
        assert response.status_code == 200

        db = SessionLocal()
        try:
            row = db.query(RefreshToken).filter(
                RefreshToken.token_hash == hash_refresh_token(tokens["refresh_token"])
            ).one()
            assert row.is_revoked is True
        finally:
            db.close()

        refreshed = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert refreshed.status_code == 401

    def test_renaming_a_user_keeps_their_tokens(self, client, coach_user, team_user):
        tokens = _tokens(_login(client, coach_user.email))
        client.patch(f"/users/{coach_user.id}", json={"name": "Renamed"}, headers=auth_headers(team_user))
        assert client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 200

    def test_concurrent_refresh_exactly_one_wins(self, coach_user):
        db = SessionLocal()
        try:
            raw = auth_service.issue_tokens(db, db.get(User, coach_user.id)).refresh_token
            db.commit()
        finally:
            db.close()

        barrier = threading.Barrier(2)
        outcomes = []

        def redeem():
            session = SessionLocal()
            try:
                barrier.wait()
                auth_service.refresh(session, raw)
                session.commit()
                outcomes.append("ok")
            except InvalidTokenError:
                session.rollback()
                outcomes.append("rejected")
            finally:
                session.close()

        threads = [threading.Thread(target=redeem) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert sorted(outcomes) == ["ok", "rejected"]

        db = SessionLocal()
        try:
            # One revoked original plus exactly one successor
            assert db.query(RefreshToken).filter(RefreshToken.user_id == coach_user.id).count() == 2
            assert db.query(RefreshToken).filter(RefreshToken.is_revoked.is_(False)).count() == 1
        finally:
            db.close()


class TestKidsDataGate:
    def test_client_without_kids_data_gets_428(self, client):
        user = create_user("client", kids_data_completed=False)
        tokens = _tokens(_login(client, user.email))

        response = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 428
        assert response.json()["error"]["code"] == ErrorCode.AUTH_KIDS_DATA_REQUIRED

    def test_gate_does_not_consume_the_token(self, client):
        user = create_user("client", kids_data_completed=False)
        tokens = _tokens(_login(client, user.email))
        assert client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 428

        kid = {
            "name": "Mia",
            "gender": "girl",
            "age": 9,
            "location": "Colombo",
            "is_in_sports": True,
            "preferred_training_style": "group",
        }
        headers = {"Authorization": f"Bearer {tokens['access_token']}"}
        assert client.post("/kids", json=kid, headers=headers).status_code == 201

        assert client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 200

    def test_coach_is_not_gated(self, client):
        user = create_user("coach", kids_data_completed=False)
        tokens = _tokens(_login(client, user.email))
        assert client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 200


class TestLogoutAndPasswordChange:
    def test_logout_revokes_refresh_token(self, client, coach_user):
        tokens = _tokens(_login(client, coach_user.email))
        headers = {"Authorization": f"Bearer {tokens['access_token']}"}

        response = client.post("/auth/logout", json={"refresh_token": tokens["refresh_token"]}, headers=headers)
        assert response.status_code == 200
        assert client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401

    def test_logout_with_unknown_token_is_noop(self, client, coach_user):
        response = client.post("/auth/logout", json={"refresh_token": "0" * 64}, headers=auth_headers(coach_user))
        assert response.status_code == 200

    def test_logout_requires_auth(self, client):
        assert client.post("/auth/logout", json={}).status_code == 401

    def test_change_password_revokes_every_session(self, client, coach_user):
        a = _tokens(_login(client, coach_user.email))
        b = _tokens(_login(client, coach_user.email))

        response = client.post(
            "/auth/change-password",
            json={"current_password": DEFAULT_PASSWORD, "new_password": "N3wPassw0rdXyz"},
            headers=auth_headers(coach_user),
        )
        assert response.status_code == 200

        for tokens in (a, b):
            assert client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401
        assert _login(client, coach_user.email).status_code == 401
        assert _login(client, coach_user.email, "N3wPassw0rdXyz").status_code == 200

    def test_change_password_with_wrong_current(self, client, coach_user):
        response = client.post(
            "/auth/change-password",
            json={"current_password": "Wr0ngPassword", "new_password": "N3wPassw0rdXyz"},
            headers=auth_headers(coach_user),
        )
        assert response.status_code == 401
        assert response.json()["error"]["code"] == ErrorCode.AUTH_INVALID_CREDENTIALS


class TestCurrentUser:
    def test_me(self, client, coach_user):
        response = client.get("/auth/me", headers=auth_headers(coach_user))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["email"] == coach_user.email
        assert "password_hash" not in data

    def test_missing_token(self, client):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == ErrorCode.AUTH_TOKEN_INVALID

    def test_garbage_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_expired_access_token(self, client, coach_user, frozen_clock):
        frozen_clock(minutes=-30)
        headers = auth_headers(coach_user)
        frozen_clock(minutes=30)
        response = client.get("/auth/me", headers=headers)
        assert response.status_code == 401
        assert response.json()["error"]["code"] == ErrorCode.AUTH_TOKEN_EXPIRED


@pytest.mark.parametrize("path", ["/auth/forgot-password"])
def test_forgot_password_does_not_reveal_accounts(client, coach_user, path):
    known = client.post(path, json={"email": coach_user.email})
    unknown = client.post(path, json={"email": "ghost@example.com"})
    assert known.status_code == unknown.status_code == 200
    assert known.json()["data"] == unknown.json()["data"]
