"""
Calendar integration tests: placeholder connect/sync, token encryption at
rest, and the signed OAuth state carried by the consent URL.
"""
from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import pytest
from cryptography.fernet import Fernet

from core.database import SessionLocal
from models import CalendarAccount
from services.oauth_state import create_oauth_state, verify_oauth_state
from services.token_encryption import TokenEncryption, decrypt_token
from api_helpers import auth_headers, create_user


def _accounts(user_id):
    db = SessionLocal()
    try:
        return db.query(CalendarAccount).filter(CalendarAccount.user_id == user_id).all()
    finally:
        db.close()


class TestConnect:
    def test_connect_stores_encrypted_tokens(self, client, coach_user):
        response = client.post("/calendar/connect", json={}, headers=auth_headers(coach_user))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["provider"] == "google"
        assert data["calendar_id"] == "primary"
        assert data["is_active"] is True
        assert "access_token" not in data

        (account,) = _accounts(coach_user.id)
        assert account.access_token != "placeholder_token"
        assert decrypt_token(account.access_token) == "placeholder_token"
        assert decrypt_token(account.refresh_token) == "placeholder_refresh"

    def test_reconnect_reuses_the_account(self, client, coach_user):
        headers = auth_headers(coach_user)
        first = client.post("/calendar/connect", json={}, headers=headers).json()["data"]
        second = client.post("/calendar/connect", json={"calendar_id": "work"}, headers=headers).json()["data"]
        assert first["id"] == second["id"]
        assert second["calendar_id"] == "work"
        assert len(_accounts(coach_user.id)) == 1

    def test_unknown_provider_is_rejected(self, client, coach_user):
        response = client.post("/calendar/connect", json={"provider": "outlook"}, headers=auth_headers(coach_user))
        assert response.status_code == 422

    def test_clients_cannot_connect(self, client, client_user):
        assert client.post("/calendar/connect", json={}, headers=auth_headers(client_user)).status_code == 403


class TestSync:
    def test_sync_marks_active_accounts(self, client, coach_user, team_user):
        client.post("/calendar/connect", json={}, headers=auth_headers(coach_user))
        response = client.post(
            "/calendar/sync",
            params={"userId": str(coach_user.id)},
            headers=auth_headers(team_user),
        )
        assert response.status_code == 200
        assert response.json()["data"] == {"user_id": str(coach_user.id), "synced_accounts": 1}

        (account,) = _accounts(coach_user.id)
        assert "last_sync_at" in account.sync_state

    def test_sync_unknown_user(self, client, admin_user):
        response = client.post("/calendar/sync", params={"userId": str(uuid4())}, headers=auth_headers(admin_user))
        assert response.status_code == 404

    def test_sync_is_staff_only(self, client, coach_user):
        response = client.post(
            "/calendar/sync",
            params={"userId": str(coach_user.id)},
            headers=auth_headers(coach_user),
        )
        assert response.status_code == 403


class TestAuthUrl:
    def test_auth_url_carries_signed_state(self, client, coach_user):
        response = client.get("/calendar/auth-url", headers=auth_headers(coach_user))
        assert response.status_code == 200
        data = response.json()["data"]

        query = parse_qs(urlparse(data["auth_url"]).query)
        assert query["state"] == [data["state"]]
        assert query["access_type"] == ["offline"]

        payload = verify_oauth_state(data["state"])
        assert payload["sub"] == str(coach_user.id)
        assert payload["provider"] == "google"

    def test_tampered_state_is_rejected(self):
        state = create_oauth_state(str(uuid4()), "google")
        payload_b64, sig = state.split(".")
        assert verify_oauth_state(f"{payload_b64}x.{sig}") is None
        assert verify_oauth_state(f"{payload_b64}.{sig[:-2]}AA") is None
        assert verify_oauth_state("") is None
        assert verify_oauth_state("no-dot") is None

    def test_expired_state_is_rejected(self, frozen_clock):
        state = create_oauth_state(str(uuid4()), "google")
        assert verify_oauth_state(state, ttl_s=60) is not None
        frozen_clock(seconds=61)
        assert verify_oauth_state(state, ttl_s=60) is None


class TestTokenEncryption:
    def test_round_trip_with_explicit_key(self):
        enc = TokenEncryption(Fernet.generate_key().decode())
        assert enc.decrypt(enc.encrypt("secret")) == "secret"

    def test_foreign_ciphertext_decrypts_to_none(self):
        ciphertext = TokenEncryption(Fernet.generate_key().decode()).encrypt("secret")
        assert TokenEncryption(Fernet.generate_key().decode()).decrypt(ciphertext) is None

    def test_invalid_key(self):
        with pytest.raises(ValueError):
            TokenEncryption("not-a-fernet-key")
