"""
Kids endpoint tests: polymorphic create body, per-index validation, and
parent scoping.
"""
from uuid import uuid4

from core.database import SessionLocal
from core.exceptions import ErrorCode
from models import Kid, User
from api_helpers import auth_headers, create_user


def _kid(**overrides):
    kid = {
        "name": "Mia",
        "gender": "girl",
        "age": 9,
        "location": "Springfield",
        "is_in_sports": True,
        "preferred_training_style": "group",
    }
    kid.update(overrides)
    return kid


def _kid_count(parent_id) -> int:
    db = SessionLocal()
    try:
        return db.query(Kid).filter(Kid.parent_id == parent_id).count()
    finally:
        db.close()


class TestCreate:
    def test_single_object_returns_the_kid(self, client):
        parent = create_user("client", kids_data_completed=False)
        response = client.post("/kids", json=_kid(), headers=auth_headers(parent))

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["name"] == "Mia"
        assert data["parent_id"] == str(parent.id)

        db = SessionLocal()
        try:
            assert db.get(User, parent.id).kids_data_completed is True
        finally:
            db.close()

    def test_list_body_returns_summary(self, client, client_user):
        response = client.post(
            "/kids",
            json=[_kid(), _kid(name="Leo", gender="boy", age=12)],
            headers=auth_headers(client_user),
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["count"] == 2
        assert [k["name"] for k in data["created"]] == ["Mia", "Leo"]

    def test_wrapped_body_returns_summary(self, client, client_user):
        response = client.post("/kids", json={"kids": [_kid()]}, headers=auth_headers(client_user))
        assert response.status_code == 201
        assert response.json()["data"]["count"] == 1

    def test_more_than_ten_is_rejected(self, client, client_user):
        response = client.post("/kids", json=[_kid() for _ in range(11)], headers=auth_headers(client_user))
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == ErrorCode.VALIDATION_ERROR
        assert error["details"]["max"] == 10
        assert _kid_count(client_user.id) == 0

    def test_exactly_ten_is_accepted(self, client, client_user):
        response = client.post("/kids", json=[_kid() for _ in range(10)], headers=auth_headers(client_user))
        assert response.status_code == 201
        assert response.json()["data"]["count"] == 10

    def test_empty_list_is_rejected(self, client, client_user):
        response = client.post("/kids", json=[], headers=auth_headers(client_user))
        assert response.status_code == 422

    def test_invalid_entry_reports_its_index_and_creates_nothing(self, client, client_user):
        response = client.post(
            "/kids",
            json=[_kid(), _kid(age=25), _kid(gender="other")],
            headers=auth_headers(client_user),
        )
        assert response.status_code == 422
        details = response.json()["error"]["details"]
        assert {d["index"] for d in details} == {1, 2}
        assert any(d["loc"] == ["age"] for d in details)
        assert _kid_count(client_user.id) == 0

    def test_missing_fields(self, client, client_user):
        response = client.post("/kids", json={"name": "Al"}, headers=auth_headers(client_user))
        assert response.status_code == 422
        locs = {tuple(d["loc"]) for d in response.json()["error"]["details"]}
        assert ("gender",) in locs
        assert ("age",) in locs

    def test_requires_auth(self, client):
        assert client.post("/kids", json=_kid()).status_code == 401


class TestScoping:
    def test_list_defaults_to_own_kids(self, client, client_user):
        other = create_user("client")
        client.post("/kids", json=_kid(), headers=auth_headers(client_user))
        client.post("/kids", json=_kid(name="Other"), headers=auth_headers(other))

        response = client.get("/kids", headers=auth_headers(client_user))
        assert [k["name"] for k in response.json()["data"]] == ["Mia"]

    def test_parent_id_of_someone_else_is_forbidden(self, client, client_user):
        other = create_user("client")
        response = client.get("/kids", params={"parentId": str(other.id)}, headers=auth_headers(client_user))
        assert response.status_code == 403
        assert response.json()["error"]["code"] == ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS

    def test_staff_may_list_any_parent(self, client, client_user, team_user):
        client.post("/kids", json=_kid(), headers=auth_headers(client_user))
        response = client.get("/kids", params={"parentId": str(client_user.id)}, headers=auth_headers(team_user))
        assert response.status_code == 200
        assert len(response.json()["data"]) == 1

    def test_foreign_kid_looks_missing(self, client, client_user):
        other = create_user("client")
        created = client.post("/kids", json=_kid(), headers=auth_headers(other)).json()["data"]
        headers = auth_headers(client_user)

        assert client.get(f"/kids/{created['id']}", headers=headers).status_code == 404
        assert client.patch(f"/kids/{created['id']}", json={"age": 10}, headers=headers).status_code == 404
        assert client.delete(f"/kids/{created['id']}", headers=headers).status_code == 404
        assert _kid_count(other.id) == 1

    def test_update_and_delete_own_kid(self, client, client_user):
        headers = auth_headers(client_user)
        created = client.post("/kids", json=_kid(), headers=headers).json()["data"]

        patched = client.patch(f"/kids/{created['id']}", json={"age": 10}, headers=headers)
        assert patched.status_code == 200
        assert patched.json()["data"]["age"] == 10
        assert patched.json()["data"]["name"] == "Mia"

        assert client.delete(f"/kids/{created['id']}", headers=headers).status_code == 200
        assert client.get(f"/kids/{created['id']}", headers=headers).status_code == 404

    def test_unknown_kid(self, client, client_user):
        response = client.get(f"/kids/{uuid4()}", headers=auth_headers(client_user))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == ErrorCode.RESOURCE_NOT_FOUND
