"""
Role guard tests.

The table in core.permissions is the single source of truth; these tests pin
a few of its entries and verify that the routes actually enforce it.
"""
import pytest

from core.permissions import ALL_ROLES, ROUTE_PERMISSIONS, STAFF, check_role
from routers import auth, calendar, clients, coaches, kids, sessions, team, users
from api_helpers import auth_headers, create_user

ROUTER_MODULES = (auth, users, clients, coaches, sessions, kids, team, calendar)


def test_check_role():
    assert check_role("admin", STAFF)
    assert not check_role("client", STAFF)
    # Operations missing from the table are open to any authenticated caller
    assert check_role("client", None)


def test_staff_roles_are_admin_and_team():
    assert STAFF == {"admin", "team"}
    assert ALL_ROLES == {"admin", "team", "coach", "client"}


def _guarded_operations(dependant):
    for dependency in dependant.dependencies:
        operation = getattr(dependency.call, "operation", None)
        if operation is not None:
            yield operation
        yield from _guarded_operations(dependency)


def test_every_table_entry_is_routed():
    """A typo in an operation name would silently open the route."""
    routed = {
        operation
        for module in ROUTER_MODULES
        for route in module.router.routes
        for operation in _guarded_operations(route.dependant)
    }

    assert set(ROUTE_PERMISSIONS) <= routed
    for operation, allowed in ROUTE_PERMISSIONS.items():
        assert allowed <= ALL_ROLES, operation


@pytest.mark.parametrize(
    "method,path,role",
    [
        ("get", "/users", "client"),
        ("get", "/users", "coach"),
        ("post", "/clients", "coach"),
        ("delete", "/clients/00000000-0000-0000-0000-000000000000", "client"),
        ("get", "/clients", "client"),
        ("post", "/coaches", "client"),
        ("get", "/coaches", "coach"),
        ("get", "/coaches/my-profile", "client"),
        ("get", "/clients/my-profile", "coach"),
        ("get", "/sessions/stats", "client"),
        ("post", "/team/assign-coach", "coach"),
        ("post", "/calendar/sync?userId=00000000-0000-0000-0000-000000000000", "client"),
        ("get", "/calendar/auth-url", "client"),
    ],
)
def test_role_guard_rejects(client, method, path, role):
    user = create_user(role)
    kwargs = {"headers": auth_headers(user)}
    if method == "post":
        kwargs["json"] = {}
    response = getattr(client, method)(path, **kwargs)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "AUTH_INSUFFICIENT_PERMISSIONS"


@pytest.mark.parametrize("path", ["/users", "/clients", "/coaches", "/sessions", "/kids"])
def test_routes_require_authentication(client, path):
    response = client.get(path)
    assert response.status_code == 401


def test_admin_lists_users(client, admin_user, client_user):
    response = client.get("/users", params={"role": "client"}, headers=auth_headers(admin_user))
    assert response.status_code == 200
    body = response.json()
    assert [u["id"] for u in body["data"]] == [str(client_user.id)]
    assert "password_hash" not in body["data"][0]
    assert body["meta"]["pagination"]["total"] == 1


def test_team_updates_user_status(client, team_user, client_user):
    response = client.patch(
        f"/users/{client_user.id}",
        json={"status": "suspended"},
        headers=auth_headers(team_user),
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "suspended"

    # A suspended account loses API access immediately
    assert client.get("/auth/me", headers=auth_headers(client_user)).status_code == 403
