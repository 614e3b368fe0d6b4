import uuid
from dataclasses import dataclass, field
from datetime import datetime

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from admin_gate.admin.dependencies import get_admin_user_service
from admin_gate.auth.session_gate import (
    UNAUTHENTICATED_STATE,
    AuthErrorReason,
    AuthState,
    AuthStatus,
)
from admin_gate.config import settings
from admin_gate.dependencies import get_auth_collaborator, get_auth_state
from admin_gate.main import app
from admin_gate.schemas.auth import AuthSession
from admin_gate.services.admin.user_service import AdminUserService


@dataclass
class FakeAdminUser:
    email: str
    role: str
    is_active: bool = True
    name: str | None = None
    last_login: datetime | None = None
    created_by: uuid.UUID | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)


class FakeAdminUserRepo:
    def __init__(self, users: list[FakeAdminUser]) -> None:
        self.users = {user.id: user for user in users}

    async def get_by_email(self, email: str) -> FakeAdminUser | None:
        return next((u for u in self.users.values() if u.email == email.lower()), None)

    async def get_by_id(self, user_id: uuid.UUID) -> FakeAdminUser | None:
        return self.users.get(user_id)

    async def list_all(self, include_inactive: bool = True) -> list[FakeAdminUser]:
        return list(self.users.values())

    async def create(self, email, role, name=None, created_by=None) -> FakeAdminUser:
        user = FakeAdminUser(email=email.lower(), role=role, name=name, created_by=created_by)
        self.users[user.id] = user
        return user

    async def update(self, admin_user: FakeAdminUser) -> FakeAdminUser:
        return admin_user

    async def delete(self, admin_user: FakeAdminUser) -> None:
        del self.users[admin_user.id]

    async def commit(self) -> None:
        pass

    async def rollback(self) -> None:
        pass


class FakeCollaborator:
    def __init__(self, profiles: list[FakeAdminUser]) -> None:
        self.session: AuthSession | None = None
        self.profiles = {profile.email: profile for profile in profiles}
        self.listeners: list = []
        self.signed_out = False

    async def get_current_session(self) -> AuthSession | None:
        return self.session

    def on_auth_change(self, callback):
        self.listeners.append(callback)
        return lambda: self.listeners.remove(callback)

    async def get_profile_by_email(self, email: str) -> FakeAdminUser | None:
        return self.profiles.get(email)

    async def stamp_last_login(self, email: str) -> None:
        pass

    async def sign_in(self, email: str, password: str) -> AuthSession:
        self.session = AuthSession(access_token="access-1", user_id="user-1", email=email)
        for listener in list(self.listeners):
            listener(self.session)
        return self.session

    async def sign_out(self) -> None:
        self.signed_out = True
        self.session = None
        for listener in list(self.listeners):
            listener(None)


def _authenticated(profile: FakeAdminUser) -> AuthState:
    session = AuthSession(access_token="access-1", user_id="user-1", email=profile.email)
    return AuthState(status=AuthStatus.AUTHENTICATED, session=session, profile=profile)


ROOT = FakeAdminUser(email="root@example.com", role="super_admin")
ADMIN = FakeAdminUser(email="admin@example.com", role="admin")
EDITOR = FakeAdminUser(email="editor@example.com", role="editor")


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def _as(state: AuthState) -> None:
    app.dependency_overrides[get_auth_state] = lambda: state


class FailingInviter:
    async def invite_user(self, email: str) -> str:
        raise RuntimeError("mail provider down")


def _with_users(*users: FakeAdminUser, inviter=None) -> FakeAdminUserRepo:
    repo = FakeAdminUserRepo(list(users))
    app.dependency_overrides[get_admin_user_service] = lambda: AdminUserService(
        repo, inviter=inviter
    )
    return repo


def test_healthcheck(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_unknown_route_uses_error_envelope(client: TestClient) -> None:
    response = client.get("/nowhere")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"]["code"] == "NOT_FOUND"
    assert response.json()["error"]["message"] == "Resource not found"


def test_cors_preflight_allows_delete(client: TestClient) -> None:
    origin = settings.allowed_origins[0]
    response = client.options(
        f"/admin/users/{uuid.uuid4()}",
        headers={"Origin": origin, "Access-Control-Request-Method": "DELETE"},
    )
    assert response.status_code == status.HTTP_200_OK
    assert "DELETE" in response.headers["access-control-allow-methods"]


def test_cors_preflight_for_allowed_origin(client: TestClient) -> None:
    origin = settings.allowed_origins[0]
    response = client.options(
        "/auth/sign-in",
        headers={
            "Origin": origin,
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type",
        },
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.headers["access-control-allow-origin"] == origin
    assert response.headers["access-control-allow-credentials"] == "true"


class TestAuthState:
    def test_unauthenticated(self, client: TestClient) -> None:
        _as(UNAUTHENTICATED_STATE)
        response = client.get("/auth/state")
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["status"] == "unauthenticated"
        assert body["navigation"] == []

    def test_authenticated_editor(self, client: TestClient) -> None:
        _as(_authenticated(EDITOR))
        body = client.get("/auth/state").json()
        assert body["status"] == "authenticated"
        assert body["profile"]["email"] == EDITOR.email
        assert [item["page"] for item in body["navigation"]] == ["dashboard", "blog", "media", "help"]

    def test_not_registered_error_is_reported(self, client: TestClient) -> None:
        _as(AuthState.failed(AuthErrorReason.NOT_REGISTERED))
        body = client.get("/auth/state").json()
        assert body["status"] == "error"
        assert body["reason"] == "not_registered"
        assert "not registered" in body["message"]

    def test_invalid_bearer_token(self, client: TestClient) -> None:
        response = client.get("/auth/state", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"]["code"] == "AUTH_ERROR"


class TestSignInOut:
    def test_sign_in_resolves_profile(self, client: TestClient) -> None:
        collaborator = FakeCollaborator([EDITOR])
        app.dependency_overrides[get_auth_collaborator] = lambda: collaborator

        response = client.post(
            "/auth/sign-in", json={"email": EDITOR.email, "password": "pw"}
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["session"]["access_token"] == "access-1"
        assert body["state"]["status"] == "authenticated"
        assert body["state"]["profile"]["role"] == "editor"
        assert collaborator.listeners == []

    def test_sign_in_without_profile(self, client: TestClient) -> None:
        app.dependency_overrides[get_auth_collaborator] = lambda: FakeCollaborator([])

        body = client.post(
            "/auth/sign-in", json={"email": "stranger@example.com", "password": "pw"}
        ).json()

        assert body["state"]["status"] == "error"
        assert body["state"]["reason"] == "not_registered"

    def test_sign_out_redirects_to_entry(self, client: TestClient) -> None:
        collaborator = FakeCollaborator([EDITOR])
        app.dependency_overrides[get_auth_collaborator] = lambda: collaborator

        response = client.post("/auth/sign-out")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"redirect_to": settings.admin_entry_path}
        assert collaborator.signed_out is True


class TestGateErrors:
    def test_unauthenticated_is_401(self, client: TestClient) -> None:
        _as(UNAUTHENTICATED_STATE)
        response = client.get("/admin/navigation")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"]["code"] == "AUTH_ERROR"

    def test_not_registered_is_403(self, client: TestClient) -> None:
        _as(AuthState.failed(AuthErrorReason.NOT_REGISTERED))
        response = client.get("/admin/navigation")
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"]["code"] == "ACCOUNT_NOT_REGISTERED"

    def test_deactivated_is_403(self, client: TestClient) -> None:
        _as(AuthState.failed(AuthErrorReason.DEACTIVATED))
        response = client.get("/admin/navigation")
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"]["code"] == "ACCOUNT_DEACTIVATED"

    def test_timeout_is_503(self, client: TestClient) -> None:
        _as(AuthState.failed(AuthErrorReason.TIMEOUT))
        response = client.get("/admin/navigation")
        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        error = response.json()["error"]
        assert error["code"] == "AUTH_UNAVAILABLE"
        assert error["details"] == {"reason": "timeout"}


class TestAdminPages:
    def test_navigation(self, client: TestClient) -> None:
        _as(_authenticated(ADMIN))
        items = client.get("/admin/navigation").json()
        assert "users" not in [item["page"] for item in items]
        assert items[0] == {"path": "/admin", "label": "Dashboard", "icon": "dashboard", "page": "dashboard"}

    @pytest.mark.parametrize(
        "path,page,access",
        [
            ("/admin/users", "users", "restricted"),
            ("/admin/blog/edit/123", "blog", "granted"),
            ("/admin/unknown-path", None, "granted"),
        ],
    )
    def test_page_access(self, client: TestClient, path: str, page: str | None, access: str) -> None:
        _as(_authenticated(EDITOR))
        response = client.get("/admin/access", params={"path": path})
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"path": path, "page": page, "access": access}

    def test_assignable_roles(self, client: TestClient) -> None:
        _as(_authenticated(ADMIN))
        roles = client.get("/admin/roles/assignable").json()
        assert [role["role"] for role in roles] == ["editor", "viewer"]
        assert all(role["label"] and role["description"] for role in roles)


class TestUsersPage:
    def test_editor_is_restricted(self, client: TestClient) -> None:
        _as(_authenticated(EDITOR))
        _with_users(EDITOR)
        response = client.get("/admin/users")
        assert response.status_code == status.HTTP_403_FORBIDDEN
        error = response.json()["error"]
        assert error["code"] == "PERMISSION_DENIED"
        assert error["details"] == {"page": "users"}

    def test_list_users(self, client: TestClient) -> None:
        _as(_authenticated(ROOT))
        _with_users(ROOT, EDITOR)
        response = client.get("/admin/users")
        assert response.status_code == status.HTTP_200_OK
        assert {user["email"] for user in response.json()} == {ROOT.email, EDITOR.email}

    def test_create_user(self, client: TestClient) -> None:
        _as(_authenticated(ROOT))
        repo = _with_users(ROOT)
        response = client.post(
            "/admin/users", json={"email": "New@Example.com", "role": "editor", "name": "New"}
        )
        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["user"]["email"] == "new@example.com"
        assert body["user"]["role"] == "editor"
        assert body["warning"] is None
        assert len(repo.users) == 2

    def test_create_reports_failed_invite(self, client: TestClient) -> None:
        _as(_authenticated(ROOT))
        repo = _with_users(ROOT, inviter=FailingInviter())
        response = client.post("/admin/users", json={"email": "new@example.com", "role": "viewer"})
        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["invite"] is None
        assert "invite email could not be sent" in body["warning"]
        assert len(repo.users) == 2

    def test_create_rejects_unknown_role(self, client: TestClient) -> None:
        _as(_authenticated(ROOT))
        _with_users(ROOT)
        response = client.post("/admin/users", json={"email": "a@example.com", "role": "owner"})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_create_duplicate_conflicts(self, client: TestClient) -> None:
        _as(_authenticated(ROOT))
        _with_users(ROOT, EDITOR)
        response = client.post("/admin/users", json={"email": EDITOR.email, "role": "viewer"})
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_cannot_deactivate_self(self, client: TestClient) -> None:
        _as(_authenticated(ROOT))
        _with_users(ROOT)
        response = client.patch(f"/admin/users/{ROOT.id}", json={"is_active": False})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_update_unknown_user(self, client: TestClient) -> None:
        _as(_authenticated(ROOT))
        _with_users(ROOT)
        response = client.patch(f"/admin/users/{uuid.uuid4()}", json={"name": "Ghost"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_delete_user(self, client: TestClient) -> None:
        _as(_authenticated(ROOT))
        repo = _with_users(ROOT, EDITOR)
        response = client.delete(f"/admin/users/{EDITOR.id}")
        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert response.content == b""
        assert EDITOR.id not in repo.users

    def test_cannot_delete_self(self, client: TestClient) -> None:
        _as(_authenticated(ROOT))
        repo = _with_users(ROOT)
        response = client.delete(f"/admin/users/{ROOT.id}")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert ROOT.id in repo.users

    def test_admin_cannot_delete_users(self, client: TestClient) -> None:
        _as(_authenticated(ADMIN))
        repo = _with_users(ADMIN, EDITOR)
        response = client.delete(f"/admin/users/{EDITOR.id}")
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert EDITOR.id in repo.users

    def test_delete_unknown_user(self, client: TestClient) -> None:
        _as(_authenticated(ROOT))
        _with_users(ROOT)
        response = client.delete(f"/admin/users/{uuid.uuid4()}")
        assert response.status_code == status.HTTP_404_NOT_FOUND
