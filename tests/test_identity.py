from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import SQLModel, create_engine

from app import main as app_main
from app.infra import db, events
from app.infra.auth import JWT_ALGORITHM, JWT_SECRET, create_access_token, decode_access_token


@pytest.fixture()
def identity_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "identity_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(events, "engine", test_engine)
    client = TestClient(app_main.app)
    yield client
    client.close()


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_user_registration_and_dev_token(identity_client: TestClient) -> None:
    created = identity_client.post(
        "/api/identity/users",
        json={"username": "alice", "full_name": "Alice Example", "role": "staff"},
    )
    assert created.status_code == 201
    user = created.json()
    assert user["role"] == "staff"
    assert user["is_active"] is True

    duplicate = identity_client.post("/api/identity/users", json={"username": "alice", "full_name": "Other"})
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "username_taken"

    token_resp = identity_client.post("/api/identity/dev-token", json={"user_id": user["id"]})
    assert token_resp.status_code == 200
    token = token_resp.json()["access_token"]
    claims = decode_access_token(token)
    assert claims["sub"] == user["id"]
    assert claims["role"] == "staff"

    me = identity_client.get(f"/api/identity/users/{user['id']}", headers=_auth_header(token))
    assert me.status_code == 200
    assert me.json()["username"] == "alice"


def test_inactive_user_cannot_get_token(identity_client: TestClient) -> None:
    admin = identity_client.post(
        "/api/identity/users",
        json={"username": "admin", "full_name": "Admin", "role": "admin"},
    ).json()
    member = identity_client.post("/api/identity/users", json={"username": "member", "full_name": "Member"}).json()
    token = identity_client.post("/api/identity/dev-token", json={"user_id": admin["id"]}).json()["access_token"]

    deactivated = identity_client.patch(
        f"/api/identity/users/{member['id']}",
        json={"is_active": False},
        headers=_auth_header(token),
    )
    assert deactivated.status_code == 200
    assert deactivated.json()["is_active"] is False

    refused = identity_client.post("/api/identity/dev-token", json={"user_id": member["id"]})
    assert refused.status_code == 409
    assert refused.json()["detail"]["code"] == "user_inactive"

    missing = identity_client.post("/api/identity/dev-token", json={"user_id": "missing"})
    assert missing.status_code == 404

    active = identity_client.get("/api/identity/users", params={"is_active": True}, headers=_auth_header(token))
    assert [item["username"] for item in active.json()] == ["admin"]


def test_protected_routes_require_token(identity_client: TestClient) -> None:
    assert identity_client.get("/api/identity/users").status_code == 401
    assert identity_client.get("/api/assets").status_code == 401
    bad = identity_client.get("/api/loans", headers=_auth_header("not-a-jwt"))
    assert bad.status_code == 401


def test_expired_or_foreign_tokens_are_refused(identity_client: TestClient) -> None:
    user = identity_client.post("/api/identity/users", json={"username": "bob", "full_name": "Bob"}).json()

    expired = create_access_token(user_id=user["id"], role="user", expires_minutes=-1)
    assert identity_client.get("/api/identity/users", headers=_auth_header(expired)).status_code == 401

    foreign = jwt.encode({"sub": user["id"], "iss": "someone-else"}, JWT_SECRET, algorithm=JWT_ALGORITHM)
    assert identity_client.get("/api/identity/users", headers=_auth_header(foreign)).status_code == 401

    valid = create_access_token(user_id=user["id"], role="user")
    assert identity_client.get("/api/identity/users", headers=_auth_header(valid)).status_code == 200
