from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from backend.app import models
from backend.app.security import (
    Identity,
    _encode_jwt,
    _load_jwt_key,
    create_access_token,
    generate_password_hash,
    get_current_identity,
    verify_password,
)


def test_password_hash_round_trip():
    stored = generate_password_hash("Sup3r-Secret", iterations=1_000)

    assert stored.startswith("1000$")
    assert verify_password("Sup3r-Secret", stored)
    assert not verify_password("wrong-password", stored)
    assert generate_password_hash("Sup3r-Secret", iterations=1_000) != stored


def test_empty_password_is_rejected():
    with pytest.raises(ValueError):
        generate_password_hash("")


def test_access_token_carries_identity():
    identity = Identity(user_id=7, role=models.UserRole.ADMIN)

    decoded = get_current_identity(create_access_token(identity))

    assert decoded == identity
    assert decoded.is_admin


def test_tampered_token_is_rejected():
    token = create_access_token(Identity(user_id=7, role=models.UserRole.USER))
    header, payload, signature = token.split(".")

    with pytest.raises(HTTPException) as excinfo:
        get_current_identity(f"{header}.{payload}.{signature[::-1]}")

    assert excinfo.value.status_code == 401


def test_expired_token_is_rejected(client):
    expired = datetime.now(timezone.utc) - timedelta(minutes=5)
    token = _encode_jwt(
        {"sub": "7", "role": "user", "exp": int(expired.timestamp())}, _load_jwt_key()
    )

    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Token expired"


def test_login_returns_usable_token(client, stylist, user_password):
    response = client.post(
        "/auth/token", json={"username": "Maria", "password": user_password}
    )
    assert response.status_code == 200, response.text
    token = response.json()["access_token"]
    assert response.json()["token_type"] == "bearer"

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json() == {"user_id": stylist.id, "role": "user"}


def test_login_rejects_bad_credentials(client, stylist, user_password):
    wrong_password = client.post(
        "/auth/token", json={"username": "maria", "password": "not-the-password"}
    )
    unknown_user = client.post(
        "/auth/token", json={"username": "nobody", "password": user_password}
    )

    assert wrong_password.status_code == 401
    assert unknown_user.status_code == 401


def test_admin_registers_stylists(client, admin_headers, stylist_headers):
    payload = {"username": "Lucia", "stylist_name": "Lucia", "password": "Lucia-Pass-1"}
    headers = admin_headers

    assert client.post("/admin/users", json=payload, headers=stylist_headers).status_code == 403

    created = client.post("/admin/users", json=payload, headers=headers)
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["username"] == "lucia"
    assert body["role"] == "user"
    assert "password" not in body
    assert "password_hash" not in body

    duplicate = client.post("/admin/users", json=payload, headers=headers)
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"]["rule"] == "duplicate_username"

    listing = client.get("/admin/users", params={"role": "user"}, headers=headers)
    assert [user["username"] for user in listing.json()] == ["lucia", "maria"]

    login = client.post("/auth/token", json={"username": "lucia", "password": "Lucia-Pass-1"})
    assert login.status_code == 200
