import pytest

pytestmark = pytest.mark.anyio


async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_sign_up_returns_user_and_token(client, make_account):
    account = make_account()
    response = await client.post("/api/users", json=account)

    assert response.status_code == 201
    body = response.json()
    assert body["user"]["email"] == account["email"].lower()
    assert body["user"]["name"] == account["name"]
    assert "passwordHash" not in body["user"]
    assert body["tokenType"] == "bearer"
    assert body["accessToken"]


async def test_sign_up_twice_conflicts(client, signed_up):
    account, _, _ = signed_up
    response = await client.post("/api/users", json=account)
    assert response.status_code == 409
    assert response.json()["detail"] == "An account with this email already exists"


async def test_sign_up_validates_input(client, make_account):
    account = make_account()
    response = await client.post("/api/users", json={**account, "password": "123"})
    assert response.status_code == 422

    response = await client.post("/api/users", json={**account, "email": "not-an-email"})
    assert response.status_code == 422


async def test_login(client, signed_up):
    account, _, user = signed_up

    response = await client.post("/api/auth", json={"email": account["email"], "password": account["password"]})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == user["id"]

    response = await client.post("/api/auth", json={"email": account["email"], "password": "wrong-password"})
    assert response.status_code == 401


async def test_protected_routes_need_a_token(client):
    assert (await client.get("/api/data")).status_code == 401
    response = await client.get("/api/data", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_check_email_and_reset_password(client, signed_up):
    account, _, _ = signed_up

    response = await client.post("/api/users/check-email", json={"email": account["email"]})
    assert response.json() == {"exists": True}
    response = await client.post("/api/users/check-email", json={"email": "ghost@mailbox.org"})
    assert response.json() == {"exists": False}

    response = await client.post(
        "/api/users/reset-password",
        json={"email": account["email"], "newPassword": "brand-new-pass"},
    )
    assert response.status_code == 200
    response = await client.post("/api/auth", json={"email": account["email"], "password": "brand-new-pass"})
    assert response.status_code == 200


async def test_update_account(client, signed_up):
    account, headers, _ = signed_up

    response = await client.patch("/api/users/me", json={"updates": {"name": "New Name"}}, headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Password is required to make this change."

    response = await client.patch(
        "/api/users/me",
        json={"updates": {"name": "New Name"}, "currentPassword": account["password"]},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["user"]["name"] == "New Name"

    picture = "data:image/png;base64,iVBORw0KGgo="
    response = await client.patch("/api/users/me", json={"updates": {"profilePicture": picture}}, headers=headers)
    assert response.json()["user"]["profilePicture"] == picture

    response = await client.patch("/api/users/me", json={"updates": {"profilePicture": None}}, headers=headers)
    assert response.json()["user"]["profilePicture"] is None


async def test_update_applies_literal_text_values(client, signed_up):
    account, headers, _ = signed_up
    response = await client.patch(
        "/api/users/me",
        json={"updates": {"name": "unset"}, "currentPassword": account["password"]},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["user"]["name"] == "unset"

    response = await client.patch("/api/users/me", json={"updates": {"name": None}}, headers=headers)
    assert response.status_code == 422


async def test_update_to_taken_email_conflicts(client, signed_up, make_account):
    account, headers, _ = signed_up
    other = make_account()
    await client.post("/api/users", json=other)

    response = await client.patch(
        "/api/users/me",
        json={"updates": {"email": other["email"]}, "currentPassword": account["password"]},
        headers=headers,
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "This email is already in use."


async def test_delete_account(client, signed_up):
    account, headers, _ = signed_up

    response = await client.request("DELETE", "/api/users/me", json={"password": "wrong-password"}, headers=headers)
    assert response.status_code == 403

    response = await client.request("DELETE", "/api/users/me", json={"password": account["password"]}, headers=headers)
    assert response.status_code == 200

    assert (await client.get("/api/data", headers=headers)).status_code == 401
    response = await client.post("/api/users/check-email", json={"email": account["email"]})
    assert response.json() == {"exists": False}
