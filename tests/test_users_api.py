"""Account management tests — self/admin rules and session revocation.

Learn: Every /users route runs the real gateway. Administrators reach
any account; other roles only their own. Password changes and
deactivation revoke sessions, so an old session_token stops working.
"""

import uuid

import pytest

from conftest import bearer, login, signup, unique_email


def _use_cookie(client, value: str) -> None:
    client.cookies.clear()
    client.cookies.set("session_token", value)


# ═══════════════════════════════════════════════════════════
# Listing / reading
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_admin_lists_users(client, logged_in, admin_token):
    child, _ = logged_in
    r = await client.get("/users", headers=bearer(admin_token))
    assert r.status_code == 200
    ids = {u["id"] for u in r.json()}
    assert child["id"] in ids
    assert len(ids) == 2


@pytest.mark.asyncio
async def test_non_admin_cannot_list_users(client, logged_in):
    _, token = logged_in
    r = await client.get("/users", headers=bearer(token))
    assert r.status_code == 403
    assert r.json() == {"error": "forbidden"}


@pytest.mark.asyncio
async def test_users_require_authentication(client):
    r = await client.get("/users")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_user_reads_self(client, logged_in):
    user, token = logged_in
    r = await client.get(f"/users/{user['id']}", headers=bearer(token))
    assert r.status_code == 200
    assert r.json()["email"] == user["email"]


@pytest.mark.asyncio
async def test_user_cannot_read_others(client, logged_in):
    _, token = logged_in
    other = (await signup(client, unique_email("other"))).json()["user"]
    r = await client.get(f"/users/{other['id']}", headers=bearer(token))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_admin_reads_anyone(client, logged_in, admin_token):
    child, _ = logged_in
    r = await client.get(f"/users/{child['id']}", headers=bearer(admin_token))
    assert r.status_code == 200
    assert r.json()["id"] == child["id"]


@pytest.mark.asyncio
async def test_missing_user_is_404(client, admin_token):
    r = await client.get(f"/users/{uuid.uuid4()}", headers=bearer(admin_token))
    assert r.status_code == 404
    assert r.json() == {"error": "user not found"}


@pytest.mark.asyncio
async def test_malformed_user_id_is_400(client, admin_token):
    r = await client.get("/users/not-a-uuid", headers=bearer(admin_token))
    assert r.status_code == 400
    assert r.json() == {"error": "invalid request payload"}


# ═══════════════════════════════════════════════════════════
# Profile updates
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_user_updates_own_profile(client, logged_in):
    user, token = logged_in
    new_email = unique_email("renamed")
    r = await client.put(
        f"/users/{user['id']}",
        headers=bearer(token),
        json={"name": "New", "surname": "Name", "email": new_email.upper()},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "New"
    assert body["surname"] == "Name"
    assert body["email"] == new_email


@pytest.mark.asyncio
async def test_update_to_taken_email(client, logged_in):
    user, token = logged_in
    taken = unique_email("taken")
    await signup(client, taken)
    r = await client.put(
        f"/users/{user['id']}",
        headers=bearer(token),
        json={"name": "X", "surname": "Y", "email": taken},
    )
    assert r.status_code == 400
    assert r.json() == {"error": "email already registered"}


# ═══════════════════════════════════════════════════════════
# Password changes
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_password_change_revokes_sessions(client, logged_in):
    user, token = logged_in
    cookie = client.cookies.get("session_token")
    assert cookie

    r = await client.patch(
        f"/users/{user['id']}/password",
        headers=bearer(token),
        json={"password": "new-password"},
    )
    assert r.status_code == 200
    assert r.json() == {"message": "password changed"}

    _use_cookie(client, cookie)
    assert (await client.post("/auth/refresh")).status_code == 401

    client.cookies.clear()
    assert (await login(client, user["email"])).status_code == 401
    assert (await login(client, user["email"], "new-password")).status_code == 200


@pytest.mark.asyncio
async def test_user_cannot_change_others_password(client, logged_in):
    _, token = logged_in
    other = (await signup(client, unique_email("victim"))).json()["user"]
    r = await client.patch(
        f"/users/{other['id']}/password",
        headers=bearer(token),
        json={"password": "hijacked"},
    )
    assert r.status_code == 403
    assert (await login(client, other["email"])).status_code == 200


# ═══════════════════════════════════════════════════════════
# Activation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_deactivated_user_cannot_log_in(client, logged_in, admin_token):
    child, _ = logged_in
    r = await client.patch(
        f"/users/{child['id']}/deactivate", headers=bearer(admin_token)
    )
    assert r.status_code == 200
    assert r.json()["status"] == "inactive"

    r = await login(client, child["email"])
    assert r.status_code == 403
    assert r.json() == {"error": "account is deactivated"}

    r = await client.patch(
        f"/users/{child['id']}/activate", headers=bearer(admin_token)
    )
    assert r.status_code == 200
    assert r.json()["status"] == "active"
    assert (await login(client, child["email"])).status_code == 200


@pytest.mark.asyncio
async def test_deactivation_revokes_sessions(client, admin_token):
    email = unique_email("revoked")
    await signup(client, email)
    r = await login(client, email)
    cookie = r.cookies["session_token"]
    user_id = r.json()["user"]["id"]

    client.cookies.clear()
    await client.patch(f"/users/{user_id}/deactivate", headers=bearer(admin_token))

    _use_cookie(client, cookie)
    r = await client.post("/auth/refresh")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_non_admin_cannot_deactivate(client, logged_in):
    user, token = logged_in
    r = await client.patch(f"/users/{user['id']}/deactivate", headers=bearer(token))
    assert r.status_code == 403


# ═══════════════════════════════════════════════════════════
# Deletion
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_admin_deletes_user(client, logged_in, admin_token):
    child, child_token = logged_in
    r = await client.delete(f"/users/{child['id']}", headers=bearer(admin_token))
    assert r.status_code == 200
    assert r.json() == {"message": "user deleted"}

    r = await client.get(f"/users/{child['id']}", headers=bearer(admin_token))
    assert r.status_code == 404

    # The access token is still correctly signed, but its subject is gone.
    r = await client.get("/auth/me", headers=bearer(child_token))
    assert r.status_code == 401
    assert r.json() == {"error": "user not found"}


@pytest.mark.asyncio
async def test_non_admin_cannot_delete(client, logged_in):
    user, token = logged_in
    r = await client.delete(f"/users/{user['id']}", headers=bearer(token))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_deactivated_user_access_token_refused(client, logged_in, admin_token):
    child, child_token = logged_in
    assert (await client.get("/auth/me", headers=bearer(child_token))).status_code == 200

    await client.patch(f"/users/{child['id']}/deactivate", headers=bearer(admin_token))

    r = await client.get("/auth/me", headers=bearer(child_token))
    assert r.status_code == 403
    assert r.json() == {"error": "account is deactivated"}
    r = await client.get(f"/users/{child['id']}", headers=bearer(child_token))
    assert r.status_code == 403

    await client.patch(f"/users/{child['id']}/activate", headers=bearer(admin_token))
    assert (await client.get("/auth/me", headers=bearer(child_token))).status_code == 200


@pytest.mark.asyncio
async def test_password_change_rejects_over_72_bytes(client, logged_in):
    user, token = logged_in
    r = await client.patch(
        f"/users/{user['id']}/password",
        headers=bearer(token),
        json={"password": "é" * 72},
    )
    assert r.status_code == 400
    assert r.json() == {"error": "invalid request payload"}
    assert (await login(client, user["email"])).status_code == 200
