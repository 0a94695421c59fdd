# tests/test_api_auth.py
from __future__ import annotations

from sqlalchemy import select

from core.enums import ActivityType, Location, UserRole
from db.activity import ActivityLog
from db.users import User

PASSWORD = "password123"


async def _login(client, email, password=PASSWORD):
    return await client.post("/api/auth/jwt/login", data={"username": email, "password": password})


async def test_login_and_me(login_as, make_user, session):
    barman = await make_user(UserRole.BARMAN, location=Location.GIN_BAR, username="kuba")
    client = login_as(None)

    r = await _login(client, barman.email)
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]

    r = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    me = r.json()["data"]["user"]
    assert me["username"] == "kuba"
    assert me["role"] == "barman"
    assert me["location"] == "gin_bar"
    assert "hashed_password" not in me

    row = (await session.execute(select(User.last_login).where(User.id == barman.id))).one()
    assert row.last_login is not None
    types = (await session.execute(select(ActivityLog.activity_type).where(ActivityLog.user_id == barman.id))).scalars().all()
    assert ActivityType.LOGIN in types


async def test_login_bad_credentials(login_as, make_user):
    user = await make_user(UserRole.BARMAN)
    client = login_as(None)

    r = await _login(client, user.email, "wrong-password")
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "LOGIN_BAD_CREDENTIALS"}

    r = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


async def test_inactive_user_cannot_log_in(login_as, make_user):
    user = await make_user(UserRole.BARMAN, is_active=False)
    client = login_as(None)
    r = await _login(client, user.email)
    assert r.status_code == 400


async def test_admin_registers_staff(login_as, make_user):
    admin = await make_user(UserRole.ADMIN)
    client = login_as(admin)
    payload = {
        "email": "ola@bulldogbar.pl",
        "password": "longenough1",
        "username": "ola",
        "role": "bar_manager",
        "location": "maly_bulldog",
    }

    r = await client.post("/api/auth/register", json=payload)
    assert r.status_code == 201, r.text
    created = r.json()["data"]["user"]
    assert created["role"] == "bar_manager"
    assert created["location"] == "maly_bulldog"

    r = await client.post("/api/auth/register", json=payload)
    assert r.status_code == 409

    r = await client.post("/api/auth/register", json={**payload, "email": "x@bulldogbar.pl", "username": "x-user", "password": "short"})
    assert r.status_code == 400

    r = await client.post("/api/auth/register", json={**payload, "email": "y@bulldogbar.pl", "username": "ab"})
    assert r.status_code == 400

    # the new account can log in
    login_as(None)
    r = await _login(client, "ola@bulldogbar.pl", "longenough1")
    assert r.status_code == 200


async def test_only_admin_registers(login_as, make_user):
    manager = await make_user(UserRole.BAR_MANAGER)
    client = login_as(manager)
    r = await client.post(
        "/api/auth/register",
        json={"email": "z@bulldogbar.pl", "password": "longenough1", "username": "zzz"},
    )
    assert r.status_code == 403


async def test_change_password(login_as, make_user):
    user = await make_user(UserRole.BARMAN)
    client = login_as(user)

    r = await client.post(
        "/api/auth/change-password",
        json={"current_password": "nope-nope", "new_password": "brand-new-pass"},
    )
    assert r.status_code == 401
    assert r.json()["error"] == "Current password is incorrect"

    r = await client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "short"},
    )
    assert r.status_code == 400

    r = await client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "brand-new-pass"},
    )
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Password changed successfully"}

    login_as(None)
    assert (await _login(client, user.email)).status_code == 400
    assert (await _login(client, user.email, "brand-new-pass")).status_code == 200


async def test_users_endpoints(login_as, make_user):
    admin = await make_user(UserRole.ADMIN, username="boss")
    barman = await make_user(UserRole.BARMAN, username="kuba")
    other = await make_user(UserRole.BARMAN, username="tomek")

    client = login_as(barman)
    assert (await client.get("/api/users/")).status_code == 403
    assert (await client.get(f"/api/users/{barman.id}")).status_code == 200
    assert (await client.get(f"/api/users/{other.id}")).status_code == 403

    client = login_as(admin)
    r = await client.get("/api/users/")
    assert [u["username"] for u in r.json()["data"]] == ["boss", "kuba", "tomek"]

    r = await client.put(f"/api/users/{barman.id}", json={"role": "bar_manager", "location": "gin_bar"})
    assert r.status_code == 200, r.text
    assert r.json()["data"]["user"]["role"] == "bar_manager"

    r = await client.delete(f"/api/users/{other.id}")
    assert r.status_code == 200
    r = await client.get(f"/api/users/{other.id}")
    assert r.json()["data"]["is_active"] is False

    r = await client.get("/api/users/00000000-0000-0000-0000-000000000000")
    assert r.status_code == 404


async def test_logout_is_recorded(login_as, make_user, session):
    user = await make_user(UserRole.BARMAN, username="ewa")
    client = login_as(user)

    r = await client.post("/api/auth/logout")
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Logged out successfully"}

    res = await session.execute(
        select(ActivityLog.description).where(
            ActivityLog.user_id == user.id,
            ActivityLog.activity_type == ActivityType.LOGOUT,
        )
    )
    assert res.scalars().all() == ["User ewa logged out"]

    login_as(None)
    assert (await client.post("/api/auth/logout")).status_code == 401
