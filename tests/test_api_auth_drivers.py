"""Tests API authentification et chauffeurs / Auth and driver management API tests."""

import json
import logging

from sqlalchemy import select

from conftest import PASSWORD, auth_headers
from routezy.main import JSONFormatter, request_id_var
from routezy.models.audit import AuditLog


async def login(client, email: str, password: str = PASSWORD):
    return await client.post("/api/auth/login", json={"email": email, "password": password})


# ─── Authentification / Authentication ───

async def test_health(client):
    response = await client.get("/api/")
    assert response.status_code == 200
    assert response.json()["status"] == "running"


async def test_request_id_is_echoed(client):
    response = await client.get("/api/", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_json_formatter_includes_request_id():
    record = logging.LogRecord("routezy", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    token = request_id_var.set("req-7")
    try:
        payload = json.loads(JSONFormatter().format(record))
    finally:
        request_id_var.reset(token)
    assert payload["message"] == "hello world"
    assert payload["request_id"] == "req-7"
    assert "request_id" not in json.loads(JSONFormatter().format(record))


async def test_superadmin_login_and_me(client):
    response = await login(client, "admin@routezy.app", "admin")
    assert response.status_code == 200
    tokens = response.json()
    assert tokens["token_type"] == "bearer"

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.status_code == 200
    assert me.json()["is_superadmin"] is True


async def test_failed_login_is_audited(client, session_factory, sender):
    response = await login(client, "sender@routezy.app", "wrong-password")
    assert response.status_code == 401

    async with session_factory() as session:
        rows = (await session.execute(
            select(AuditLog).where(AuditLog.action == "LOGIN_FAILED")
        )).scalars().all()
    assert len(rows) == 1
    assert rows[0].entity_id == sender.id
    assert "sender@routezy.app" in rows[0].changes


async def test_unknown_email_rejected(client):
    response = await login(client, "nobody@routezy.app")
    assert response.status_code == 401


async def test_refresh_token(client, sender):
    tokens = (await login(client, "sender@routezy.app")).json()
    response = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200

    # Un access token ne sert pas de refresh / An access token is not a refresh token
    response = await client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert response.status_code == 401


async def test_signup_creates_sender(client):
    payload = {"email": "New.User@routezy.app", "password": "hunter22", "full_name": "Nina New"}
    response = await client.post("/api/auth/signup", json=payload)
    assert response.status_code == 201

    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
    me = (await client.get("/api/auth/me", headers=headers)).json()
    assert me["email"] == "new.user@routezy.app"
    assert me["roles"] == ["sender"]
    assert me["profile"]["full_name"] == "Nina New"

    duplicate = await client.post("/api/auth/signup", json=payload)
    assert duplicate.status_code == 409


async def test_update_profile(client, sender):
    response = await client.put(
        "/api/auth/me/profile", json={"phone": "+91 98450 00000"}, headers=auth_headers(sender)
    )
    assert response.status_code == 200
    assert response.json()["profile"] == {
        "full_name": "Sanjay Sender",
        "phone": "+91 98450 00000",
        "avatar_url": None,
    }


async def test_me_requires_token(client):
    response = await client.get("/api/auth/me")
    assert response.status_code in (401, 403)


# ─── Candidatures chauffeur / Driver applications ───

async def test_driver_request_approval_grants_role(client, manager, sender):
    response = await client.post(
        "/api/drivers/requests",
        json={"full_name": " Sanjay S ", "license_number": "KA0120200001234"},
        headers=auth_headers(sender),
    )
    assert response.status_code == 201
    request_id = response.json()["id"]
    assert response.json()["full_name"] == "Sanjay S"
    assert response.json()["status"] == "PENDING"

    again = await client.post("/api/drivers/requests", json={"full_name": "Sanjay"}, headers=auth_headers(sender))
    assert again.status_code == 409

    mine = await client.get("/api/drivers/requests/me", headers=auth_headers(sender))
    assert mine.json()["id"] == request_id

    # Reserve aux managers / Staff only
    forbidden = await client.get("/api/drivers/requests", headers=auth_headers(sender))
    assert forbidden.status_code == 403

    pending = await client.get("/api/drivers/requests", headers=auth_headers(manager))
    assert [r["id"] for r in pending.json()] == [request_id]

    approved = await client.post(f"/api/drivers/requests/{request_id}/approve", headers=auth_headers(manager))
    assert approved.status_code == 200
    assert approved.json()["status"] == "APPROVED"
    assert approved.json()["reviewed_by"] == manager.id

    me = (await client.get("/api/auth/me", headers=auth_headers(sender))).json()
    assert me["roles"] == ["driver", "sender"]
    assert me["profile"]["full_name"] == "Sanjay S"


async def test_driver_request_rejection(client, manager, sender):
    created = await client.post("/api/drivers/requests", json={"full_name": "Sanjay"}, headers=auth_headers(sender))
    request_id = created.json()["id"]

    rejected = await client.post(
        f"/api/drivers/requests/{request_id}/reject",
        json={"reason": "Licence expired"},
        headers=auth_headers(manager),
    )
    assert rejected.json()["status"] == "REJECTED"
    assert rejected.json()["rejection_reason"] == "Licence expired"

    me = (await client.get("/api/auth/me", headers=auth_headers(sender))).json()
    assert me["roles"] == ["sender"]


async def test_my_request_missing(client, sender):
    response = await client.get("/api/drivers/requests/me", headers=auth_headers(sender))
    assert response.status_code == 404


# ─── Gestion chauffeurs / Driver management ───

async def test_add_driver_creates_account(client, manager):
    response = await client.post(
        "/api/drivers/",
        json={"email": "ravi@routezy.app", "full_name": "Ravi Kumar", "password": "drive123"},
        headers=auth_headers(manager),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["is_new_user"] is True
    assert body["success"] is True

    assert (await login(client, "ravi@routezy.app", "drive123")).status_code == 200


async def test_add_driver_existing_user(client, manager, sender, driver):
    promoted = await client.post("/api/drivers/", json={"email": "sender@routezy.app"}, headers=auth_headers(manager))
    assert promoted.json()["is_new_user"] is False
    assert promoted.json()["user_id"] == sender.id

    duplicate = await client.post("/api/drivers/", json={"email": "driver@routezy.app"}, headers=auth_headers(manager))
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "This user is already a driver"


async def test_list_drivers_and_assign_vehicle(client, manager, driver, truck):
    drivers = (await client.get("/api/drivers/", headers=auth_headers(manager))).json()
    assert drivers == [{
        "user_id": driver.id,
        "email": "driver@routezy.app",
        "full_name": "Divya Driver",
        "phone": None,
        "avatar_url": None,
        "assigned_vehicle_id": truck.id,
    }]

    van = await client.post(
        "/api/fleet/vehicles",
        json={"vehicle_number": "KA05MN0001", "vehicle_type": "MINI_TRUCK", "fuel_type": "CNG"},
        headers=auth_headers(manager),
    )
    van_id = van.json()["id"]

    assigned = await client.put(f"/api/drivers/{driver.id}/vehicle", json={"vehicle_id": van_id},
                                headers=auth_headers(manager))
    assert assigned.json()["current_driver_id"] == driver.id

    old_truck = (await client.get(f"/api/fleet/vehicles/{truck.id}", headers=auth_headers(manager))).json()
    assert old_truck["current_driver_id"] is None

    cleared = await client.put(f"/api/drivers/{driver.id}/vehicle", json={"vehicle_id": None},
                               headers=auth_headers(manager))
    assert cleared.status_code == 200
    assert cleared.json() is None


async def test_assign_vehicle_to_non_driver(client, manager, sender, truck):
    response = await client.put(f"/api/drivers/{sender.id}/vehicle", json={"vehicle_id": truck.id},
                                headers=auth_headers(manager))
    assert response.status_code == 404
