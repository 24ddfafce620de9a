import json

import pytest

from imaginify.core.security import create_session_cookie, sign_webhook_payload
from imaginify.deps import SESSION_COOKIE_NAME
from imaginify.services import users as users_service

pytestmark = pytest.mark.asyncio

WEBHOOK_SECRET = "test-webhook-secret"


def signed(event: dict) -> tuple[bytes, dict]:
    body = json.dumps(event).encode()
    return body, {"X-Webhook-Signature": sign_webhook_payload(body, WEBHOOK_SECRET), "Content-Type": "application/json"}


def clerk_user(clerk_id: str = "user_hook", **overrides) -> dict:
    data = {
        "id": clerk_id,
        "email_addresses": [
            {"id": "idn_1", "email_address": "old@example.com"},
            {"id": "idn_2", "email_address": "grace@example.com"},
        ],
        "primary_email_address_id": "idn_2",
        "username": "grace",
        "image_url": "https://img.clerk.com/grace.png",
        "first_name": "Grace",
        "last_name": "Hopper",
    }
    data.update(overrides)
    return data


async def test_me_requires_session(client):
    r = await client.get("/v1/users/me")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHORIZED"


async def test_me_rejects_tampered_cookie(client, user):
    client.cookies.set(SESSION_COOKIE_NAME, create_session_cookie(user.clerk_id) + "x")
    r = await client.get("/v1/users/me")
    assert r.status_code == 401


async def test_me_returns_camel_case_profile(auth_client, user):
    r = await auth_client.get("/v1/users/me")
    assert r.status_code == 200
    body = r.json()
    assert body["clerkId"] == user.clerk_id
    assert body["creditBalance"] == 10
    assert body["id"] == str(user.id)


async def test_create_image_debits_balance(auth_client):
    payload = {
        "title": "Beach",
        "transformationTypes": ["removeBackground"],
        "publicId": "imaginify/beach",
        "secureUrl": "https://res.cloudinary.com/demo/image/upload/beach.png",
    }
    r = await auth_client.post("/v1/images", json=payload)
    assert r.status_code == 201
    image = r.json()
    assert image["publicId"] == "imaginify/beach"
    assert image["config"]["removeBackground"] is True

    r = await auth_client.get("/v1/credits/balance")
    assert r.json() == {"balance": 9, "planId": 1}

    r = await auth_client.get("/v1/credits/ledger")
    entries = r.json()["entries"]
    assert len(entries) == 1
    assert entries[0]["amount"] == -1
    assert entries[0]["balanceAfter"] == 9
    assert entries[0]["referenceId"] == "imaginify/beach"

    r = await auth_client.get(f"/v1/images/{image['id']}")
    assert r.status_code == 200
    assert r.json()["title"] == "Beach"


async def test_create_image_rejects_unknown_config(auth_client):
    payload = {
        "title": "Beach",
        "transformationTypes": ["restore"],
        "publicId": "imaginify/beach",
        "secureUrl": "https://res.cloudinary.com/demo/image/upload/beach.png",
        "config": {"sharpen": True},
    }
    r = await auth_client.post("/v1/images", json=payload)
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_create_image_without_credits(auth_client, store, user):
    await users_service.adjust_credits(store, user.id, -10)
    payload = {
        "title": "Beach",
        "transformationTypes": ["restore"],
        "publicId": "imaginify/beach",
        "secureUrl": "https://res.cloudinary.com/demo/image/upload/beach.png",
    }
    r = await auth_client.post("/v1/images", json=payload)
    assert r.status_code == 402
    assert r.json()["error"]["code"] == "INSUFFICIENT_CREDITS"


async def test_list_images_links_pages(auth_client):
    for i in range(3):
        await auth_client.post(
            "/v1/images",
            json={
                "title": f"Image {i}",
                "transformationTypes": ["restore"],
                "publicId": f"imaginify/{i}",
                "secureUrl": f"https://res.cloudinary.com/demo/{i}.png",
            },
        )
    r = await auth_client.get("/v1/images", params={"limit": 2})
    body = r.json()
    assert body["total"] == 3
    assert [i["publicId"] for i in body["images"]] == ["imaginify/2", "imaginify/1"]
    assert body["next"] == "/v1/images?limit=2&offset=2"
    assert body["prev"] is None

    r = await auth_client.get("/v1/images", params={"limit": 2, "offset": 2})
    body = r.json()
    assert body["next"] is None
    assert body["prev"] == "/v1/images?limit=2"


async def test_delete_image(auth_client, revalidator):
    r = await auth_client.post(
        "/v1/images",
        json={
            "title": "Tmp",
            "transformationTypes": ["restore"],
            "publicId": "imaginify/tmp",
            "secureUrl": "https://res.cloudinary.com/demo/tmp.png",
        },
    )
    image_id = r.json()["id"]
    r = await auth_client.delete(f"/v1/images/{image_id}")
    assert r.status_code == 200
    assert revalidator.paths == ["/"]
    r = await auth_client.get(f"/v1/images/{image_id}")
    assert r.status_code == 404


async def test_webhook_rejects_bad_signature(client):
    body, headers = signed({"type": "user.created", "data": clerk_user()})
    headers["X-Webhook-Signature"] = "0" * 64
    r = await client.post("/v1/webhooks/identity", content=body, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Invalid webhook signature"


async def test_webhook_user_lifecycle(client, store, revalidator):
    body, headers = signed({"type": "user.created", "data": clerk_user()})
    r = await client.post("/v1/webhooks/identity", content=body, headers=headers)
    assert r.status_code == 200
    created = r.json()["user"]
    assert created["clerkId"] == "user_hook"
    assert created["email"] == "grace@example.com"
    assert created["creditBalance"] == 10
    assert created["planId"] == 1

    body, headers = signed({"type": "user.updated", "data": clerk_user(username="amazing_grace")})
    r = await client.post("/v1/webhooks/identity", content=body, headers=headers)
    assert r.json()["user"]["username"] == "amazing_grace"

    body, headers = signed({"type": "user.deleted", "data": {"id": "user_hook", "deleted": True}})
    r = await client.post("/v1/webhooks/identity", content=body, headers=headers)
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "event": "user.deleted", "user": None}
    assert revalidator.paths == ["/"]
    assert not (await users_service.get_user_by_clerk_id(store, "user_hook")).is_ok

    r = await client.post("/v1/webhooks/identity", content=body, headers=headers)
    assert r.status_code == 404


async def test_webhook_ignores_other_events(client):
    body, headers = signed({"type": "session.created", "data": {"id": "sess_1"}})
    r = await client.post("/v1/webhooks/identity", content=body, headers=headers)
    assert r.json() == {"status": "ignored", "event": "session.created"}


async def test_webhook_creates_user_without_username(client):
    body, headers = signed({"type": "user.created", "data": clerk_user("user_mail", username=None)})
    r = await client.post("/v1/webhooks/identity", content=body, headers=headers)
    assert r.status_code == 200
    assert r.json()["user"]["username"] == "grace"


async def test_webhook_update_syncs_cleared_fields(client):
    body, headers = signed({"type": "user.created", "data": clerk_user("user_clear")})
    await client.post("/v1/webhooks/identity", content=body, headers=headers)

    body, headers = signed({"type": "user.updated", "data": clerk_user("user_clear", last_name=None, image_url="")})
    r = await client.post("/v1/webhooks/identity", content=body, headers=headers)
    user = r.json()["user"]
    assert user["lastname"] == ""
    assert user["photo"] == ""
    assert user["firstname"] == "Grace"
    assert user["username"] == "grace"
