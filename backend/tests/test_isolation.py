"""
Cross-tenant isolation and security tests, end to end over HTTP.

Verifies that:
- Sessions come from OTP sign-in and are accepted as Bearer or cookie
- Users cannot reach resources of organizations they do not belong to
- Workspace roles are enforced inside an org
- Invitation tokens cannot be reused or guessed
- Removed members lose access immediately
"""

import uuid

import httpx
import pytest

from parley.core.config import settings
from parley.services import auth_service as auth_module

OTP_CODE = "12345"


@pytest.fixture(autouse=True)
def fixed_code(monkeypatch) -> None:
    monkeypatch.setattr(auth_module, "generate_otp_code", lambda: OTP_CODE)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def unique_phone() -> str:
    return "+1" + str(uuid.uuid4().int)[:10]


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def sign_up(client: httpx.AsyncClient, email: str, first_name: str = "Test") -> str:
    """OTP sign-in followed by a profile update. Returns the session token."""
    phone = unique_phone()
    resp = await client.post("/api/v1/auth/otp/request", json={"phone": phone})
    assert resp.status_code == 201, resp.text

    resp = await client.post("/api/v1/auth/otp/verify", json={"phone": phone, "code": OTP_CODE})
    assert resp.status_code == 200, resp.text
    token = resp.json()["session_token"]

    resp = await client.patch(
        "/api/v1/auth/me",
        json={"email": email, "first_name": first_name},
        headers=auth(token),
    )
    assert resp.status_code == 200, resp.text
    return token


async def create_org(client: httpx.AsyncClient, token: str, name: str) -> dict:
    slug = f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}"
    resp = await client.post(
        "/api/v1/organizations", json={"name": name, "slug": slug}, headers=auth(token)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def create_workspace(client: httpx.AsyncClient, token: str, org_id: str, name: str) -> dict:
    resp = await client.post(
        f"/api/v1/organizations/{org_id}/workspaces", json={"name": name}, headers=auth(token)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def invite_and_accept(
    client: httpx.AsyncClient, owner_token: str, org_id: str, email: str, member_token: str
) -> str:
    resp = await client.post(
        f"/api/v1/organizations/{org_id}/invitations",
        json={"email": email},
        headers=auth(owner_token),
    )
    assert resp.status_code == 201, resp.text
    invite_token = resp.json()["token"]

    resp = await client.post(
        "/api/v1/invitations/accept", json={"token": invite_token}, headers=auth(member_token)
    )
    assert resp.status_code == 200, resp.text
    return invite_token


async def post_message(client: httpx.AsyncClient, token: str, workspace_id: str, text: str) -> dict:
    resp = await client.post(
        f"/api/v1/workspaces/{workspace_id}/messages", json={"text": text}, headers=auth(token)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# 1. Sessions
# ---------------------------------------------------------------------------

async def test_sign_in_sets_http_only_cookie(client):
    phone = unique_phone()
    await client.post("/api/v1/auth/otp/request", json={"phone": phone})
    resp = await client.post("/api/v1/auth/otp/verify", json={"phone": phone, "code": OTP_CODE})

    assert resp.status_code == 200
    assert resp.json()["is_new_user"] is True
    set_cookie = resp.headers["set-cookie"]
    assert set_cookie.startswith(f"{settings.SESSION_COOKIE_NAME}=")
    assert "httponly" in set_cookie.lower()

    me = await client.get("/api/v1/auth/me", headers=auth(resp.json()["session_token"]))
    assert me.status_code == 200
    assert me.json()["phone"] == phone


async def test_wrong_code_is_rejected(client):
    phone = unique_phone()
    await client.post("/api/v1/auth/otp/request", json={"phone": phone})

    resp = await client.post("/api/v1/auth/otp/verify", json={"phone": phone, "code": "00000"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "OTP_MISMATCH"


async def test_invalid_phone_is_a_validation_error(client):
    resp = await client.post("/api/v1/auth/otp/request", json={"phone": "555-1234"})

    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "VALIDATION_FAILED"


async def test_unauthenticated_request_rejected(client):
    client.cookies.clear()
    resp = await client.get("/api/v1/organizations")
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "NOT_AUTHENTICATED"


async def test_bogus_token_rejected(client):
    client.cookies.clear()
    resp = await client.get("/api/v1/auth/me", headers=auth("not-a-session"))
    assert resp.status_code == 401


async def test_sign_out_invalidates_token(client):
    token = await sign_up(client, "leaver@example.com")

    resp = await client.post("/api/v1/auth/sign-out", headers=auth(token))
    assert resp.status_code == 200

    client.cookies.clear()
    resp = await client.get("/api/v1/auth/me", headers=auth(token))
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# 2. Cross-Org Isolation
# ---------------------------------------------------------------------------

async def test_cannot_access_other_org(client):
    token_a = await sign_up(client, "a1@example.com")
    token_b = await sign_up(client, "b1@example.com")
    await create_org(client, token_a, "Org A")
    org_b = await create_org(client, token_b, "Org B")

    resp = await client.get(f"/api/v1/organizations/{org_b['id']}", headers=auth(token_a))
    assert resp.status_code == 403

    resp = await client.get(f"/api/v1/organizations/{org_b['id']}/members", headers=auth(token_a))
    assert resp.status_code == 403

    resp = await client.get("/api/v1/organizations", headers=auth(token_a))
    assert [org["name"] for org in resp.json()["organizations"]] == ["Org A"]


async def test_cannot_read_or_post_in_other_org_workspace(client):
    token_a = await sign_up(client, "a2@example.com")
    token_b = await sign_up(client, "b2@example.com")
    await create_org(client, token_a, "Org A")
    org_b = await create_org(client, token_b, "Org B")
    workspace_b = await create_workspace(client, token_b, org_b["id"], "secret")
    message = await post_message(client, token_b, workspace_b["id"], "eyes only")

    resp = await client.get(f"/api/v1/workspaces/{workspace_b['id']}/messages", headers=auth(token_a))
    assert resp.status_code == 403

    resp = await client.post(
        f"/api/v1/workspaces/{workspace_b['id']}/messages",
        json={"text": "hi"},
        headers=auth(token_a),
    )
    assert resp.status_code == 403

    resp = await client.get(f"/api/v1/messages/{message['id']}", headers=auth(token_a))
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# 3. Roles within an org
# ---------------------------------------------------------------------------

async def test_member_cannot_pin_but_workspace_admin_can(client):
    owner_token = await sign_up(client, "owner3@example.com")
    member_token = await sign_up(client, "member3@example.com")
    org = await create_org(client, owner_token, "Org Pin")
    # Accepting joins the member to every public workspace that exists
    workspace = await create_workspace(client, owner_token, org["id"], "general")
    await invite_and_accept(client, owner_token, org["id"], "member3@example.com", member_token)

    message = await post_message(client, member_token, workspace["id"], "pin me")

    resp = await client.post(f"/api/v1/messages/{message['id']}/pin", headers=auth(member_token))
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "NOT_WORKSPACE_ADMIN"

    resp = await client.post(f"/api/v1/messages/{message['id']}/pin", headers=auth(owner_token))
    assert resp.status_code == 200
    assert resp.json()["is_pinned"] is True


async def test_only_workspace_admin_deletes_workspace(client):
    owner_token = await sign_up(client, "owner-del@example.com")
    member_token = await sign_up(client, "member-del@example.com")
    org = await create_org(client, owner_token, "Org Delete")
    workspace = await create_workspace(client, owner_token, org["id"], "general")
    await invite_and_accept(client, owner_token, org["id"], "member-del@example.com", member_token)
    message = await post_message(client, member_token, workspace["id"], "bye")

    resp = await client.delete(f"/api/v1/workspaces/{workspace['id']}", headers=auth(member_token))
    assert resp.status_code == 403

    resp = await client.delete(f"/api/v1/workspaces/{workspace['id']}", headers=auth(owner_token))
    assert resp.status_code == 200

    resp = await client.get(f"/api/v1/workspaces/{workspace['id']}", headers=auth(owner_token))
    assert resp.status_code == 404
    resp = await client.get(f"/api/v1/messages/{message['id']}", headers=auth(owner_token))
    assert resp.status_code == 404


async def test_member_cannot_invite_or_change_roles(client):
    owner_token = await sign_up(client, "owner4@example.com")
    member_token = await sign_up(client, "member4@example.com")
    org = await create_org(client, owner_token, "Org Roles")
    await invite_and_accept(client, owner_token, org["id"], "member4@example.com", member_token)
    owner_id = (await client.get("/api/v1/auth/me", headers=auth(owner_token))).json()["id"]

    resp = await client.post(
        f"/api/v1/organizations/{org['id']}/invitations",
        json={"email": "friend@example.com"},
        headers=auth(member_token),
    )
    assert resp.status_code == 403

    resp = await client.patch(
        f"/api/v1/organizations/{org['id']}/members/{owner_id}",
        json={"role": "member"},
        headers=auth(member_token),
    )
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# 4. Invitation Security
# ---------------------------------------------------------------------------

async def test_invitation_token_cannot_be_reused(client):
    owner_token = await sign_up(client, "owner5@example.com")
    member_token = await sign_up(client, "member5@example.com")
    org = await create_org(client, owner_token, "Org Invite")
    invite_token = await invite_and_accept(
        client, owner_token, org["id"], "member5@example.com", member_token
    )

    resp = await client.post(
        "/api/v1/invitations/accept", json={"token": invite_token}, headers=auth(member_token)
    )
    assert resp.status_code == 409


async def test_invitation_cannot_be_stolen(client):
    owner_token = await sign_up(client, "owner6@example.com")
    thief_token = await sign_up(client, "thief6@example.com")
    org = await create_org(client, owner_token, "Org Steal")
    resp = await client.post(
        f"/api/v1/organizations/{org['id']}/invitations",
        json={"email": "victim6@example.com"},
        headers=auth(owner_token),
    )
    invite_token = resp.json()["token"]

    resp = await client.post(
        "/api/v1/invitations/accept", json={"token": invite_token}, headers=auth(thief_token)
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "EMAIL_MISMATCH"


async def test_fake_invitation_token_rejected(client):
    token = await sign_up(client, "guess7@example.com")

    resp = await client.post(
        "/api/v1/invitations/accept", json={"token": "made-up-token"}, headers=auth(token)
    )
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# 5. Membership Changes
# ---------------------------------------------------------------------------

async def test_removed_member_loses_access(client):
    owner_token = await sign_up(client, "owner8@example.com")
    member_token = await sign_up(client, "member8@example.com")
    org = await create_org(client, owner_token, "Org Remove")
    workspace = await create_workspace(client, owner_token, org["id"], "general")
    await invite_and_accept(client, owner_token, org["id"], "member8@example.com", member_token)
    member_id = (await client.get("/api/v1/auth/me", headers=auth(member_token))).json()["id"]

    resp = await client.get(f"/api/v1/workspaces/{workspace['id']}/messages", headers=auth(member_token))
    assert resp.status_code == 200

    resp = await client.delete(
        f"/api/v1/organizations/{org['id']}/members/{member_id}", headers=auth(owner_token)
    )
    assert resp.status_code == 200

    resp = await client.get(f"/api/v1/organizations/{org['id']}", headers=auth(member_token))
    assert resp.status_code == 403
    resp = await client.get(f"/api/v1/workspaces/{workspace['id']}/messages", headers=auth(member_token))
    assert resp.status_code == 403


async def test_owner_cannot_remove_themselves(client):
    owner_token = await sign_up(client, "owner9@example.com")
    org = await create_org(client, owner_token, "Org Solo")
    owner_id = (await client.get("/api/v1/auth/me", headers=auth(owner_token))).json()["id"]

    resp = await client.delete(
        f"/api/v1/organizations/{org['id']}/members/{owner_id}", headers=auth(owner_token)
    )
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "LAST_OWNER"


# ---------------------------------------------------------------------------
# 6. Full walkthrough
# ---------------------------------------------------------------------------

async def test_owner_and_invited_member_walkthrough(client):
    phone = "+10000000001"
    resp = await client.post("/api/v1/auth/otp/request", json={"phone": phone})
    assert resp.json()["code"] == OTP_CODE
    resp = await client.post("/api/v1/auth/otp/verify", json={"phone": phone, "code": OTP_CODE})
    token_a = resp.json()["session_token"]

    resp = await client.post(
        "/api/v1/organizations", json={"name": "Acme", "slug": "acme"}, headers=auth(token_a)
    )
    assert resp.status_code == 201
    org = resp.json()
    assert org["my_role"] == "owner"

    resp = await client.post(
        f"/api/v1/organizations/{org['id']}/workspaces",
        json={"name": "general", "type": "public"},
        headers=auth(token_a),
    )
    workspace = resp.json()
    assert workspace["my_role"] == "admin"

    hello = await post_message(client, token_a, workspace["id"], "hello")
    resp = await client.get(f"/api/v1/workspaces/{workspace['id']}/messages", headers=auth(token_a))
    [listed] = resp.json()["messages"]
    assert listed["id"] == hello["id"]
    assert listed["is_deleted"] is False
    assert listed["thread_count"] == 0

    token_b = await sign_up(client, "b@example.com")
    await invite_and_accept(client, token_a, org["id"], "b@example.com", token_b)
    await post_message(client, token_b, workspace["id"], "hi from B")

    resp = await client.post(f"/api/v1/messages/{hello['id']}/pin", headers=auth(token_b))
    assert resp.status_code == 403
