"""
HTTP-level tests for the connect API: exchange, replay rejection, status, disconnect.
"""

import uuid

import pytest


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestTokenExchange:
    @pytest.mark.asyncio
    async def test_valid_code_connects_workspace(self, app_client, fake_notion, make_token):
        fake_notion.issue("code-1", "ws_1")
        token = make_token()

        resp = await app_client.post("/api/v1/connect/token", json={"code": "code-1"}, headers=_auth(token))

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["workspaceReference"] == "ws_1"
        assert body["workspaceName"] == "Workspace ws_1"
        assert "error" not in body

        status = await app_client.get("/api/v1/connect/status", headers=_auth(token))
        assert status.json() == {"success": True, "connected": True, "workspaceReference": "ws_1"}

    @pytest.mark.asyncio
    async def test_replayed_code_is_rejected_without_reaching_provider(self, app_client, fake_notion, make_token):
        fake_notion.issue("code-1", "ws_1")
        token = make_token()

        first = await app_client.post("/api/v1/connect/token", json={"code": "code-1"}, headers=_auth(token))
        second = await app_client.post("/api/v1/connect/token", json={"code": "code-1"}, headers=_auth(token))

        assert first.json()["success"] is True
        assert second.status_code == 200
        assert second.json()["success"] is False
        assert second.json()["error"] == "invalid_grant"
        assert fake_notion.token_calls == 1

    @pytest.mark.asyncio
    async def test_replay_from_another_session_is_rejected(self, app_client, fake_notion, make_token):
        fake_notion.issue("code-1", "ws_1")

        await app_client.post("/api/v1/connect/token", json={"code": "code-1"}, headers=_auth(make_token()))
        other = await app_client.post(
            "/api/v1/connect/token",
            json={"code": "code-1"},
            headers=_auth(make_token(email="bob@example.com")),
        )

        assert other.json() == {
            "success": False,
            "error": "invalid_grant",
            "errorDescription": "Authorization code has already been used",
        }

    @pytest.mark.asyncio
    async def test_provider_rejection_is_surfaced_verbatim(self, app_client, fake_notion, make_token):
        token = make_token()

        resp = await app_client.post("/api/v1/connect/token", json={"code": "never-issued"}, headers=_auth(token))

        assert resp.status_code == 200
        assert resp.json() == {
            "success": False,
            "error": "invalid_grant",
            "errorDescription": "Invalid code.",
        }
        status = await app_client.get("/api/v1/connect/status", headers=_auth(token))
        assert status.json()["connected"] is False

    @pytest.mark.asyncio
    async def test_unreachable_provider_returns_502_and_releases_code(self, app_client, fake_notion, make_token):
        fake_notion.issue("code-1", "ws_1")
        fake_notion.unreachable = True
        token = make_token()

        resp = await app_client.post("/api/v1/connect/token", json={"code": "code-1"}, headers=_auth(token))

        assert resp.status_code == 502
        assert resp.json()["success"] is False
        assert resp.json()["error"] == "provider_unavailable"
        assert resp.json()["errorDescription"] == "The workspace provider is unreachable, please try again"
        assert "refused" not in resp.text

        fake_notion.unreachable = False
        retry = await app_client.post("/api/v1/connect/token", json={"code": "code-1"}, headers=_auth(token))
        assert retry.json()["success"] is True

    @pytest.mark.asyncio
    async def test_connection_is_keyed_by_session_identity(self, app_client, fake_notion, make_token):
        fake_notion.issue("code-a", "ws_a")
        alice = make_token(email="alice@example.com")
        bob = make_token(email="bob@example.com")

        await app_client.post("/api/v1/connect/token", json={"code": "code-a"}, headers=_auth(alice))

        assert (await app_client.get("/api/v1/connect/status", headers=_auth(alice))).json()["connected"] is True
        assert (await app_client.get("/api/v1/connect/status", headers=_auth(bob))).json()["connected"] is False

    @pytest.mark.asyncio
    async def test_requires_valid_session_credential(self, app_client, fake_notion, make_token):
        fake_notion.issue("code-1", "ws_1")

        missing = await app_client.post("/api/v1/connect/token", json={"code": "code-1"})
        expired = await app_client.post(
            "/api/v1/connect/token",
            json={"code": "code-1"},
            headers=_auth(make_token(expires_in=-10)),
        )
        forged = await app_client.post(
            "/api/v1/connect/token",
            json={"code": "code-1"},
            headers=_auth(make_token() + "00"),
        )

        assert missing.status_code in (401, 403)
        assert expired.status_code == 401
        assert forged.status_code == 401
        assert fake_notion.token_calls == 0


class TestStatusAndDisconnect:
    @pytest.mark.asyncio
    async def test_status_without_record_is_not_connected(self, app_client, make_token):
        resp = await app_client.get("/api/v1/connect/status", headers=_auth(make_token()))

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "connected": False}

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, app_client, fake_notion, make_token):
        fake_notion.issue("code-1", "ws_1")
        token = make_token()
        await app_client.post("/api/v1/connect/token", json={"code": "code-1"}, headers=_auth(token))

        first = await app_client.post("/api/v1/connect/disconnect", headers=_auth(token))
        second = await app_client.get("/api/v1/connect/disconnect", headers=_auth(token))

        assert first.json() == {"success": True}
        assert second.json() == {"success": True}
        status = await app_client.get("/api/v1/connect/status", headers=_auth(token))
        assert status.json()["connected"] is False

    @pytest.mark.asyncio
    async def test_disconnect_accepts_matching_email(self, app_client, make_token):
        token = make_token(email="Ada@Example.com")

        resp = await app_client.post(
            "/api/v1/connect/disconnect",
            params={"email": "ada@example.com"},
            headers=_auth(token),
        )

        assert resp.status_code == 200
        assert resp.json() == {"success": True}

    @pytest.mark.asyncio
    async def test_disconnect_refuses_foreign_identity(self, app_client, fake_notion, make_token):
        fake_notion.issue("code-1", "ws_1")
        victim = make_token(email="victim@example.com")
        await app_client.post("/api/v1/connect/token", json={"code": "code-1"}, headers=_auth(victim))

        resp = await app_client.post(
            "/api/v1/connect/disconnect",
            params={"email": "victim@example.com"},
            headers=_auth(make_token(email="mallory@example.com")),
        )

        assert resp.status_code == 403
        assert resp.json()["success"] is False
        status = await app_client.get("/api/v1/connect/status", headers=_auth(victim))
        assert status.json()["connected"] is True

    @pytest.mark.asyncio
    async def test_reconnect_after_disconnect(self, app_client, fake_notion, make_token):
        fake_notion.issue("code-1", "ws_1")
        fake_notion.issue("code-2", "ws_2")
        token = make_token()

        await app_client.post("/api/v1/connect/token", json={"code": "code-1"}, headers=_auth(token))
        await app_client.post("/api/v1/connect/disconnect", headers=_auth(token))
        again = await app_client.post("/api/v1/connect/token", json={"code": "code-2"}, headers=_auth(token))

        assert again.json()["workspaceReference"] == "ws_2"
        status = await app_client.get("/api/v1/connect/status", headers=_auth(token))
        assert status.json() == {"success": True, "connected": True, "workspaceReference": "ws_2"}


class TestIdentityAndAuthUrl:
    @pytest.mark.asyncio
    async def test_me_returns_user_after_first_exchange(self, app_client, fake_notion, make_token):
        fake_notion.issue("code-1", "ws_1")
        user_id = str(uuid.uuid4())
        token = make_token(email="ada@example.com", user_id=user_id)

        before = await app_client.get("/api/v1/auth/me", headers=_auth(token))
        await app_client.post("/api/v1/connect/token", json={"code": "code-1"}, headers=_auth(token))
        after = await app_client.get("/api/v1/auth/me", headers=_auth(token))

        assert before.status_code == 404
        assert after.status_code == 200
        assert after.json() == {"user_id": user_id, "email": "ada@example.com", "display_name": "ada"}

    @pytest.mark.asyncio
    async def test_auth_url_points_at_provider_consent(self, app_client, fake_notion, make_token):
        resp = await app_client.get("/api/v1/connect/auth-url", headers=_auth(make_token()))

        assert resp.status_code == 200
        body = resp.json()
        assert body["provider"] == "notion"
        assert body["auth_url"].startswith("https://api.notion.com/v1/oauth/authorize?")
        assert "client_id=test-client-id" in body["auth_url"]
        assert "owner=user" in body["auth_url"]
        assert "response_type=code" in body["auth_url"]

    @pytest.mark.asyncio
    async def test_health_reports_provider(self, app_client):
        resp = await app_client.get("/api/v1/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["provider_configured"] is True

    @pytest.mark.asyncio
    async def test_providers_lists_notion(self, app_client):
        resp = await app_client.get("/api/v1/connect/providers")

        assert resp.status_code == 200
        assert resp.json() == [{"provider": "notion", "display_name": "Notion", "configured": True}]


class TestChangedEmail:
    @pytest.mark.asyncio
    async def test_reissued_credential_with_new_email_can_disconnect(self, app_client, fake_notion, make_token):
        fake_notion.issue("code-1", "ws_1")
        user_id = str(uuid.uuid4())
        old = make_token(email="ada@example.com", user_id=user_id)
        await app_client.post("/api/v1/connect/token", json={"code": "code-1"}, headers=_auth(old))

        new = make_token(email="ada.new@example.com", user_id=user_id)
        me = await app_client.get("/api/v1/auth/me", headers=_auth(new))
        assert me.json()["email"] == "ada.new@example.com"

        resp = await app_client.post(
            "/api/v1/connect/disconnect",
            params={"email": me.json()["email"]},
            headers=_auth(new),
        )

        assert resp.status_code == 200
        assert resp.json() == {"success": True}
        status = await app_client.get("/api/v1/connect/status", headers=_auth(new))
        assert status.json()["connected"] is False

    @pytest.mark.asyncio
    async def test_exchange_updates_stored_email(self, app_client, fake_notion, make_token):
        fake_notion.issue("code-1", "ws_1")
        fake_notion.issue("code-2", "ws_2")
        user_id = str(uuid.uuid4())

        await app_client.post(
            "/api/v1/connect/token",
            json={"code": "code-1"},
            headers=_auth(make_token(email="ada@example.com", user_id=user_id)),
        )
        await app_client.post(
            "/api/v1/connect/token",
            json={"code": "code-2"},
            headers=_auth(make_token(email="ada.new@example.com", user_id=user_id)),
        )

        me = await app_client.get(
            "/api/v1/auth/me",
            headers=_auth(make_token(email="", user_id=user_id)),
        )
        assert me.json()["email"] == "ada.new@example.com"
