"""
test_routers_admin.py — HTTP tests for the admin back office routes.

ActionResult bodies and their status mapping, role gating, moderation
queues and the realtime websocket handshake.

Called by: pytest
Depends on: app/routers/admin.py, conftest.py
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.models import AdminActivityLog, Property
from app.services.auth_service import hash_password


class TestRoleGate:
    def test_provider_forbidden(self, provider_client):
        resp = provider_client.get("/api/admin/users")
        assert resp.status_code == 403
        assert resp.json()["error"] == "Admin access required"

    def test_anonymous_unauthorized(self, client):
        assert client.get("/api/admin/users").status_code == 401


class TestUsers:
    def test_list_and_stats(self, admin_client, test_user, provider_user):
        body = admin_client.get("/api/admin/users", params={"role": "user"}).json()
        assert [u["email"] for u in body["users"]] == ["buyer@estates.test"]

        stats = admin_client.get("/api/admin/users/stats").json()
        assert stats["total_users"] == 3
        assert stats["users_by_role"]["provider"] == 1

    def test_suspend_requires_reason(self, admin_client, test_user):
        resp = admin_client.post(f"/api/admin/users/{test_user.id}/suspend", json={"reason": "  "})
        assert resp.status_code == 422

    def test_suspend_and_activate(self, admin_client, db_session, test_user):
        resp = admin_client.post(f"/api/admin/users/{test_user.id}/suspend", json={"reason": "Spam"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "User suspended successfully", "error": None}

        resp = admin_client.post(f"/api/admin/users/{test_user.id}/activate")
        assert resp.json()["success"] is True

    def test_cannot_suspend_self(self, admin_client, admin_user):
        resp = admin_client.post(f"/api/admin/users/{admin_user.id}/suspend", json={"reason": "x"})
        assert resp.status_code == 400

    def test_missing_user_is_404_with_body(self, admin_client):
        resp = admin_client.post("/api/admin/users/missing/activate")
        assert resp.status_code == 404
        assert resp.json()["success"] is False
        assert resp.json()["message"] == "User not found"

    def test_soft_delete(self, admin_client, db_session, test_user):
        resp = admin_client.request("DELETE", f"/api/admin/users/{test_user.id}", json={"reason": "Duplicate"})
        assert resp.status_code == 200
        db_session.refresh(test_user)
        assert test_user.deleted_at is not None


class TestListingModeration:
    def test_pending_queue_then_approve(self, admin_client, db_session, test_property):
        queue = admin_client.get("/api/admin/properties").json()
        assert [p["id"] for p in queue] == [test_property.id]

        resp = admin_client.post(f"/api/admin/properties/{test_property.id}/approve")
        assert resp.json()["success"] is True
        assert db_session.get(Property, test_property.id).status == "published"
        assert admin_client.get("/api/admin/properties").json() == []

    def test_reject_property(self, admin_client, test_property):
        resp = admin_client.post(
            f"/api/admin/properties/{test_property.id}/reject", json={"reason": "Poor quality images"}
        )
        assert resp.json()["success"] is True
        rejected = admin_client.get("/api/admin/properties", params={"status": "rejected"}).json()
        assert rejected[0]["rejection_reason"] == "Poor quality images"

    def test_reject_provider_default_reason(self, admin_client, test_provider):
        resp = admin_client.post(f"/api/admin/providers/{test_provider.id}/reject")
        assert resp.json()["success"] is True
        rejected = admin_client.get("/api/admin/providers", params={"status": "rejected"}).json()
        assert [p["id"] for p in rejected] == [test_provider.id]

    def test_plan_moderation(self, admin_client, test_plan):
        assert admin_client.post(f"/api/admin/plans/{test_plan.id}/approve").json()["success"] is True
        assert admin_client.post("/api/admin/plans/missing/approve").status_code == 404

    def test_rejection_reasons(self, admin_client):
        reasons = admin_client.get("/api/admin/rejection-reasons").json()
        assert "Unrealistic pricing" in reasons


class TestFeedAndAnalytics:
    def test_activity_feed(self, admin_client, db_session, admin_user):
        db_session.add(AdminActivityLog(admin_id=admin_user.id, action_type="approve", target_type="plan"))
        db_session.commit()
        items = admin_client.get("/api/admin/activity").json()
        assert items[0]["admin_name"] == "Test Admin"

    def test_notifications_mark_missing(self, admin_client):
        resp = admin_client.post("/api/admin/notifications/missing/read")
        assert resp.status_code == 500
        assert resp.json()["error"] == "Notification not found"

    def test_dashboard(self, admin_client, published_property):
        body = admin_client.get("/api/admin/analytics", params={"days": 7}).json()
        assert body["overview"]["total_properties"] == 1
        assert body["overview"]["revenue_is_estimate"] is True
        assert len(body["user_growth"]) == 7

    def test_growth(self, admin_client):
        body = admin_client.get("/api/admin/analytics/growth").json()
        assert body["users"]["formatted"]["text"].endswith("from last month")

    def test_health(self, admin_client):
        body = admin_client.get("/api/admin/health").json()
        assert body["db_stats"]["profiles"] == 1

    def test_connectivity(self, admin_client):
        body = admin_client.get("/api/admin/connectivity").json()
        assert body["database"]["ok"] is True


class TestRealtimeSocket:
    def test_rejects_without_admin_session(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/api/admin/realtime") as ws:
                ws.receive_json()

    def test_streams_initial_snapshots(self, db_session, client: TestClient):
        from app.models import Profile

        admin = Profile(email="ops@estates.test", name="Ops Admin", role="admin", status="approved",
                        password_hash=hash_password("admin-password"))
        db_session.add(admin)
        db_session.commit()

        resp = client.post("/api/auth/signin", json={"email": "ops@estates.test", "password": "admin-password"})
        assert resp.status_code == 200

        with client.websocket_connect("/api/admin/realtime") as ws:
            types = {ws.receive_json()["type"] for _ in range(3)}
        assert types == {"connection", "activity", "notifications"}
