"""
test_moderation_service.py — Tests for the moderation workflow.

Accounts, providers, properties and plans through approve / reject /
suspend / activate / soft-delete. SQLite has no moderation functions, so
most calls exercise the client-side fallback path: state change, then
audit row, then owner notification. TestAtomicPath patches call_rpc to
cover the database-function path.

Called by: pytest
Depends on: app/services/moderation_service.py, app/services/provider_service.py, conftest.py
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from app.models import AdminActivityLog, ArchitecturalPlan, Profile, Property, ProviderNotification
from app.schemas.responses import ActionResult
from app.services import moderation_service
from app.services.provider_service import get_providers_by_status


def _logs(db, **filters):
    return db.query(AdminActivityLog).filter_by(**filters).all()


def _notes(db, user_id):
    return db.query(ProviderNotification).filter_by(user_id=user_id).all()


# ── Properties ──────────────────────────────────────────────────────


class TestApproveProperty:
    def test_approve_pending_property(self, db_session, admin_user, test_property, provider_user):
        test_property.rejection_reason = "Poor quality images"
        db_session.commit()

        result = moderation_service.approve_property(db_session, test_property.id, admin_user.id)

        assert result.success is True
        db_session.refresh(test_property)
        assert test_property.status == "published"
        assert test_property.published_at is not None
        assert test_property.rejection_reason is None
        assert test_property.approved_by == admin_user.id

        logs = _logs(db_session, target_id=test_property.id)
        assert len(logs) == 1
        assert logs[0].action_type == "approve"
        assert logs[0].target_type == "property"
        assert logs[0].admin_id == admin_user.id

        notes = _notes(db_session, provider_user.id)
        assert len(notes) == 1
        assert notes[0].related_entity_id == test_property.id

    def test_approve_missing_property(self, db_session, admin_user):
        result = moderation_service.approve_property(db_session, "nope", admin_user.id)
        assert result.success is False
        assert result.message == "Property not found"
        assert _logs(db_session) == []

    def test_admin_authored_property_has_no_owner_notification(self, db_session, admin_user, property_factory):
        prop = property_factory(None)
        result = moderation_service.approve_property(db_session, prop.id, admin_user.id)
        assert result.success is True
        assert db_session.query(ProviderNotification).count() == 0


class TestRejectProperty:
    def test_reject_records_reason(self, db_session, admin_user, test_property, provider_user):
        result = moderation_service.reject_property(
            db_session, test_property.id, admin_user.id, "Unrealistic pricing"
        )
        assert result.success is True
        db_session.refresh(test_property)
        assert test_property.status == "rejected"
        assert test_property.rejection_reason == "Unrealistic pricing"
        assert test_property.rejected_by == admin_user.id
        assert test_property.rejected_at is not None
        assert test_property.published_at is None

        notes = _notes(db_session, provider_user.id)
        assert len(notes) == 1
        assert "Unrealistic pricing" in notes[0].message

    def test_approval_clears_rejection_fields(self, db_session, admin_user, test_property):
        moderation_service.reject_property(db_session, test_property.id, admin_user.id, "Duplicate listing")
        moderation_service.approve_property(db_session, test_property.id, admin_user.id)
        db_session.refresh(test_property)
        assert test_property.status == "published"
        assert test_property.rejection_reason is None
        assert test_property.rejected_at is None
        assert test_property.rejected_by is None

    def test_rejection_clears_approval_fields(self, db_session, admin_user, test_property):
        moderation_service.approve_property(db_session, test_property.id, admin_user.id)
        moderation_service.reject_property(db_session, test_property.id, admin_user.id, "Duplicate listing")
        db_session.refresh(test_property)
        assert test_property.published_at is None
        assert test_property.approved_by is None


class TestBestEffortBookkeeping:
    def test_failed_audit_write_does_not_change_result(self, db_session, admin_user, test_property):
        with patch("app.services.audit_service.AdminActivityLog", side_effect=OperationalError("x", {}, None)):
            result = moderation_service.approve_property(db_session, test_property.id, admin_user.id)
        assert result.success is True
        assert db_session.get(Property, test_property.id).status == "published"

    def test_failed_state_change_reports_failure(self, db_session, admin_user, test_property):
        with patch.object(db_session, "commit", side_effect=OperationalError("x", {}, None)):
            result = moderation_service.approve_property(db_session, test_property.id, admin_user.id)
        assert result.success is False
        assert result.message == "Failed to approve property"
        assert result.error


# ── Providers ───────────────────────────────────────────────────────


class TestProviderModeration:
    def test_reject_provider_with_reason(self, db_session, admin_user, test_provider, provider_user):
        result = moderation_service.reject_provider(
            db_session, test_provider.id, admin_user.id, "Incomplete documentation"
        )
        assert result.success is True
        db_session.refresh(provider_user)
        assert provider_user.status == "rejected"

        notes = _notes(db_session, provider_user.id)
        assert len(notes) == 1
        assert "Incomplete documentation" in notes[0].message

        approved_ids = [p["id"] for p in get_providers_by_status(db_session, "approved")]
        assert test_provider.id not in approved_ids

    def test_reject_provider_stamps_reviewer(self, db_session, admin_user, test_provider):
        moderation_service.reject_provider(db_session, test_provider.id, admin_user.id)
        db_session.refresh(test_provider)
        assert test_provider.approved_by == admin_user.id
        assert test_provider.approved_at is None

    def test_approve_pending_provider(self, db_session, admin_user, pending_provider):
        result = moderation_service.approve_provider(db_session, pending_provider.id, admin_user.id)
        assert result.success is True
        db_session.refresh(pending_provider)
        assert pending_provider.user.status == "approved"
        assert pending_provider.approved_at is not None
        assert pending_provider.subscription_status == "active"
        ids = [p["id"] for p in get_providers_by_status(db_session, "approved")]
        assert pending_provider.id in ids

    def test_provider_of_deleted_account_not_found(self, db_session, admin_user, pending_provider):
        moderation_service.delete_user(db_session, pending_provider.user_id, admin_user.id)
        result = moderation_service.approve_provider(db_session, pending_provider.id, admin_user.id)
        assert result.success is False
        assert result.message == "Provider not found"

    def test_delete_provider_soft_deletes_account(self, db_session, admin_user, test_provider, provider_user):
        result = moderation_service.delete_provider(db_session, test_provider.id, admin_user.id)
        assert result.success is True
        db_session.refresh(provider_user)
        assert provider_user.deleted_at is not None


# ── Accounts ────────────────────────────────────────────────────────


class TestAccountModeration:
    def test_suspend_then_activate(self, db_session, admin_user, test_user):
        result = moderation_service.suspend_user(db_session, test_user.id, admin_user.id, "Spam listings")
        assert result.success is True
        db_session.refresh(test_user)
        assert test_user.status == "suspended"
        assert test_user.suspension_reason == "Spam listings"
        assert test_user.suspended_at is not None

        result = moderation_service.activate_user(db_session, test_user.id, admin_user.id)
        assert result.success is True
        db_session.refresh(test_user)
        assert test_user.status == "approved"
        assert test_user.suspension_reason is None
        assert test_user.suspended_at is None

        actions = [log.action_type for log in _logs(db_session, target_id=test_user.id)]
        assert sorted(actions) == ["activate", "suspend"]

    def test_soft_delete_keeps_row(self, db_session, admin_user, test_user):
        result = moderation_service.delete_user(db_session, test_user.id, admin_user.id, "Requested by user")
        assert result.success is True
        row = db_session.get(Profile, test_user.id)
        assert row is not None
        assert row.deleted_at is not None
        assert row.deletion_reason == "Requested by user"

    def test_deleted_account_is_not_found(self, db_session, admin_user, test_user):
        moderation_service.delete_user(db_session, test_user.id, admin_user.id)
        for result in (
            moderation_service.suspend_user(db_session, test_user.id, admin_user.id, "x"),
            moderation_service.activate_user(db_session, test_user.id, admin_user.id),
            moderation_service.delete_user(db_session, test_user.id, admin_user.id),
        ):
            assert result.success is False
            assert result.message == "User not found"


# ── Plans ───────────────────────────────────────────────────────────


class TestPlanModeration:
    def test_approve_plan(self, db_session, admin_user, test_plan, provider_user):
        result = moderation_service.approve_plan(db_session, test_plan.id, admin_user.id)
        assert result.success is True
        plan = db_session.get(ArchitecturalPlan, test_plan.id)
        assert plan.status == "published"
        assert plan.approved_at is not None
        assert plan.published_at is not None
        assert len(_notes(db_session, provider_user.id)) == 1

    def test_reject_plan(self, db_session, admin_user, test_plan, provider_user):
        moderation_service.approve_plan(db_session, test_plan.id, admin_user.id)
        result = moderation_service.reject_plan(db_session, test_plan.id, admin_user.id, "Missing required documents")
        assert result.success is True
        plan = db_session.get(ArchitecturalPlan, test_plan.id)
        assert plan.status == "rejected"
        assert plan.approved_at is None
        assert plan.published_at is None
        assert plan.rejection_reason == "Missing required documents"

    def test_missing_plan(self, db_session, admin_user):
        result = moderation_service.reject_plan(db_session, "missing", admin_user.id, "x")
        assert result.message == "Plan not found"


# ── Database-function path ──────────────────────────────────────────


class TestAtomicPath:
    """When the moderation functions are installed, one call does everything."""

    def test_success_skips_client_path(self, db_session, admin_user, test_property, provider_user):
        with patch("app.services.moderation_service.call_rpc", return_value=True) as rpc:
            result = moderation_service.approve_property(db_session, test_property.id, admin_user.id)

        assert result.success is True
        assert result.message == "Property approved successfully"
        rpc.assert_called_once_with(
            db_session, "approve_property_with_logging",
            p_property_id=test_property.id, p_admin_id=admin_user.id,
        )
        # the function owns the state change, audit row and notification
        assert db_session.get(Property, test_property.id).status == "pending"
        assert _logs(db_session) == []
        assert _notes(db_session, provider_user.id) == []

    def test_false_result_is_not_found(self, db_session, admin_user, test_property):
        with patch("app.services.moderation_service.call_rpc", return_value=False):
            result = moderation_service.reject_property(db_session, test_property.id, admin_user.id, "Duplicate")

        assert result.success is False
        assert result.message == "Property not found"
        assert db_session.get(Property, test_property.id).status == "pending"
        assert _logs(db_session) == []

    @pytest.mark.parametrize("operation, args, message", [
        ("suspend_user", ("Spam",), "User suspended successfully"),
        ("activate_user", (), "User activated successfully"),
        ("delete_user", (), "User deleted successfully"),
    ])
    def test_account_operations(self, db_session, admin_user, test_user, operation, args, message):
        with patch("app.services.moderation_service.call_rpc", return_value=True):
            result = getattr(moderation_service, operation)(db_session, test_user.id, admin_user.id, *args)

        assert result.message == message
        user = db_session.get(Profile, test_user.id)
        assert user.status == "approved"
        assert user.deleted_at is None
        assert _logs(db_session) == []

    def test_missing_plan(self, db_session, admin_user):
        with patch("app.services.moderation_service.call_rpc", return_value=False):
            result = moderation_service.approve_plan(db_session, "missing", admin_user.id)
        assert result == ActionResult.fail("Plan not found")

    def test_provider_not_found(self, db_session, admin_user):
        with patch("app.services.moderation_service.call_rpc", return_value=None):
            result = moderation_service.approve_provider(db_session, "missing", admin_user.id)
        assert result.success is False
        assert result.message == "Provider not found"
