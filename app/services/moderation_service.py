"""
moderation_service.py — Approve / reject / suspend / activate / soft-delete

Drives accounts, providers, properties and architectural plans through
their approval state machines. Every operation is a with_fallback() pair:

  1. atomic path: one PostgreSQL function does state change + audit row +
     owner notification in a single transaction (rpc.call_rpc)
  2. client path: commit the state change, then best-effort audit row,
     then best-effort owner notification (audit_service)

Business Rules:
- The primary state change alone decides the reported result; a failed
  audit or notification write after it is logged, not retried, not reported
- Soft-deleted accounts are invisible: moderating them returns "not found"
- Approval and rejection field-sets are mutually exclusive on the entity
- Property/plan approval → status published + published_at now
- Rejections echo the reason verbatim in the owner notification
- Provider approve/reject is a status change on the linked account; the
  provider row is stamped with the reviewing admin
- Concurrent moderation of the same entity is last-write-wins

Called by: routers/admin.py
Depends on: fallback.py, rpc.py, services/audit_service.py, models
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..fallback import with_fallback
from ..models import ArchitecturalPlan, Profile, Property, Provider
from ..rpc import call_rpc
from ..schemas.responses import ActionResult
from .audit_service import log_admin_action, notify_owner

log = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _commit(db: Session, failure_message: str) -> ActionResult | None:
    """Commit the primary state change. Returns a failure result, or None on success."""
    try:
        db.commit()
        return None
    except SQLAlchemyError as e:
        db.rollback()
        log.error(f"{failure_message}: {e}")
        return ActionResult.fail(failure_message, str(e))


def _active_profile(db: Session, user_id: str) -> Profile | None:
    return (
        db.query(Profile)
        .filter(Profile.id == user_id, Profile.deleted_at.is_(None))
        .first()
    )


def _rpc_result(found, success_message: str, not_found_message: str) -> ActionResult:
    if not found:
        return ActionResult.fail(not_found_message)
    return ActionResult.ok(success_message)


# ── Accounts ──────────────────────────────────────────────────────────


def _suspend_user_rpc(db: Session, user_id: str, admin_id: str, reason: str) -> ActionResult:
    found = call_rpc(
        db, "suspend_user_with_logging", p_user_id=user_id, p_admin_id=admin_id, p_reason=reason
    )
    return _rpc_result(found, "User suspended successfully", "User not found")


def _suspend_user(db: Session, user_id: str, admin_id: str, reason: str) -> ActionResult:
    user = _active_profile(db, user_id)
    if not user:
        return ActionResult.fail("User not found")

    user.status = "suspended"
    user.suspension_reason = reason
    user.suspended_at = _now()
    failed = _commit(db, "Failed to suspend user")
    if failed:
        return failed

    log.info(f"Admin {admin_id} suspended {user.email}: {reason}")
    log_admin_action(db, admin_id, "suspend", "user", user.id, user.email, {"reason": reason})
    notify_owner(
        db, user.id, "account_suspended", "Account suspended",
        f"Your account has been suspended. Reason: {reason}",
        severity="warning", related_entity_type="user", related_entity_id=user.id,
    )
    return ActionResult.ok("User suspended successfully")


def _activate_user_rpc(db: Session, user_id: str, admin_id: str) -> ActionResult:
    found = call_rpc(db, "activate_user_with_logging", p_user_id=user_id, p_admin_id=admin_id)
    return _rpc_result(found, "User activated successfully", "User not found")


def _activate_user(db: Session, user_id: str, admin_id: str) -> ActionResult:
    user = _active_profile(db, user_id)
    if not user:
        return ActionResult.fail("User not found")

    previous = user.status
    user.status = "approved"
    user.suspension_reason = None
    user.suspended_at = None
    failed = _commit(db, "Failed to activate user")
    if failed:
        return failed

    log.info(f"Admin {admin_id} activated {user.email} (was {previous})")
    log_admin_action(db, admin_id, "activate", "user", user.id, user.email, {"previous_status": previous})
    notify_owner(
        db, user.id, "account_activated", "Account activated",
        "Your account is active again.",
        severity="success", related_entity_type="user", related_entity_id=user.id,
    )
    return ActionResult.ok("User activated successfully")


def _delete_user_rpc(db: Session, user_id: str, admin_id: str, reason: str = "Admin deletion") -> ActionResult:
    found = call_rpc(
        db, "soft_delete_user_with_logging", p_user_id=user_id, p_admin_id=admin_id, p_reason=reason
    )
    return _rpc_result(found, "User deleted successfully", "User not found")


def _delete_user(db: Session, user_id: str, admin_id: str, reason: str = "Admin deletion") -> ActionResult:
    user = _active_profile(db, user_id)
    if not user:
        return ActionResult.fail("User not found")

    user.deleted_at = _now()
    user.deletion_reason = reason
    failed = _commit(db, "Failed to delete user")
    if failed:
        return failed

    log.info(f"Admin {admin_id} soft-deleted {user.email}: {reason}")
    log_admin_action(db, admin_id, "delete", "user", user.id, user.email, {"reason": reason})
    return ActionResult.ok("User deleted successfully")


suspend_user = with_fallback(_suspend_user_rpc, _suspend_user)
activate_user = with_fallback(_activate_user_rpc, _activate_user)
delete_user = with_fallback(_delete_user_rpc, _delete_user)


# ── Providers ─────────────────────────────────────────────────────────


def _provider_with_account(db: Session, provider_id: str) -> Provider | None:
    return (
        db.query(Provider)
        .join(Profile, Provider.user_id == Profile.id)
        .filter(Provider.id == provider_id, Profile.deleted_at.is_(None))
        .first()
    )


def _approve_provider_rpc(db: Session, provider_id: str, admin_id: str) -> ActionResult:
    found = call_rpc(
        db, "approve_provider_with_notification", p_provider_id=provider_id, p_admin_id=admin_id
    )
    return _rpc_result(found, "Provider approved successfully", "Provider not found")


def _approve_provider(db: Session, provider_id: str, admin_id: str) -> ActionResult:
    provider = _provider_with_account(db, provider_id)
    if not provider:
        return ActionResult.fail("Provider not found")

    provider.user.status = "approved"
    provider.approved_at = _now()
    provider.approved_by = admin_id
    provider.subscription_status = "active"
    failed = _commit(db, "Failed to approve provider")
    if failed:
        return failed

    log.info(f"Admin {admin_id} approved provider {provider.business_name}")
    log_admin_action(
        db, admin_id, "approve", "provider", provider.id, provider.business_email,
        {"business_name": provider.business_name},
    )
    notify_owner(
        db, provider.user_id, "provider_approved", "Provider account approved",
        f"{provider.business_name} is approved. You can now publish listings.",
        severity="success", related_entity_type="provider", related_entity_id=provider.id,
    )
    return ActionResult.ok("Provider approved successfully")


def _reject_provider_rpc(db: Session, provider_id: str, admin_id: str,
                         reason: str = "No reason provided") -> ActionResult:
    found = call_rpc(
        db, "reject_provider_with_notification",
        p_provider_id=provider_id, p_admin_id=admin_id, p_reason=reason,
    )
    return _rpc_result(found, "Provider rejected successfully", "Provider not found")


def _reject_provider(db: Session, provider_id: str, admin_id: str,
                     reason: str = "No reason provided") -> ActionResult:
    provider = _provider_with_account(db, provider_id)
    if not provider:
        return ActionResult.fail("Provider not found")

    provider.user.status = "rejected"
    provider.approved_at = None
    provider.approved_by = admin_id  # reviewer
    provider.subscription_status = "inactive"
    failed = _commit(db, "Failed to reject provider")
    if failed:
        return failed

    log.info(f"Admin {admin_id} rejected provider {provider.business_name}: {reason}")
    log_admin_action(
        db, admin_id, "reject", "provider", provider.id, provider.business_email, {"reason": reason},
    )
    notify_owner(
        db, provider.user_id, "provider_rejected", "Provider application rejected",
        f"Your provider application was rejected. Reason: {reason}",
        severity="error", related_entity_type="provider", related_entity_id=provider.id,
    )
    return ActionResult.ok("Provider rejected successfully")


approve_provider = with_fallback(_approve_provider_rpc, _approve_provider)
reject_provider = with_fallback(_reject_provider_rpc, _reject_provider)


def delete_provider(db: Session, provider_id: str, admin_id: str) -> ActionResult:
    """Soft-delete the provider's linked account."""
    provider = db.get(Provider, provider_id)
    if not provider:
        return ActionResult.fail("Provider not found")
    result = delete_user(db, provider.user_id, admin_id, "Provider deleted by admin")
    if result.success:
        return ActionResult.ok("Provider deleted successfully")
    return result


# ── Properties ────────────────────────────────────────────────────────


def _owner_user_id(prop: Property) -> str | None:
    return prop.provider.user_id if prop.provider else None


def _approve_property_rpc(db: Session, property_id: str, admin_id: str) -> ActionResult:
    found = call_rpc(
        db, "approve_property_with_logging", p_property_id=property_id, p_admin_id=admin_id
    )
    return _rpc_result(found, "Property approved successfully", "Property not found")


def _approve_property(db: Session, property_id: str, admin_id: str) -> ActionResult:
    prop = db.get(Property, property_id)
    if not prop:
        return ActionResult.fail("Property not found")

    prop.status = "published"
    prop.published_at = _now()
    prop.approved_by = admin_id
    prop.rejection_reason = None
    prop.rejected_at = None
    prop.rejected_by = None
    failed = _commit(db, "Failed to approve property")
    if failed:
        return failed

    log.info(f"Admin {admin_id} approved property {prop.id} ({prop.title})")
    log_admin_action(db, admin_id, "approve", "property", prop.id, None, {"title": prop.title})
    notify_owner(
        db, _owner_user_id(prop), "property_approved", "Property approved",
        f'Your property "{prop.title}" is now live.',
        severity="success", related_entity_type="property", related_entity_id=prop.id,
    )
    return ActionResult.ok("Property approved successfully")


def _reject_property_rpc(db: Session, property_id: str, admin_id: str, reason: str) -> ActionResult:
    found = call_rpc(
        db, "reject_property_with_reason",
        p_property_id=property_id, p_admin_id=admin_id, p_reason=reason,
    )
    return _rpc_result(found, "Property rejected successfully", "Property not found")


def _reject_property(db: Session, property_id: str, admin_id: str, reason: str) -> ActionResult:
    prop = db.get(Property, property_id)
    if not prop:
        return ActionResult.fail("Property not found")

    prop.status = "rejected"
    prop.published_at = None
    prop.approved_by = None
    prop.rejection_reason = reason
    prop.rejected_at = _now()
    prop.rejected_by = admin_id
    failed = _commit(db, "Failed to reject property")
    if failed:
        return failed

    log.info(f"Admin {admin_id} rejected property {prop.id}: {reason}")
    log_admin_action(db, admin_id, "reject", "property", prop.id, None, {"title": prop.title, "reason": reason})
    notify_owner(
        db, _owner_user_id(prop), "property_rejected", "Property rejected",
        f'Your property "{prop.title}" was rejected. Reason: {reason}',
        severity="error", related_entity_type="property", related_entity_id=prop.id,
    )
    return ActionResult.ok("Property rejected successfully")


approve_property = with_fallback(_approve_property_rpc, _approve_property)
reject_property = with_fallback(_reject_property_rpc, _reject_property)


# ── Architectural Plans ───────────────────────────────────────────────


def _approve_plan_rpc(db: Session, plan_id: str, admin_id: str) -> ActionResult:
    found = call_rpc(db, "approve_architectural_plan", p_plan_id=plan_id, p_admin_id=admin_id)
    return _rpc_result(found, "Plan approved successfully", "Plan not found")


def _approve_plan(db: Session, plan_id: str, admin_id: str) -> ActionResult:
    plan = db.get(ArchitecturalPlan, plan_id)
    if not plan:
        return ActionResult.fail("Plan not found")

    now = _now()
    plan.status = "published"
    plan.approved_by = admin_id
    plan.approved_at = now
    plan.published_at = now
    plan.rejected_by = None
    plan.rejected_at = None
    plan.rejection_reason = None
    failed = _commit(db, "Failed to approve plan")
    if failed:
        return failed

    log.info(f"Admin {admin_id} approved plan {plan.id} ({plan.title})")
    log_admin_action(db, admin_id, "approve", "plan", plan.id, None, {"title": plan.title})
    notify_owner(
        db, plan.created_by, "plan_approved", "Plan approved",
        f'Your plan "{plan.title}" is now published.',
        severity="success", related_entity_type="plan", related_entity_id=plan.id,
    )
    return ActionResult.ok("Plan approved successfully")


def _reject_plan_rpc(db: Session, plan_id: str, admin_id: str, reason: str) -> ActionResult:
    found = call_rpc(
        db, "reject_architectural_plan", p_plan_id=plan_id, p_admin_id=admin_id, p_reason=reason
    )
    return _rpc_result(found, "Plan rejected successfully", "Plan not found")


def _reject_plan(db: Session, plan_id: str, admin_id: str, reason: str) -> ActionResult:
    plan = db.get(ArchitecturalPlan, plan_id)
    if not plan:
        return ActionResult.fail("Plan not found")

    plan.status = "rejected"
    plan.approved_by = None
    plan.approved_at = None
    plan.published_at = None
    plan.rejected_by = admin_id
    plan.rejected_at = _now()
    plan.rejection_reason = reason
    failed = _commit(db, "Failed to reject plan")
    if failed:
        return failed

    log.info(f"Admin {admin_id} rejected plan {plan.id}: {reason}")
    log_admin_action(db, admin_id, "reject", "plan", plan.id, None, {"title": plan.title, "reason": reason})
    notify_owner(
        db, plan.created_by, "plan_rejected", "Plan rejected",
        f'Your plan "{plan.title}" was rejected. Reason: {reason}',
        severity="error", related_entity_type="plan", related_entity_id=plan.id,
    )
    return ActionResult.ok("Plan rejected successfully")


approve_plan = with_fallback(_approve_plan_rpc, _approve_plan)
reject_plan = with_fallback(_reject_plan_rpc, _reject_plan)
