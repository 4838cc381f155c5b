"""Provider service — registration and listing of provider accounts.

A provider's approval status lives on its linked account (profiles.status);
approve/reject themselves are in moderation_service.

Usage:
    from app.services.provider_service import register_provider, get_providers_by_status
"""

import logging

from sqlalchemy.orm import Session, joinedload

from ..models import Profile, Provider
from ..schemas.accounts import ProviderRegistration
from .audit_service import notify_admins

log = logging.getLogger(__name__)

# Account status → label shown to the provider
APPROVAL_STATUS_LABELS = {
    "email_unconfirmed": "Awaiting email confirmation",
    "pending": "Pending approval",
    "approved": "Approved",
    "rejected": "Rejected",
    "suspended": "Suspended",
}


def provider_to_dict(p: Provider) -> dict:
    status = p.user.status if p.user else "pending"
    return {
        "id": p.id,
        "user_id": p.user_id,
        "business_name": p.business_name,
        "business_email": p.business_email,
        "business_phone": p.business_phone,
        "city": p.city,
        "status": status,
        "status_label": APPROVAL_STATUS_LABELS.get(status, status),
        "subscription_status": p.subscription_status,
        "subscription_plan": p.subscription_plan,
        "total_listings": p.total_listings or 0,
        "total_views": p.total_views or 0,
        "total_inquiries": p.total_inquiries or 0,
        "approved_at": p.approved_at.isoformat() if p.approved_at else None,
        "approved_by": p.approved_by,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def _live_providers(db: Session):
    return (
        db.query(Provider)
        .join(Profile, Provider.user_id == Profile.id)
        .filter(Profile.deleted_at.is_(None))
        .options(joinedload(Provider.user))
    )


def get_all_providers(db: Session) -> list[dict]:
    rows = _live_providers(db).order_by(Provider.created_at.desc()).all()
    return [provider_to_dict(p) for p in rows]


def get_providers_by_status(db: Session, status: str) -> list[dict]:
    """Providers whose linked account is in the given status."""
    rows = (
        _live_providers(db)
        .filter(Profile.status == status)
        .order_by(Provider.created_at.desc())
        .all()
    )
    return [provider_to_dict(p) for p in rows]


def get_provider_by_user(db: Session, user_id: str) -> Provider | None:
    return db.query(Provider).filter(Provider.user_id == user_id).first()


def register_provider(db: Session, user: Profile, body: ProviderRegistration) -> dict:
    """Create the provider row for an account. Starts inactive on the basic plan."""
    if get_provider_by_user(db, user.id):
        return {"error": "Provider profile already exists", "status": 409}

    provider = Provider(
        user_id=user.id,
        business_name=body.business_name,
        business_email=body.business_email,
        business_phone=body.business_phone,
        city=body.city,
        subscription_status="inactive",
        subscription_plan="basic",
    )
    if user.role != "admin":
        user.role = "provider"
        if user.status == "approved":
            user.status = "pending"
    db.add(provider)
    db.commit()
    log.info(f"Provider registered: {provider.business_name} ({user.email})")

    notify_admins(
        db, "provider_registration", "New provider registration",
        f"{provider.business_name} ({provider.business_email}) is awaiting approval.",
        related_entity_type="provider", related_entity_id=provider.id,
    )
    return provider_to_dict(provider)
