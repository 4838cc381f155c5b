"""Database models — re-exports all models.

Import from here:  from app.models import Profile, Property, ...
Or from submodules: from app.models.listings import Property
"""

from .base import Base  # noqa: F401

# Accounts & Providers
from .accounts import Profile, Provider, UserProgress  # noqa: F401

# Listings: Properties, children, Land, Commercial
from .listings import (  # noqa: F401
    CommercialAmenity,
    CommercialPropertyDetails,
    Inquiry,
    LandDetails,
    LandDocument,
    Property,
    PropertyAmenity,
    PropertyAnalytics,
    PropertyFeatures,
    PropertyImage,
    PropertyLocation,
    PropertyUtility,
    PropertyView,
)

# Architectural Plans
from .plans import ArchitecturalPlan, PlanFile, PlanPurchase  # noqa: F401

# Audit, Notifications, Tracking
from .activity import (  # noqa: F401
    AdminActivityLog,
    ProviderNotification,
    RevenueRecord,
    SystemNotification,
    UserActivity,
)
