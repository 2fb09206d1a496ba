"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.
"""
from dotts_api.db.models.profile import Profile
from dotts_api.db.models.billing_customer import BillingCustomer
from dotts_api.db.models.subscription import Subscription

__all__ = [
    "Profile",
    "BillingCustomer",
    "Subscription",
]
