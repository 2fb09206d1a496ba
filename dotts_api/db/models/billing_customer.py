from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from dotts_api.db.base import Base


class BillingCustomer(Base):
    """Links one local user to one Stripe customer. Immutable once written."""

    __tablename__ = "billing_customers"

    user_id = Column(String, ForeignKey("profiles.id"), primary_key=True)
    stripe_customer_id = Column(String, nullable=False, unique=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
