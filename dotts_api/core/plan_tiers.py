"""
Plan tiers derived from Stripe subscription status.

The tier is denormalized onto profiles.plan for access checks.
"""
from typing import Optional

PLAN_FREE = "free"
PLAN_PREMIUM = "premium"

# Statuses that grant paid access
PAID_ACCESS_STATUSES = frozenset({"active", "trialing"})

# Statuses we know about; anything else is stored as-is and treated as unpaid
KNOWN_STATUSES = frozenset({
    "active",
    "trialing",
    "past_due",
    "unpaid",
    "canceled",
    "incomplete",
    "incomplete_expired",
    "paused",
})


def plan_tier_for_status(status: Optional[str]) -> str:
    """Return 'premium' for paid-access statuses and 'free' for everything else."""
    if status and status.lower() in PAID_ACCESS_STATUSES:
        return PLAN_PREMIUM
    return PLAN_FREE
