"""
Pydantic schemas for billing endpoints.

Request fields use the camelCase names the front-end sends.
"""
from typing import Dict, Optional
from pydantic import BaseModel, Field


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for creating checkout session."""
    user_id: Optional[str] = Field(None, alias="userId", description="Local user id")
    email: Optional[str] = Field(None, description="Contact email, used when no user id is sent")
    plan: str = Field("monthly", description="Plan selector: 'monthly' or 'annual'")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "userId": "6f1c2a8e-0b7d-4a43-9d55-3f0f1b2c9e10",
                "plan": "annual"
            }
        }


class CreatePortalSessionRequest(BaseModel):
    """Request schema for creating portal session."""
    user_id: Optional[str] = Field(None, alias="userId", description="Local user id")
    email: Optional[str] = Field(None, description="Contact email, searched in Stripe when no user id is sent")

    class Config:
        populate_by_name = True


class SessionUrlResponse(BaseModel):
    """Redirect URL for a Checkout or billing portal session."""
    url: str = Field(..., description="Stripe-hosted session URL")


class PricesResponse(BaseModel):
    monthly: Optional[str] = None
    annual: Optional[str] = None


class StripeConfigResponse(BaseModel):
    """Public Stripe configuration for the front-end."""
    publishableKey: Optional[str] = None
    prices: PricesResponse


class WebhookAck(BaseModel):
    received: bool = True


class BillingErrorResponse(BaseModel):
    """Error response schema for billing operations."""
    error: str = Field(..., description="Error code")
    detail: Optional[str] = Field(None, description="Additional error details")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "missing_price_id",
                "detail": "No Stripe price configured for plan=annual"
            }
        }


ERROR_RESPONSES: Dict[int, dict] = {
    400: {"model": BillingErrorResponse},
    404: {"model": BillingErrorResponse},
    500: {"model": BillingErrorResponse},
    502: {"model": BillingErrorResponse},
    503: {"model": BillingErrorResponse},
}
