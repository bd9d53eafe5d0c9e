# 📂 backend/fulfillment/schemas.py — Pydantic contracts for the fulfillment API
# --------------------------------------------------------
# - Inbound payloads (provision, notify)
# - Order record as relayed by the storefront for admin notifications
# - Response bodies

from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ======================
# 📥 Requests
# ======================
class ProvisionRequest(BaseModel):
    order_id: Optional[int] = Field(None, description="Order to provision")


class NotifyRequest(BaseModel):
    # items are validated one by one, a bad record must not reject the batch
    orders: Optional[List[Any]] = Field(None, description="Order records to relay to the admin chat")


class OrderNotice(BaseModel):
    """
    Order-like record posted by the storefront (already joined with the product).
    Not re-fetched from the database.
    """
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: Union[int, str]
    username: Optional[str] = None
    product_name: Optional[str] = None
    payment_method: Optional[str] = None
    contact_email: Optional[str] = None
    status: str
    product_category: Optional[str] = None
    pterodactyl_server_id: Optional[str] = None
    payment_proof: Optional[str] = None


# ======================
# 📤 Responses
# ======================
class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
