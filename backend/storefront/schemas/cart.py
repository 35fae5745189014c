"""
storefront/schemas/cart.py - Pydantic models for cart lines and the payment request body.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CartItem(BaseModel):
    """Product snapshot as the client holds it in its cart (`_id` on the wire)."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    product_id: str = Field(..., alias="_id", description="ID of the product")
    name: str = Field(..., description="Name of the product")
    price: float = Field(..., description="Price per unit at the time of adding to cart")
    quantity: int = Field(1, ge=1, description="Quantity; 1 when absent")

    @field_validator("quantity", mode="before")
    @classmethod
    def _default_quantity(cls, v):
        return 1 if v is None else v

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class PaymentBody(BaseModel):
    """Body of POST /api/v1/product/braintree/payment. Emptiness is checked by the checkout service."""
    nonce: Optional[str] = Field(None, description="Payment method nonce from the hosted form")
    cart: Optional[List[CartItem]] = Field(None, description="Cart lines at submit time")
