"""
storefront/schemas/principal.py
Buyer model shared by the authorization guard and the checkout orchestrator.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Buyer(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., alias="_id", description="User id (Firebase UID)")
    name: str = Field("", description="Display name")
    email: Optional[str] = Field(None, description="E-mail")
    phone: Optional[str] = Field(None, description="Phone")
    address: Optional[str] = Field(None, description="Shipping address")
    role: str = Field("customer", description="customer | admin")
    # Client side only; the server never echoes it back
    token: Optional[str] = Field(None, exclude=True, description="Session (ID) token")

    @property
    def authenticated(self) -> bool:
        return bool((self.token or "").strip())

    @property
    def has_address(self) -> bool:
        return bool((self.address or "").strip())
