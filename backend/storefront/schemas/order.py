# storefront/schemas/order.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Order statuses (values are stored and sent over the wire exactly like this)
OrderStatus = Literal[
    "Not Process",
    "Processing",
    "Shipped",
    "deliverd",
    "cancel",
]

DEFAULT_STATUS: str = "Not Process"
TERMINAL_STATUSES: FrozenSet[str] = frozenset({"deliverd", "cancel"})

# Forward path plus cancel from any non-terminal state. Only enforced in strict mode.
ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "Not Process": frozenset({"Processing", "cancel"}),
    "Processing": frozenset({"Shipped", "cancel"}),
    "Shipped": frozenset({"deliverd", "cancel"}),
    "deliverd": frozenset(),
    "cancel": frozenset(),
}


# Keep extra fields so older documents are not trimmed in responses
class _Base(BaseModel):
    model_config = ConfigDict(extra="allow")


# Product line captured at order time; never re-read from the catalog
class OrderProductOut(_Base):
    product_id: str
    name: str
    price: float
    quantity: int = 1
    line_total: float


class PaymentOut(_Base):
    transaction_id: Optional[str] = None
    status: Optional[str] = None
    amount: Optional[float] = None
    success: bool = False
    simulated: Optional[bool] = None


class OrderOut(_Base):
    id: str
    buyer: str
    buyer_name: Optional[str] = None
    status: OrderStatus
    products: List[OrderProductOut] = Field(default_factory=list)
    payment: PaymentOut
    total: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus = Field(..., description="Target status")
