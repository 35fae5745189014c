from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from storefront.core.security import get_current_admin, get_current_user
from storefront.repositories.orders import IllegalTransition, OrderRepository, get_order_repository
from storefront.schemas.order import OrderOut, OrderStatusUpdate

router = APIRouter(prefix="/api/v1/auth", tags=["Orders"])
admin_router = APIRouter(prefix="/api/v1/auth", tags=["Admin Orders"], dependencies=[Depends(get_current_admin)])


@router.get("/orders", response_model=List[OrderOut])
def list_my_orders(
    current_user: dict = Depends(get_current_user),
    repository: OrderRepository = Depends(get_order_repository),
):
    """Orders of the signed-in buyer, newest first."""
    return repository.find_by_buyer(current_user["id"])


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order_detail(
    order_id: str,
    current_user: dict = Depends(get_current_user),
    repository: OrderRepository = Depends(get_order_repository),
):
    """Single order; buyers see their own, admins see all."""
    order = repository.find_by_id(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found.")
    if order["buyer"] != current_user["id"] and current_user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Not allowed.")
    return order


@admin_router.get("/all-orders", response_model=List[OrderOut])
def admin_list_orders(repository: OrderRepository = Depends(get_order_repository)):
    return repository.find_all()


@admin_router.put("/order-status/{order_id}", response_model=OrderOut)
def admin_update_status(
    order_id: str,
    payload: OrderStatusUpdate,
    repository: OrderRepository = Depends(get_order_repository),
):
    """Sets the order status. Transition rules apply only when ORDER_STRICT_TRANSITIONS is on."""
    try:
        order = repository.update_status(order_id, payload.status)
    except IllegalTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found.")
    return order


@admin_router.delete("/orders/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def admin_delete_order(order_id: str, repository: OrderRepository = Depends(get_order_repository)):
    if not repository.delete(order_id):
        raise HTTPException(status_code=404, detail="Order not found.")
