# backend/routes/orders.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.common import ApiResponse, ok
from schemas.order import OrderResponse, OrdersPage, OrderStatusPatch, PaymentStatusPatch
from services.order_service import OrderService
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user, role_required

router = APIRouter(prefix="/orders", tags=["Orders"])


# List the current user's orders, newest first
@router.get("", response_model=ApiResponse[OrdersPage])
def list_my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows, total = OrderService(db).list_orders(current_user, page, page_size)
    items = [OrderResponse.model_validate(o) for o in rows]
    return ok(OrdersPage(items=items, total=total, page=page, page_size=page_size))


# Get details of a specific order (owner or admin)
@router.get("/{order_id}", response_model=ApiResponse[OrderResponse])
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = OrderService(db).get_order(order_id, current_user)
    return ok(OrderResponse.model_validate(order))


# Move an order along its state machine (admin only)
@router.patch("/{order_id}/status", response_model=ApiResponse[OrderResponse])
def update_order_status(
    order_id: int,
    payload: OrderStatusPatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("ADMIN")),
):
    service = OrderService(db)
    old_status = service.get_order(order_id, current_user).order_status.value
    order = service.transition_order_status(order_id, payload.status)
    data = OrderResponse.model_validate(order)
    write_log(
        db, user_id=current_user.id, action="ORDER_STATUS_CHANGE", resource="orders", resource_id=order_id,
        ip=client_ip(request), meta={"old": old_status, "new": payload.status.value},
    )
    return ok(data, "Order status updated")


@router.patch("/{order_id}/payment-status", response_model=ApiResponse[OrderResponse])
def update_payment_status(
    order_id: int,
    payload: PaymentStatusPatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("ADMIN")),
):
    service = OrderService(db)
    old_status = service.get_order(order_id, current_user).payment_status.value
    order = service.transition_payment_status(order_id, payload.status)
    data = OrderResponse.model_validate(order)
    write_log(
        db, user_id=current_user.id, action="PAYMENT_STATUS_CHANGE", resource="orders", resource_id=order_id,
        ip=client_ip(request), meta={"old": old_status, "new": payload.status.value},
    )
    return ok(data, "Payment status updated")
