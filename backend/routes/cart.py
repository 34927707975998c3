# backend/routes/cart.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.cart import CartAddItem, CartItemOut, CartMergeOut, CartMergeRequest, CartOut, CartUpdateItem
from schemas.common import ApiResponse, ok
from services.cart_service import CartService
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/cart", tags=["Cart"])


@router.post("", response_model=ApiResponse[CartItemOut], status_code=status.HTTP_201_CREATED)
def add_to_cart(
    payload: CartAddItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    item = CartService(db).add_item(current_user.id, payload.product_id, payload.variant_id, payload.quantity)

    write_log(
        db,
        user_id=current_user.id,
        action="CART_ADD",
        resource="cart",
        resource_id=item.id,
        ip=client_ip(request),
        meta={"product_id": payload.product_id, "variant_id": payload.variant_id, "quantity": payload.quantity},
    )
    return ok(CartItemOut.model_validate(item), "Item added to cart", status.HTTP_201_CREATED)


@router.get("", response_model=ApiResponse[CartOut])
def get_cart(
    state: Optional[str] = Query(None, description="Buyer region, drives the tax split"),
    coupon_code: Optional[str] = Query(None, alias="couponCode"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cart = CartService(db).get_cart(current_user.id, region=state, coupon_code=coupon_code)
    return ok(cart)


@router.patch("/item/{cart_item_id}", response_model=ApiResponse[CartItemOut])
def update_cart_item(
    cart_item_id: int,
    payload: CartUpdateItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    item = CartService(db).update_quantity(current_user.id, cart_item_id, payload.quantity)

    write_log(
        db,
        user_id=current_user.id,
        action="CART_UPDATE",
        resource="cart",
        resource_id=cart_item_id,
        ip=client_ip(request),
        meta={"item_id": cart_item_id, "quantity": payload.quantity},
    )
    return ok(CartItemOut.model_validate(item), "Quantity updated")


@router.delete("/item/{cart_item_id}", response_model=ApiResponse[dict])
def delete_cart_item(
    cart_item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    removed_id = CartService(db).remove_item(current_user.id, cart_item_id)

    write_log(
        db,
        user_id=current_user.id,
        action="CART_DELETE",
        resource="cart",
        resource_id=removed_id,
        ip=client_ip(request),
        meta={"item_id": removed_id},
    )
    return ok({"cartItemId": removed_id}, "Item removed")


@router.post("/merge", response_model=ApiResponse[CartMergeOut])
def merge_guest_cart(
    payload: CartMergeRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    report = CartService(db).merge_guest_cart(current_user.id, payload.guest_items)

    write_log(
        db,
        user_id=current_user.id,
        action="CART_MERGE",
        resource="cart",
        ip=client_ip(request),
        meta={"merged": len(report["merged"]), "skipped": len(report["skipped"])},
    )
    return ok(report, "Guest cart merged")
