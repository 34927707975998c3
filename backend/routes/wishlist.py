# backend/routes/wishlist.py
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.cart import CartItemOut
from schemas.common import ApiResponse, ok
from schemas.wishlist import WishlistAddItem, WishlistItemOut, WishlistMergeOut, WishlistMergeRequest, WishlistOut
from services.wishlist_service import WishlistService
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/wishlist", tags=["Wishlist"])


@router.get("", response_model=ApiResponse[WishlistOut])
def get_wishlist(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(WishlistService(db).get_wishlist(current_user.id))


@router.post("", response_model=ApiResponse[WishlistItemOut], status_code=status.HTTP_201_CREATED)
def add_to_wishlist(
    payload: WishlistAddItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    item = WishlistService(db).add_item(current_user.id, payload.product_id, payload.variant_id)
    data = WishlistItemOut.model_validate(item)
    write_log(
        db, user_id=current_user.id, action="WISHLIST_ADD", resource="wishlist",
        ip=client_ip(request), meta={"product_id": payload.product_id, "variant_id": payload.variant_id},
    )
    return ok(data, "Added to wishlist", status.HTTP_201_CREATED)


@router.delete("/{item_id}", response_model=ApiResponse[dict])
def remove_from_wishlist(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    WishlistService(db).remove_item(current_user.id, item_id)
    write_log(
        db, user_id=current_user.id, action="WISHLIST_DELETE", resource="wishlist",
        ip=client_ip(request), meta={"item_id": item_id},
    )
    return ok({"wishlistItemId": item_id}, "Removed from wishlist")


@router.post("/merge", response_model=ApiResponse[WishlistMergeOut])
def merge_guest_wishlist(
    payload: WishlistMergeRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    report = WishlistService(db).merge_guest_wishlist(current_user.id, payload.guest_items)
    write_log(
        db, user_id=current_user.id, action="WISHLIST_MERGE", resource="wishlist",
        ip=client_ip(request), meta=report,
    )
    return ok(report, "Guest wishlist merged")


@router.post("/{item_id}/move-to-cart", response_model=ApiResponse[CartItemOut])
def move_to_cart(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cart_item = WishlistService(db).move_to_cart(current_user.id, item_id)
    data = CartItemOut.model_validate(cart_item)
    write_log(
        db, user_id=current_user.id, action="WISHLIST_MOVE_TO_CART", resource="wishlist",
        ip=client_ip(request), meta={"item_id": item_id, "cart_item_id": cart_item.id},
    )
    return ok(data, "Moved to cart")
