# backend/routes/checkout.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.checkout import CheckoutSessionOut
from schemas.common import ApiResponse, ok
from services.checkout_service import CheckoutService
from utils.audit import client_ip, write_log
from utils.carrier_client import CarrierClient, get_carrier_client
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/checkout", tags=["Checkout"])

# Snapshot the cart into an order and open a payable carrier session
@router.post("/create-checkout-session", response_model=ApiResponse[CheckoutSessionOut])
async def create_checkout_session(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    carrier: CarrierClient = Depends(get_carrier_client),
):
    user_id = current_user.id
    try:
        result = await CheckoutService(db, carrier).create_checkout_session(current_user)
    except Exception as e:
        write_log(
            db, user_id=user_id, action="CHECKOUT_CREATE", resource="checkout", status="FAIL",
            ip=client_ip(request), meta={"reason": str(e)},
        )
        raise

    write_log(
        db, user_id=user_id, action="CHECKOUT_CREATE", resource="checkout", resource_id=result["order_id"],
        ip=client_ip(request), meta={"order_number": result["order_number"], "checkout_id": result["checkout_session_id"]},
    )
    data = CheckoutSessionOut(
        checkout_id=result["checkout_session_id"],
        order_id=result["order_id"],
        order_number=result["order_number"],
        token=result["token"],
        expires_at=result["expires_at"],
    )
    return ok(data, "Checkout session created successfully")
