# backend/routes/stock.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.common import ApiResponse, ok
from schemas.stock import StockAdjustment, StockMovementResponse
from services import catalog_service
from utils.audit import client_ip, write_log
from utils.tokenJWT import role_required

router = APIRouter(prefix="/stock", tags=["Stock"])


# Manual correction of a variant's stock (Admin / Warehouse)
@router.post("/adjust", response_model=ApiResponse[StockMovementResponse])
def adjust_stock(
    payload: StockAdjustment,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("ADMIN", "WAREHOUSE")),
):
    try:
        movement = catalog_service.adjust_variant_stock(
            db, payload.variant_id, payload.qty, reason=payload.reason, user_id=current_user.id
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    data = StockMovementResponse(
        id=movement.id, variant_id=movement.variant_id, qty=movement.qty, type=movement.type,
        reason=movement.reason, user_id=movement.user_id, created_at=movement.created_at,
        stock_quantity=movement.variant.stock_quantity,
    )
    write_log(
        db, user_id=current_user.id, action="STOCK_ADJUSTMENT", resource="stock", resource_id=payload.variant_id,
        ip=client_ip(request), meta={"movement_id": movement.id, "qty": payload.qty, "reason": payload.reason},
    )
    return ok(data, "Stock adjusted")
