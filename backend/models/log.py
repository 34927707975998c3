from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, func
from sqlalchemy.orm import relationship
from database import Base

# One row per shopper or staff action on carts, checkouts, orders and stock
class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    ts = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # e.g. CART_ADD on resource "cart", ORDER_STATUS_CHANGE on "orders" #42
    action = Column(String(50), nullable=False, index=True)
    resource = Column(String(50), nullable=False, index=True)
    resource_id = Column(String(64), nullable=True)
    status = Column(String(20), nullable=False, default="SUCCESS", index=True)
    ip = Column(String(64), nullable=True)

    meta = Column(JSON, nullable=True)

    user = relationship("User")
