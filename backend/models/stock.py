# backend/models/stock.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
from database import Base

class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Signed quantity change
    qty = Column(Integer, nullable=False)

    reason = Column(String, nullable=True)
    # Movement classification (ADJUSTMENT, RESERVATION, RELEASE)
    type = Column(String, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    variant = relationship("ProductVariant")
    user = relationship("User")
