# backend/models/users.py
from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship
from database import Base

# Represents a shopper or staff account; credentials are issued elsewhere
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=True)
    role = Column(String, nullable=False, default="customer")
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)

    cart = relationship("Cart", back_populates="user", uselist=False)

    @property
    def is_admin(self) -> bool:
        return (self.role or "").upper() == "ADMIN"
