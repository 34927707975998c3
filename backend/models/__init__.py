# Import every model so SQLAlchemy registers it on Base.metadata
from models.users import User
from models.product import Product, ProductVariant, ProductImage
from models.cart import Cart, CartItem
from models.order import Order, OrderItem, OrderStatus, PaymentStatus
from models.wishlist import Wishlist, WishlistItem
from models.stock import StockMovement
from models.log import AuditLog

__all__ = [
    "User", "Product", "ProductVariant", "ProductImage", "Cart", "CartItem",
    "Order", "OrderItem", "OrderStatus", "PaymentStatus", "Wishlist",
    "WishlistItem", "StockMovement", "AuditLog",
]
