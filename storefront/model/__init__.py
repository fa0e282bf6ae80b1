# ------ storefront/model/__init__.py ------

from .user import User
from .product import Product
from .promo import Promo, PromoRedemption
from .order import Order, OrderItem
from .invoice import Invoice
from .membership import MembershipPlan
from .loyalty import LoyaltyTransaction

__all__ = [
    "User",
    "Product",
    "Promo",
    "PromoRedemption",
    "Order",
    "OrderItem",
    "Invoice",
    "MembershipPlan",
    "LoyaltyTransaction",
]
