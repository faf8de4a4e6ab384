from grocery.models.user import User
from grocery.models.profile_change import ProfileChange
from grocery.models.category import Category
from grocery.models.product import Product
from grocery.models.review import Review
from grocery.models.cart import Cart, CartItem
from grocery.models.cart_payment import CartPayment
from grocery.models.order_item import OrderItem
from grocery.models.order import Order
from grocery.models.contact import Contact

# add ALL models here
__all__ = [
    "User",
    "ProfileChange",
    "Category",
    "Product",
    "Review",
    "Cart",
    "CartItem",
    "CartPayment",
    "Order",
    "OrderItem",
    "Contact",
]
