from quickmed.models.user import User, Address
from quickmed.models.product import Product
from quickmed.models.supplier import Supplier, supplier_products
from quickmed.models.batch import Batch
from quickmed.models.order import Order, OrderItem
from quickmed.models.cart import CartItem
from quickmed.models.feedback import Feedback
from quickmed.models.support import SupportTicket
from quickmed.models.prescription import Prescription
from quickmed.models.notification import Notification

__all__ = [
    "User", "Address", "Product", "Supplier", "supplier_products", "Batch",
    "Order", "OrderItem", "CartItem", "Feedback", "SupportTicket", "Prescription",
    "Notification",
]
