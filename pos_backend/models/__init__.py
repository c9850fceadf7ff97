from pos_backend.models.tenant import Tenant
from pos_backend.models.user import User, UserRole
from pos_backend.models.product import Product
from pos_backend.models.customer import Customer
from pos_backend.models.order import Order, OrderStatus
from pos_backend.models.order_item import OrderItem
from pos_backend.models.order_sequence import OrderNumberSequence
