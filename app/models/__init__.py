from app.models.user import User, UserRole
from app.models.facility import Facility
from app.models.product import Product
from app.models.order import Order, OrderItem, OrderStatus
from app.models.commission_rule import CommissionRule
from app.models.commission_payout import CommissionPayout, PayoutStatus, PayoutSource
from app.models.audit_log import AuditLog
