"""
Seed a development database with users, products, rules and delivered orders.

    python -m app.scripts.seed_data
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.core.database import Base, SessionLocal, engine
from app.core.logging_config import setup_logging
from app.core.security import get_password_hash
from app.models import (
    CommissionRule,
    Facility,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)

PRODUCTS = [
    ("Advanced Wound Dressing", "WD-1001", "24.99", "Dressings"),
    ("Antimicrobial Gel", "AG-2002", "32.50", "Antimicrobials"),
    ("Compression Bandage", "CB-3003", "45.75", "Compression"),
    ("Negative Pressure Wound Therapy Kit", "NP-4004", "199.99", "Devices"),
    ("Collagen Matrix", "CM-5005", "149.95", "Biologics"),
]

# (owner, status, [(sku, quantity)])
ORDERS = [
    ("rep", OrderStatus.DELIVERED, [("WD-1001", 4), ("AG-2002", 2)]),
    ("rep", OrderStatus.DELIVERED, [("NP-4004", 2), ("CM-5005", 1)]),
    ("rep", OrderStatus.SHIPPED, [("CB-3003", 3)]),
    ("subrep", OrderStatus.DELIVERED, [("CB-3003", 5), ("WD-1001", 1)]),
    ("subrep", OrderStatus.SUBMITTED, [("AG-2002", 1)]),
    ("staff", OrderStatus.DELIVERED, [("CM-5005", 2)]),
]


def _create_user(db: Session, email: str, password: str, first_name: str, last_name: str,
                 role: UserRole, parent: Optional[User] = None) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        parent_id=parent.id if parent else None
    )
    db.add(user)
    db.flush()
    return user


def seed_database(db: Session, created_at: Optional[datetime] = None) -> Dict[str, User]:
    """Insert sample data; orders are stamped with ``created_at`` (default now, UTC)."""
    created_at = created_at or datetime.utcnow()

    admin = _create_user(db, "admin@mscwoundcare.com", "Admin123!", "Admin", "User", UserRole.ADMIN)
    staff = _create_user(db, "staff@mscwoundcare.com", "Staff123!", "Staff", "User", UserRole.STAFF)
    rep = _create_user(db, "rep@mscwoundcare.com", "Rep123!", "Sales", "Representative", UserRole.REP)
    subrep = _create_user(
        db, "subrep@mscwoundcare.com", "SubRep123!", "Sub", "Representative", UserRole.SUB_REP, parent=rep
    )
    users = {"admin": admin, "staff": staff, "rep": rep, "subrep": subrep}

    facility = Facility(
        name="Memorial Hospital",
        address="123 Main St",
        city="Springfield",
        state="IL",
        zip="62701",
        phone="555-123-4567",
        email="info@memorialhospital.com"
    )
    db.add(facility)

    products = {}
    for name, sku, price, category in PRODUCTS:
        products[sku] = Product(name=name, sku=sku, price=Decimal(price), category=category)
        db.add(products[sku])
    db.flush()

    db.add_all([
        CommissionRule(
            name="Standard Rep Commission",
            rule={"kind": "flat_rate", "default_rate": "0.10", "roles": ["REP"]},
            created_by=admin.id
        ),
        CommissionRule(
            name="Sub-Rep Commission",
            rule={"kind": "flat_rate", "default_rate": "0.05", "roles": ["SUB_REP"]},
            created_by=admin.id
        ),
        CommissionRule(
            name="Premium Products Bonus",
            rule={"kind": "category", "rate": "0.15", "categories": ["Devices", "Biologics"], "roles": ["REP"]},
            created_by=admin.id
        ),
    ])

    for owner, status, lines in ORDERS:
        order = Order(
            user_id=users[owner].id,
            facility_id=facility.id,
            status=status,
            created_at=created_at
        )
        total = Decimal("0")
        for sku, quantity in lines:
            product = products[sku]
            order.items.append(OrderItem(product_id=product.id, quantity=quantity, price=product.price))
            total += product.price * quantity
        order.total = total
        db.add(order)

    db.commit()
    logger.info("Seeded %s users, %s products and %s orders", len(users), len(products), len(ORDERS))
    return users


if __name__ == "__main__":
    setup_logging()
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        seed_database(session)
    finally:
        session.close()
