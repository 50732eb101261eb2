from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    # stored as naive UTC; responses attach the offset back (schemas.as_utc)
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    # 'admin' or 'client', see rules.Role
    role = Column(String, nullable=False, default="client", index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # read-only view; deletes go through crud.delete_user
    orders = relationship("Order", viewonly=True, order_by="desc(Order.created_at)")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    # whole currency units, always > 0
    price = Column(Integer, nullable=False)
    category = Column(String, nullable=False, index=True)
    processing_time = Column(String, nullable=True)
    whats_included = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    # No ON DELETE CASCADE: crud removes dependent orders itself
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="pending", index=True)
    payment_method = Column(String, nullable=True)
    invoice_url = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User")
    product = relationship("Product")


class Analytics(Base):
    __tablename__ = "analytics"
    __table_args__ = (UniqueConstraint("year", "month", name="uq_analytics_month_year"),)

    id = Column(Integer, primary_key=True, index=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    visitors = Column(Integer, nullable=False, default=0)
    sales = Column(Integer, nullable=False, default=0)
    profit = Column(Integer, nullable=False, default=0)
    loss = Column(Integer, nullable=False, default=0)
