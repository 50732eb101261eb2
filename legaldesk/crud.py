from typing import List

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .auth import hash_password, verify_password
from .errors import Conflict, NotFound, Unauthenticated
from .rules import Identity, OrderStatus, Role
from .utils import sanitize_input, sanitize_list

logger = structlog.get_logger(__name__)

PRODUCT_TEXT_FIELDS = ("title", "description", "category", "processing_time")


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


# -------------------- users --------------------

def list_users(db: Session) -> List[models.User]:
    return db.query(models.User).order_by(models.User.created_at.desc(), models.User.id.desc()).all()


def get_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, name: str, email: str, password: str, role: Role) -> models.User:
    if get_user_by_email(db, email):
        raise Conflict("User with this email already exists")

    db_user = models.User(
        name=sanitize_input(name),
        email=email,
        password_hash=hash_password(password),
        role=role.value,
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as e:
        # lost a race against another registration with the same email
        db.rollback()
        raise Conflict("User with this email already exists") from e
    db.refresh(db_user)
    logger.info("user_created", user_id=db_user.id, role=db_user.role)
    return db_user


def authenticate(db: Session, email: str, password: str) -> models.User:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        raise Unauthenticated("Invalid email or password")
    return user


def change_user_role(db: Session, user: models.User, role: Role) -> models.User:
    if user.role != role.value:
        previous = user.role
        user.role = role.value
        _commit(db)
        db.refresh(user)
        logger.info("user_role_changed", user_id=user.id, previous=previous, role=user.role)
    return user


def delete_user(db: Session, user: models.User) -> None:
    user_id = user.id
    orders = db.query(models.Order).filter(models.Order.user_id == user.id).all()
    for order in orders:
        db.delete(order)
    db.delete(user)
    _commit(db)
    logger.info("user_deleted", user_id=user_id, orders_deleted=len(orders))


# -------------------- products --------------------

def list_products(db: Session) -> List[models.Product]:
    return db.query(models.Product).order_by(models.Product.created_at.desc(), models.Product.id.desc()).all()


def get_product(db: Session, product_id: int) -> models.Product:
    product = db.get(models.Product, product_id)
    if not product:
        raise NotFound("Product not found")
    return product


def create_product(db: Session, product: schemas.ProductCreate) -> models.Product:
    db_product = models.Product(
        title=sanitize_input(product.title),
        description=sanitize_input(product.description),
        price=product.price,
        category=sanitize_input(product.category),
        processing_time=sanitize_input(product.processing_time),
        whats_included=sanitize_list(product.whats_included),
    )
    db.add(db_product)
    _commit(db)
    db.refresh(db_product)
    logger.info("product_created", product_id=db_product.id)
    return db_product


def update_product(db: Session, product: models.Product, changes: dict) -> models.Product:
    for field, value in changes.items():
        if field in PRODUCT_TEXT_FIELDS:
            value = sanitize_input(value)
        elif field == "whats_included":
            value = sanitize_list(value)
        setattr(product, field, value)
    _commit(db)
    db.refresh(product)
    return product


def delete_product(db: Session, product: models.Product) -> None:
    product_id = product.id
    orders = db.query(models.Order).filter(models.Order.product_id == product.id).all()
    for order in orders:
        db.delete(order)
    db.delete(product)
    _commit(db)
    logger.info("product_deleted", product_id=product_id, orders_deleted=len(orders))


# -------------------- orders --------------------

def list_orders(db: Session, identity: Identity) -> List[models.Order]:
    query = db.query(models.Order)
    if not identity.is_admin:
        query = query.filter(models.Order.user_id == identity.id)
    return query.order_by(models.Order.created_at.desc(), models.Order.id.desc()).all()


def get_order(db: Session, order_id: int) -> models.Order:
    order = db.get(models.Order, order_id)
    if not order:
        raise NotFound("Order not found")
    return order


def create_order(db: Session, identity: Identity, order: schemas.OrderCreate) -> models.Order:
    # the token may outlive its user
    if not db.get(models.User, identity.id):
        raise NotFound("User not found")
    get_product(db, order.product_id)

    db_order = models.Order(
        user_id=identity.id,
        product_id=order.product_id,
        status=OrderStatus.PENDING.value,
        payment_method=order.payment_method or "pending",
    )
    db.add(db_order)
    _commit(db)
    db.refresh(db_order)
    logger.info("order_created", order_id=db_order.id, user_id=identity.id, product_id=order.product_id)
    return db_order


def update_order(db: Session, order: models.Order, changes: dict) -> models.Order:
    for field, value in changes.items():
        setattr(order, field, value)
    _commit(db)
    db.refresh(order)
    if "status" in changes:
        logger.info("order_status_set", order_id=order.id, status=order.status)
    return order


def delete_order(db: Session, order: models.Order) -> None:
    order_id = order.id
    db.delete(order)
    _commit(db)
    logger.info("order_deleted", order_id=order_id)


# -------------------- analytics --------------------

def list_monthly_stats(db: Session) -> List[models.Analytics]:
    return db.query(models.Analytics).order_by(models.Analytics.year, models.Analytics.month).all()


def upsert_monthly_stats(db: Session, year: int, month: int, figures: schemas.MonthlyFigures) -> models.Analytics:
    row = (
        db.query(models.Analytics)
        .filter(models.Analytics.year == year, models.Analytics.month == month)
        .first()
    )
    if row is None:
        row = models.Analytics(year=year, month=month)
        db.add(row)
    for field, value in figures.model_dump().items():
        setattr(row, field, value)
    _commit(db)
    db.refresh(row)
    return row


def analytics_summary(db: Session) -> dict:
    breakdown = {status.value: 0 for status in OrderStatus}
    rows = db.query(models.Order.status, func.count(models.Order.id)).group_by(models.Order.status).all()
    for status, count in rows:
        breakdown[status] = count

    revenue = (
        db.query(func.coalesce(func.sum(models.Product.price), 0))
        .select_from(models.Order)
        .join(models.Order.product)
        .scalar()
    )
    return {
        "total_products": db.query(func.count(models.Product.id)).scalar(),
        "total_orders": sum(breakdown.values()),
        "total_clients": db.query(func.count(func.distinct(models.Order.user_id))).scalar(),
        "total_revenue": int(revenue),
        "status_breakdown": breakdown,
        "monthly_stats": list_monthly_stats(db),
    }
