from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Path, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config, crud, log, models, rules, schemas
from .auth import COOKIE_NAME, create_access_token, token_lifetime, verify_token
from .db import Base, SessionLocal, engine
from .errors import AppError, Unauthenticated
from .rules import Identity, Role

log.configure_logging()
logger = structlog.get_logger(__name__)

# Create tables if not existing. There is no migration tool in this project.
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Legal Desk")


# Dependency to get DB session per request

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_identity(request: Request) -> Optional[Identity]:
    """Resolve the caller from the `token` cookie, falling back to a bearer header."""
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        auth = request.headers.get("authorization")
        if auth:
            scheme, _, value = auth.partition(" ")
            # "Bearer " with nothing after it counts as no credential
            if scheme.lower() == "bearer" and value.strip():
                token = value.strip()
    return verify_token(token)


def require_authenticated(identity: Optional[Identity] = Depends(get_identity)) -> Identity:
    return rules.require_identity(identity)


def require_admin(identity: Optional[Identity] = Depends(get_identity)) -> Identity:
    return rules.require_role(identity, Role.ADMIN, "Admin access required")


def require_client(identity: Optional[Identity] = Depends(get_identity)) -> Identity:
    return rules.require_role(identity, Role.CLIENT, "Only clients can create orders")


def set_auth_cookie(response: Response, token: str, remember_me: bool = False):
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=token_lifetime(remember_me),
        httponly=True,
        secure=config.get_settings().cookie_secure,
        samesite="strict",
    )


def identity_of(user) -> Identity:
    return Identity(id=user.id, email=user.email, role=Role(user.role))


# -------------------- error handling --------------------

def describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "path", "query")]
    if loc:
        return f"{'.'.join(loc)}: {first.get('msg')}"
    return first.get("msg", "Invalid request")


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": describe_validation_error(exc)})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_error", method=request.method, path=request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
async def health():
    return {"status": "ok"}


# -------------------- auth --------------------

def register_user(db: Session, body: schemas.RegisterRequest, requester: Optional[Identity]):
    rules.validate_password(body.password)
    role = rules.resolve_registration_role(requester, body.role)
    return crud.create_user(db, body.name, body.email, body.password, role)


@app.post("/auth/register", response_model=schemas.UserEnvelope, response_model_exclude_none=True)
def auth_register(
    body: schemas.RegisterRequest,
    response: Response,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    user = register_user(db, body, identity)
    if identity is not None and identity.is_admin:
        # admin-issued account: the admin keeps their own session
        return schemas.UserEnvelope(user=schemas.UserRead.model_validate(user), message="User created successfully")

    set_auth_cookie(response, create_access_token(identity_of(user)))
    return schemas.UserEnvelope(user=schemas.UserRead.model_validate(user))


@app.post("/auth/login", response_model=schemas.UserEnvelope, response_model_exclude_none=True)
def auth_login(body: schemas.LoginRequest, response: Response, db: Session = Depends(get_db)):
    try:
        user = crud.authenticate(db, body.email, body.password)
    except Unauthenticated:
        logger.info("login_failed", email=body.email)
        raise
    set_auth_cookie(response, create_access_token(identity_of(user), body.remember_me), body.remember_me)
    logger.info("login", user_id=user.id, remember_me=body.remember_me)
    return schemas.UserEnvelope(user=schemas.UserRead.model_validate(user))


@app.post("/auth/logout", response_model=schemas.Message)
async def auth_logout(response: Response):
    response.delete_cookie(
        COOKIE_NAME, httponly=True, secure=config.get_settings().cookie_secure, samesite="strict"
    )
    return schemas.Message(message="Logged out successfully")


@app.get("/auth/me", response_model=schemas.UserEnvelope, response_model_exclude_none=True)
def auth_me(db: Session = Depends(get_db), identity: Identity = Depends(require_authenticated)):
    user = db.get(models.User, identity.id)
    if not user:
        raise Unauthenticated("Unauthorized")
    return schemas.UserEnvelope(user=schemas.UserRead.model_validate(user))


# -------------------- products --------------------

@app.get("/products", response_model=schemas.ProductList)
def get_products(db: Session = Depends(get_db)):
    products = crud.list_products(db)
    return schemas.ProductList(products=[schemas.ProductRead.model_validate(p) for p in products])


@app.get("/products/{product_id}", response_model=schemas.ProductEnvelope)
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = crud.get_product(db, product_id)
    return schemas.ProductEnvelope(product=schemas.ProductRead.model_validate(product))


@app.post("/products", response_model=schemas.ProductEnvelope, status_code=201)
def create_product(
    body: schemas.ProductCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    product = crud.create_product(db, body)
    return schemas.ProductEnvelope(product=schemas.ProductRead.model_validate(product))


@app.put("/products/{product_id}", response_model=schemas.ProductEnvelope)
def update_product(
    product_id: int,
    body: schemas.ProductPatch,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    product = crud.get_product(db, product_id)
    changes = body.model_dump(exclude_unset=True)
    if changes:
        product = crud.update_product(db, product, changes)
    return schemas.ProductEnvelope(product=schemas.ProductRead.model_validate(product))


@app.delete("/products/{product_id}", response_model=schemas.Message)
def delete_product(product_id: int, db: Session = Depends(get_db), identity: Identity = Depends(require_admin)):
    product = crud.get_product(db, product_id)
    crud.delete_product(db, product)
    return schemas.Message(message="Product deleted successfully")


# -------------------- orders --------------------

@app.get("/orders", response_model=schemas.OrderList)
def get_orders(db: Session = Depends(get_db), identity: Identity = Depends(require_authenticated)):
    orders = crud.list_orders(db, identity)
    return schemas.OrderList(orders=[schemas.OrderRead.model_validate(o) for o in orders])


@app.get("/orders/{order_id}", response_model=schemas.OrderEnvelope)
def get_order(order_id: int, db: Session = Depends(get_db), identity: Identity = Depends(require_authenticated)):
    order = crud.get_order(db, order_id)
    rules.ensure_can_access_order(identity, order.user_id)
    return schemas.OrderEnvelope(order=schemas.OrderRead.model_validate(order))


@app.post("/orders", response_model=schemas.OrderEnvelope, status_code=201)
def create_order(
    body: schemas.OrderCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_client),
):
    order = crud.create_order(db, identity, body)
    return schemas.OrderEnvelope(order=schemas.OrderRead.model_validate(order))


@app.put("/orders/{order_id}", response_model=schemas.OrderEnvelope)
def update_order(
    order_id: int,
    body: schemas.OrderPatch,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_authenticated),
):
    order = crud.get_order(db, order_id)
    changes = rules.authorize_order_patch(identity, order.user_id, body.changes())
    if changes:
        order = crud.update_order(db, order, changes)
    return schemas.OrderEnvelope(order=schemas.OrderRead.model_validate(order))


@app.delete("/orders/{order_id}", response_model=schemas.Message)
def delete_order(order_id: int, db: Session = Depends(get_db), identity: Identity = Depends(require_admin)):
    order = crud.get_order(db, order_id)
    crud.delete_order(db, order)
    return schemas.Message(message="Order deleted successfully")


# -------------------- users --------------------

@app.get("/users", response_model=schemas.UserList)
def get_users(db: Session = Depends(get_db), identity: Identity = Depends(require_admin)):
    users = [schemas.UserRead.model_validate(u) for u in crud.list_users(db)]
    return schemas.UserList(users=users, total=len(users))


@app.post("/users", response_model=schemas.UserEnvelope, status_code=201)
def create_user(
    body: schemas.RegisterRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    user = register_user(db, body, identity)
    return schemas.UserEnvelope(user=schemas.UserRead.model_validate(user), message="User created successfully")


@app.get("/users/{user_id}", response_model=schemas.UserDetailEnvelope)
def get_user(user_id: int, db: Session = Depends(get_db), identity: Identity = Depends(require_admin)):
    user = crud.get_user(db, user_id)
    return schemas.UserDetailEnvelope(user=schemas.UserDetail.model_validate(user))


@app.put("/users/{user_id}/role", response_model=schemas.UserEnvelope)
def change_user_role(
    user_id: int,
    body: schemas.RoleChange,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    user = crud.get_user(db, user_id)
    role = Role.parse(body.role)
    rules.ensure_role_change_allowed(identity, user.id, role)
    user = crud.change_user_role(db, user, role)
    return schemas.UserEnvelope(user=schemas.UserRead.model_validate(user), message="User role updated successfully")


@app.delete("/users/{user_id}", response_model=schemas.Message)
def delete_user(user_id: int, db: Session = Depends(get_db), identity: Identity = Depends(require_admin)):
    user = crud.get_user(db, user_id)
    rules.ensure_user_delete_allowed(identity, user.id)
    crud.delete_user(db, user)
    return schemas.Message(message="User deleted successfully")


# -------------------- analytics --------------------

@app.get("/analytics", response_model=schemas.AnalyticsSummary)
def get_analytics(db: Session = Depends(get_db), identity: Identity = Depends(require_admin)):
    summary = crud.analytics_summary(db)
    summary["monthly_stats"] = [schemas.AnalyticsRead.model_validate(row) for row in summary["monthly_stats"]]
    return schemas.AnalyticsSummary(**summary)


@app.put("/analytics/{year}/{month}", response_model=schemas.AnalyticsEnvelope)
def put_monthly_stats(
    body: schemas.MonthlyFigures,
    year: int = Path(..., ge=1900, le=9999),
    month: int = Path(..., ge=1, le=12),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    row = crud.upsert_monthly_stats(db, year, month, body)
    return schemas.AnalyticsEnvelope(analytics=schemas.AnalyticsRead.model_validate(row))
