from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import AfterValidator, AliasGenerator, BaseModel, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

from .rules import progress_percent
from .utils import sanitize_input

# Request bodies accept camelCase keys (snake_case works too);
# responses are read from ORM objects and serialized as camelCase.
REQUEST_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)
RESPONSE_CONFIG = ConfigDict(
    from_attributes=True,
    alias_generator=AliasGenerator(serialization_alias=to_camel),
)


def not_blank(v: Optional[str]) -> Optional[str]:
    """Reject text that sanitizes down to nothing. The value itself is sanitized in crud."""
    if v is not None and not sanitize_input(v):
        raise ValueError("may not be blank")
    return v


def as_utc(v: datetime) -> datetime:
    # timestamps are stored as naive UTC
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


# -------------------- requests --------------------

class RegisterRequest(BaseModel):
    model_config = REQUEST_CONFIG

    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)
    password: str
    role: Optional[str] = None

    @field_validator("name")
    def name_not_blank(cls, v):
        return not_blank(v)


class LoginRequest(BaseModel):
    model_config = REQUEST_CONFIG

    email: str
    password: str
    remember_me: bool = False


class ProductCreate(BaseModel):
    model_config = REQUEST_CONFIG

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: int = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=100)
    processing_time: Optional[str] = None
    whats_included: Optional[list[str]] = None

    @field_validator("title", "category")
    def text_not_blank(cls, v):
        return not_blank(v)


class ProductPatch(BaseModel):
    model_config = REQUEST_CONFIG

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[int] = Field(default=None, gt=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    processing_time: Optional[str] = None
    whats_included: Optional[list[str]] = None

    @field_validator("title", "price", "category")
    def required_not_null(cls, v):
        # only reached when the key is present in the body
        if v is None:
            raise ValueError("field may not be null")
        return v

    @field_validator("title", "category")
    def text_not_blank(cls, v):
        return not_blank(v)


class OrderCreate(BaseModel):
    model_config = REQUEST_CONFIG

    product_id: int
    payment_method: Optional[str] = None


class OrderPatch(BaseModel):
    """Fields an order update may carry. Which role may set which is decided in rules."""

    model_config = REQUEST_CONFIG

    # status stays a plain string so a client sending any value is refused
    # before the value itself is judged
    status: Optional[str] = None
    payment_method: Optional[str] = None
    invoice_url: Optional[str] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class RoleChange(BaseModel):
    role: str


class MonthlyFigures(BaseModel):
    visitors: int = Field(default=0, ge=0)
    sales: int = Field(default=0, ge=0)
    profit: int = Field(default=0, ge=0)
    loss: int = Field(default=0, ge=0)


# -------------------- responses --------------------

class UserSummary(BaseModel):
    model_config = RESPONSE_CONFIG

    id: int
    name: str
    email: str


class UserRead(UserSummary):
    role: str
    created_at: UtcDatetime


class ProductSummary(BaseModel):
    model_config = RESPONSE_CONFIG

    id: int
    title: str
    price: int
    category: str


class ProductRead(ProductSummary):
    description: Optional[str] = None
    processing_time: Optional[str] = None
    whats_included: list[str] = []
    created_at: UtcDatetime

    @field_validator("whats_included", mode="before")
    def none_as_empty(cls, v):
        return v or []


class OrderRead(BaseModel):
    model_config = RESPONSE_CONFIG

    id: int
    user_id: int
    product_id: int
    status: str
    payment_method: Optional[str] = None
    invoice_url: Optional[str] = None
    created_at: UtcDatetime
    user: UserSummary
    product: ProductSummary

    @computed_field
    @property
    def progress(self) -> int:
        return progress_percent(self.status)


class UserDetail(UserRead):
    orders: list[OrderRead] = []


class AnalyticsRead(BaseModel):
    model_config = RESPONSE_CONFIG

    year: int
    month: int
    visitors: int
    sales: int
    profit: int
    loss: int


class AnalyticsSummary(BaseModel):
    model_config = RESPONSE_CONFIG

    total_products: int
    total_orders: int
    total_clients: int
    total_revenue: int
    status_breakdown: dict[str, int]
    monthly_stats: list[AnalyticsRead]


# -------------------- envelopes --------------------

class UserEnvelope(BaseModel):
    user: UserRead
    message: Optional[str] = None


class UserDetailEnvelope(BaseModel):
    user: UserDetail


class UserList(BaseModel):
    users: list[UserRead]
    total: int


class ProductEnvelope(BaseModel):
    product: ProductRead


class ProductList(BaseModel):
    products: list[ProductRead]


class OrderEnvelope(BaseModel):
    order: OrderRead


class OrderList(BaseModel):
    orders: list[OrderRead]


class AnalyticsEnvelope(BaseModel):
    analytics: AnalyticsRead


class Message(BaseModel):
    message: str
