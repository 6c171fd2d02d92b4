"""
Shop Schemas

Pydantic models for everything the shop keeps in its key-value store.
Each persisted collection (users, cart, favorites, orders) is a JSON list of
one of these models; field names below are the persisted layout.
"""

import enum
import re
from typing import Annotated, Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

CARD_NUMBER_RE = re.compile(r"^\d{16}$")
EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/[0-9]{2}$")
CVV_RE = re.compile(r"^\d{3}$")

ORDER_STATUS_PENDING = "Pending"


def coerce_product_id(value: Any) -> Any:
    # Product ids come from markup as either numbers or strings.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


ProductId = Annotated[str, BeforeValidator(coerce_product_id)]


class User(BaseModel):
    name: str = Field(..., description="Display name, also accepted as login identifier")
    email: str = Field(..., description="Unique, compared case-sensitively")
    # Stored and compared in plaintext, like the storefront this models.
    password: str = Field(..., description="Plaintext password")
    created_at: str = Field(..., description="ISO-8601 registration time")

    def public(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"password"})


class ProductIn(BaseModel):
    id: ProductId
    name: str
    price: float = Field(..., ge=0)
    image: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None


class CartItem(BaseModel):
    product_id: str
    size: Optional[str] = None
    color: Optional[str] = None
    name: str
    price: float = Field(..., ge=0)
    image: Optional[str] = None
    quantity: int = Field(1, ge=1)

    @property
    def key(self) -> Tuple[str, Optional[str], Optional[str]]:
        return (self.product_id, self.size, self.color)

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


class OrderDetails(BaseModel):
    """Shipping and payment form submitted at checkout."""

    full_name: str
    address: str
    phone: str = ""
    card_number: str
    expiry_date: str
    cvv: str

    @field_validator("full_name", "address", "phone", "expiry_date", "cvv", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("full_name", "address")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value:
            raise ValueError("Please fill in all fields")
        return value

    @field_validator("card_number", mode="before")
    @classmethod
    def _card_number(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = re.sub(r"\s", "", value)
            if not CARD_NUMBER_RE.match(value):
                raise ValueError("Card number must be 16 digits")
        return value

    @field_validator("expiry_date")
    @classmethod
    def _expiry(cls, value: str) -> str:
        if not EXPIRY_RE.match(value):
            raise ValueError("Invalid expiry date (MM/YY)")
        return value

    @field_validator("cvv")
    @classmethod
    def _cvv(cls, value: str) -> str:
        if not CVV_RE.match(value):
            raise ValueError("CVV must be 3 digits")
        return value


class Order(BaseModel):
    id: str = Field(..., description='"ORD-" followed by epoch milliseconds')
    user_id: str = Field(..., description="Owner's email")
    items: List[CartItem] = Field(default_factory=list, description="Cart snapshot at checkout")
    total: float
    details: Dict[str, Any] = Field(default_factory=dict)
    status: str = ORDER_STATUS_PENDING
    created_at: str


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    AUTH = "auth"
    AUTH_REQUIRED = "auth_required"
    EMPTY_CART = "empty_cart"
    NOT_FOUND = "not_found"


class Result(BaseModel):
    """Outcome of a shop operation.

    Extra keyword fields (``requires_login``, ``is_favorite``, ``order_id``)
    are carried alongside ``success`` and ``message``.
    """

    model_config = ConfigDict(extra="allow")

    success: bool
    message: Optional[str] = None
    error: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, message: Optional[str] = None, **extra: Any) -> "Result":
        return cls(success=True, message=message, **extra)

    @classmethod
    def fail(cls, error: ErrorKind, message: Optional[str] = None, **extra: Any) -> "Result":
        return cls(success=False, message=message, error=error, **extra)


def format_card_number(value: str) -> str:
    digits = re.sub(r"\s", "", value)
    return " ".join(digits[i:i + 4] for i in range(0, len(digits), 4))
