"""
Shop state: users, the logged-in session, cart, favorites and orders.

Every mutation is written straight through to the key-value store it was
built with. Operations never raise for expected failures; they return a
``Result`` carrying ``success``, a message and an ``ErrorKind``.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from database import KeyValueStore
from schemas import CartItem, ErrorKind, Order, OrderDetails, ProductIn, Result, User

_logger = logging.getLogger(__name__)

USERS_KEY = "users"
CURRENT_USER_KEY = "currentUser"
CART_KEY = "cart"
FAVORITES_KEY = "favorites"
ORDERS_KEY = "orders"

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8

LOGIN_REQUIRED = "Please log in first."

_users_adapter = TypeAdapter(List[User])
_cart_adapter = TypeAdapter(List[CartItem])
_favorites_adapter = TypeAdapter(List[str])
_orders_adapter = TypeAdapter(List[Order])
_user_adapter = TypeAdapter(User)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoreState:
    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime] = _utcnow,
        on_cart_change: Optional[Callable[[int], None]] = None,
    ):
        self._store = store
        self._clock = clock
        self._on_cart_change = on_cart_change
        self._users: List[User] = self._load(USERS_KEY, _users_adapter, [])
        self._current_user: Optional[User] = self._load(CURRENT_USER_KEY, _user_adapter, None)
        self._cart: List[CartItem] = self._load(CART_KEY, _cart_adapter, [])
        self._favorites: List[str] = self._load(FAVORITES_KEY, _favorites_adapter, [])
        self._orders: List[Order] = self._load(ORDERS_KEY, _orders_adapter, [])

    # Persistence

    def _load(self, key: str, adapter: TypeAdapter, default: Any) -> Any:
        raw = self._store.get(key)
        if raw is None:
            return default
        try:
            value = adapter.validate_json(raw)
        except ValidationError:
            _logger.warning("Discarding unreadable %r blob", key)
            return default
        return default if value is None else value

    def _save(self, key: str, adapter: TypeAdapter, value: Any) -> None:
        self._store.set(key, adapter.dump_json(value))
        _logger.debug("Persisted %r", key)

    def _save_cart(self) -> None:
        self._save(CART_KEY, _cart_adapter, self._cart)

    def _notify_cart(self) -> None:
        if self._on_cart_change is not None:
            self._on_cart_change(self.get_cart_count())

    # Read access

    @property
    def users(self) -> List[User]:
        return list(self._users)

    @property
    def current_user(self) -> Optional[User]:
        return self._current_user

    @property
    def cart(self) -> List[CartItem]:
        return list(self._cart)

    @property
    def favorites(self) -> List[str]:
        return list(self._favorites)

    @property
    def orders(self) -> List[Order]:
        return list(self._orders)

    # Accounts

    @staticmethod
    def validate_email(email: str) -> bool:
        return bool(EMAIL_RE.match(email))

    def register(self, name: str, email: str, password: str, confirm_password: str) -> Result:
        if not name or not email or not password or not confirm_password:
            return Result.fail(ErrorKind.VALIDATION, "All fields are required.")
        if not self.validate_email(email):
            return Result.fail(ErrorKind.VALIDATION, "Invalid email address.")
        if len(password) < MIN_PASSWORD_LENGTH:
            return Result.fail(ErrorKind.VALIDATION, "Password must be at least 8 characters.")
        if password != confirm_password:
            return Result.fail(ErrorKind.VALIDATION, "Passwords do not match.")
        if any(u.email == email for u in self._users):
            return Result.fail(ErrorKind.VALIDATION, "This email is already in use.")

        self._users.append(
            User(name=name, email=email, password=password, created_at=self._clock().isoformat())
        )
        self._save(USERS_KEY, _users_adapter, self._users)
        _logger.info("Registered user %s", email)
        return Result.ok("Registration successful!")

    def login(self, identifier: str, password: str) -> Result:
        if not identifier or not password:
            return Result.fail(ErrorKind.VALIDATION, "Username/email and password are required.")

        # First match wins when several users share a name.
        user = next(
            (
                u for u in self._users
                if (u.email == identifier or u.name == identifier) and u.password == password
            ),
            None,
        )
        if user is None:
            return Result.fail(ErrorKind.AUTH, "Invalid username/email or password.")

        self._current_user = user.model_copy()
        self._save(CURRENT_USER_KEY, _user_adapter, self._current_user)
        _logger.info("User %s logged in", user.email)
        return Result.ok("Login successful!")

    def logout(self) -> Result:
        if self._current_user is not None:
            _logger.info("User %s logged out", self._current_user.email)
        self._current_user = None
        self._store.remove(CURRENT_USER_KEY)
        return Result.ok("Logged out.")

    # Cart

    def _find_item(self, product_id: Any, size: Optional[str], color: Optional[str]) -> Optional[CartItem]:
        key = (str(product_id), size, color)
        return next((item for item in self._cart if item.key == key), None)

    def add_to_cart(self, product: Union[ProductIn, Dict[str, Any]]) -> Result:
        if self._current_user is None:
            return Result.fail(ErrorKind.AUTH_REQUIRED, LOGIN_REQUIRED, requires_login=True)
        if not isinstance(product, ProductIn):
            try:
                product = ProductIn.model_validate(product)
            except ValidationError:
                return Result.fail(ErrorKind.VALIDATION, "Invalid product.")

        existing = self._find_item(product.id, product.size, product.color)
        if existing is not None:
            existing.quantity += 1
        else:
            self._cart.append(
                CartItem(
                    product_id=product.id,
                    size=product.size,
                    color=product.color,
                    name=product.name,
                    price=product.price,
                    image=product.image,
                    quantity=1,
                )
            )

        self._save_cart()
        self._notify_cart()
        _logger.debug("Added %s (%s/%s) to cart", product.id, product.size, product.color)
        return Result.ok(f"{product.name} added to cart!")

    def remove_from_cart(self, product_id: Any, size: Optional[str], color: Optional[str]) -> Result:
        key = (str(product_id), size, color)
        self._cart = [item for item in self._cart if item.key != key]
        self._save_cart()
        self._notify_cart()
        return Result.ok("Item removed from cart.")

    def update_quantity(self, product_id: Any, size: Optional[str], color: Optional[str], quantity: int) -> Result:
        if quantity <= 0:
            return self.remove_from_cart(product_id, size, color)
        item = self._find_item(product_id, size, color)
        if item is None:
            return Result.fail(ErrorKind.NOT_FOUND)

        item.quantity = quantity
        self._save_cart()
        self._notify_cart()
        return Result.ok()

    def clear_cart(self) -> Result:
        self._cart = []
        self._save_cart()
        self._notify_cart()
        return Result.ok("Cart cleared.")

    def get_cart_total(self) -> float:
        return sum((item.subtotal for item in self._cart), 0)

    def get_cart_count(self) -> int:
        return sum(item.quantity for item in self._cart)

    # Favorites

    def is_favorite(self, product_id: Any) -> bool:
        return str(product_id) in self._favorites

    def toggle_favorite(self, product_id: Any) -> Result:
        if self._current_user is None:
            return Result.fail(ErrorKind.AUTH_REQUIRED, LOGIN_REQUIRED, requires_login=True)

        product_id = str(product_id)
        if product_id in self._favorites:
            self._favorites.remove(product_id)
            self._save(FAVORITES_KEY, _favorites_adapter, self._favorites)
            return Result.ok("Removed from favorites.", is_favorite=False)

        self._favorites.append(product_id)
        self._save(FAVORITES_KEY, _favorites_adapter, self._favorites)
        return Result.ok("Added to favorites.", is_favorite=True)

    # Orders

    def create_order(self, details: Union[OrderDetails, Dict[str, Any]]) -> Result:
        if self._current_user is None:
            return Result.fail(ErrorKind.AUTH_REQUIRED, LOGIN_REQUIRED)
        if not self._cart:
            return Result.fail(ErrorKind.EMPTY_CART, "Your cart is empty.")
        if isinstance(details, BaseModel):
            details = details.model_dump()

        now = self._clock()
        order = Order(
            id=f"ORD-{int(now.timestamp() * 1000)}",
            user_id=self._current_user.email,
            items=[item.model_copy(deep=True) for item in self._cart],
            total=self.get_cart_total(),
            details=dict(details),
            created_at=now.isoformat(),
        )
        self._orders.append(order)
        self._save(ORDERS_KEY, _orders_adapter, self._orders)
        _logger.info("Order %s placed by %s, total %.2f", order.id, order.user_id, order.total)

        self.clear_cart()
        return Result.ok("Your order has been received!", order_id=order.id)

    def get_user_orders(self) -> List[Order]:
        if self._current_user is None:
            return []
        email = self._current_user.email
        return [order for order in self._orders if order.user_id == email]
