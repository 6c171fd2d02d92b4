from datetime import datetime, timezone

import pytest

from database import MemoryStore
from shop import StoreState

FIXED_NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def state(store, clock) -> StoreState:
    return StoreState(store, clock=clock)


@pytest.fixture
def logged_in(state) -> StoreState:
    assert state.register("Ayşe", "a@x.com", "password1", "password1").success
    assert state.login("a@x.com", "password1").success
    return state


@pytest.fixture
def make_product():
    def _make(id=1, size="M", color="red", price=100.0, name="Shirt"):
        return {"id": id, "name": name, "price": price, "size": size, "color": color, "image": "shirt.jpg"}

    return _make
