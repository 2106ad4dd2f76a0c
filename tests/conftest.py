"""
Shared pytest fixtures for the rental recommender tests.

Fixtures build small in-memory rental platforms whose implicit ratings are
easy to compute by hand. All rentals happen in March 2024; an on-time rental
is returned the day before its reservation date.

Rating cheat sheet (one month, completed, on time, quantity 1):
    1 rental  -> 5 * (0.1 + 0.3 + 0.2 + 0.04) = 3.2
    2 rentals -> 5 * (0.2 + 0.3 + 0.2 + 0.04) = 3.7
    3+ rentals -> 5 * (0.3 + 0.3 + 0.2 + 0.04) = 4.2
"""

from datetime import date
from typing import Iterable, List

import pytest

from rental_recommender.core.config import EngineConfig
from rental_recommender.core.engine import RecommendationEngine
from rental_recommender.core.models import Product, RentalInteraction, RentalState
from rental_recommender.storage.rental_store import InMemoryRentalStore

RESERVED_ON = date(2024, 3, 10)
RETURNED_ON_TIME = date(2024, 3, 9)


def make_product(
    product_id: int,
    category_id: int = 1,
    colors: Iterable[str] = ("red",),
    sizes: Iterable[str] = ("M",),
    available: bool = True,
) -> Product:
    return Product(
        product_id=product_id,
        category_id=category_id,
        colors=frozenset(colors),
        sizes=frozenset(sizes),
        price=20.0,
        available=available,
        name=f"Product {product_id}",
    )


def rentals(
    user_id: int,
    product_id: int,
    count: int = 1,
    state: RentalState = RentalState.COMPLETED,
    on_time: bool = True,
    quantity: int = 1,
) -> List[RentalInteraction]:
    """`count` identical rental line items"""
    return [
        RentalInteraction(
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            state=state,
            reservation_date=RESERVED_ON,
            return_date=RETURNED_ON_TIME if on_time else None,
        )
        for _ in range(count)
    ]


def history(user_id: int, counts: dict) -> List[RentalInteraction]:
    result = []
    for product_id, count in counts.items():
        result.extend(rentals(user_id, product_id, count))
    return result


# Target user 1 and twin user 2 share products 1-5 with identical behaviour
SHARED_COUNTS = {1: 1, 2: 2, 3: 3, 4: 1, 5: 2}


@pytest.fixture
def catalog() -> List[Product]:
    return [
        make_product(1, category_id=1, colors=["red"], sizes=["M"]),
        make_product(2, category_id=1, colors=["blue"], sizes=["S"]),
        make_product(3, category_id=2, colors=["green"], sizes=["L"]),
        make_product(4, category_id=2, colors=["red", "black"], sizes=["M", "L"]),
        make_product(5, category_id=3, colors=["white"], sizes=["XL"]),
        make_product(6, category_id=1, colors=["red"], sizes=["M"]),
        make_product(7, category_id=4, colors=["gold"], sizes=["XS"]),
        make_product(8, category_id=1, colors=["red"], sizes=["M"], available=False),
        make_product(9, category_id=3, colors=["white"], sizes=["S"]),
    ]


@pytest.fixture
def community_store(catalog) -> InMemoryRentalStore:
    """
    User 1: products 1-5.
    User 2: same as user 1, plus product 6 (rented 4x) and unavailable product 8.
    User 4: products 1, 2 and 9; only two products in common with anyone.
    """
    interactions = (
        history(1, SHARED_COUNTS)
        + history(2, SHARED_COUNTS)
        + rentals(2, 6, count=4)
        + rentals(2, 8, count=4)
        + history(4, {1: 1, 2: 2, 9: 3})
    )
    return InMemoryRentalStore(catalog, interactions)


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def engine(community_store, engine_config) -> RecommendationEngine:
    return RecommendationEngine(community_store, engine_config)


@pytest.fixture
def uncached_engine(community_store) -> RecommendationEngine:
    return RecommendationEngine(community_store, EngineConfig(cache_enabled=False))
