"""Tests for rental store implementations"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import ProgrammingError

from rental_recommender.core.exceptions import UpstreamUnavailableError
from rental_recommender.core.models import RentalState
from rental_recommender.storage.postgres_store import PostgresRentalStore, normalize_database_url
from rental_recommender.storage.rental_store import InMemoryRentalStore

from .conftest import rentals


class BrokenEngine:
    """Async engine stand-in whose connections always fail"""

    def __init__(self):
        self.connect_calls = 0
        self.disposed = False

    def connect(self):
        self.connect_calls += 1
        raise OSError("connection refused")

    async def dispose(self):
        self.disposed = True


class FakeResult:

    def __init__(self, rows):
        self.rows = rows

    def mappings(self):
        return self.rows


class FakeConnection:

    def __init__(self, engine):
        self.engine = engine

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, statement, params):
        self.engine.executed.append((str(statement), params))
        if self.engine.error is not None:
            raise self.engine.error
        return FakeResult(self.engine.rows)


class FakeEngine:
    """Async engine stand-in that returns canned rows for every query"""

    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.executed = []

    def connect(self):
        return FakeConnection(self)

    async def dispose(self):
        pass


class TestInMemoryRentalStore:

    @pytest.mark.asyncio
    async def test_catalog_filters_unavailable(self, community_store):
        available = await community_store.catalog()
        everything = await community_store.catalog(available_only=False)

        assert [p.product_id for p in available] == [1, 2, 3, 4, 5, 6, 7, 9]
        assert len(everything) == 9

    @pytest.mark.asyncio
    async def test_already_rented(self, community_store):
        assert await community_store.already_rented(4) == {1, 2, 9}
        assert await community_store.already_rented(99) == set()

    @pytest.mark.asyncio
    async def test_renters_of(self, community_store):
        assert await community_store.renters_of([9]) == {4}
        assert await community_store.renters_of([1, 6]) == {1, 2, 4}
        assert await community_store.renters_of([]) == set()

    @pytest.mark.asyncio
    async def test_interactions_are_a_copy(self, community_store):
        interactions = await community_store.interactions(4)
        interactions.clear()
        assert len(await community_store.interactions(4)) == 6

    @pytest.mark.asyncio
    async def test_aggregate_popularity(self, catalog):
        store = InMemoryRentalStore(
            catalog,
            rentals(1, 3, count=2) + rentals(2, 3, state=RentalState.RESERVED) + rentals(2, 5),
        )
        stats = {s.product_id: s for s in await store.aggregate_popularity()}

        assert set(stats) == {3, 5}
        assert stats[3].unique_renter_count == 2
        assert stats[3].total_rentals == 3
        assert stats[3].completion_rate == pytest.approx(2 / 3)
        assert stats[5].completion_rate == 1.0


class TestPostgresRentalStore:

    @pytest.mark.parametrize("url,expected", [
        ("postgresql://u:p@db/rentals", "postgresql+asyncpg://u:p@db/rentals"),
        ("postgres://u:p@db/rentals", "postgresql+asyncpg://u:p@db/rentals"),
        ("postgresql+asyncpg://u:p@db/rentals", "postgresql+asyncpg://u:p@db/rentals"),
    ])
    def test_normalize_database_url(self, url, expected):
        assert normalize_database_url(url) == expected

    def test_requires_url_or_engine(self):
        with pytest.raises(ValueError):
            PostgresRentalStore()

    @pytest.mark.asyncio
    async def test_connection_failure_becomes_upstream_error(self):
        engine = BrokenEngine()
        store = PostgresRentalStore(engine=engine, retry_attempts=2)

        with pytest.raises(UpstreamUnavailableError):
            await store.catalog()
        assert engine.connect_calls == 2

    @pytest.mark.asyncio
    async def test_empty_renters_query_skips_database(self):
        engine = BrokenEngine()
        store = PostgresRentalStore(engine=engine)

        assert await store.renters_of([]) == set()
        assert engine.connect_calls == 0

    @pytest.mark.asyncio
    async def test_ping_and_close(self):
        engine = BrokenEngine()
        store = PostgresRentalStore(engine=engine, retry_attempts=1)

        assert not await store.ping()
        await store.close()
        assert engine.disposed

    @pytest.mark.asyncio
    async def test_interaction_rows_are_mapped(self):
        engine = FakeEngine(rows=[
            {"user_id": 1, "product_id": 4, "quantity": 2, "state": "completado",
             "reservation_date": date(2024, 3, 10), "return_date": date(2024, 3, 9)},
            {"user_id": 1, "product_id": 5, "quantity": None, "state": "reservado",
             "reservation_date": "2024-04-02", "return_date": None},
        ])
        store = PostgresRentalStore(engine=engine)

        first, second = await store.interactions(1)

        assert first.state is RentalState.COMPLETED
        assert first.returned_on_time
        assert second.state is RentalState.RESERVED
        assert second.quantity == 0
        assert second.reservation_month == "2024-04"
        assert engine.executed[0][1] == {"user_id": 1}

    @pytest.mark.asyncio
    async def test_catalog_rows_are_mapped(self):
        engine = FakeEngine(rows=[
            {"product_id": 1, "category_id": 2, "colors": "{red,blue}", "sizes": ["M", "L"],
             "price": 35, "available": True, "name": "Suit", "image": None, "model_url": None},
            {"product_id": 2, "category_id": None, "colors": None, "sizes": "{}",
             "price": None, "available": "false", "name": None, "image": None, "model_url": None},
        ])
        store = PostgresRentalStore(engine=engine)

        suit, retired = await store.catalog(available_only=False)

        assert suit.colors == frozenset({"red", "blue"})
        assert suit.sizes == frozenset({"M", "L"})
        assert suit.price == 35.0
        assert not retired.available
        assert retired.colors == frozenset() and retired.sizes == frozenset()
        assert "WHERE" not in engine.executed[0][0]

    @pytest.mark.asyncio
    async def test_available_only_filters_in_sql(self):
        engine = FakeEngine()
        await PostgresRentalStore(engine=engine).catalog()
        assert "p.disponible = true" in engine.executed[0][0]

    @pytest.mark.asyncio
    async def test_popularity_rows_are_mapped(self):
        engine = FakeEngine(rows=[
            {"product_id": 3, "unique_renter_count": 4, "total_rentals": 6, "completion_rate": Decimal("0.5")},
            {"product_id": 7, "unique_renter_count": 1, "total_rentals": 1, "completion_rate": None},
        ])
        stats = await PostgresRentalStore(engine=engine).aggregate_popularity()

        assert stats[0].completion_rate == 0.5
        assert stats[0].unique_renter_count == 4
        assert stats[1].completion_rate == 0.0

    @pytest.mark.asyncio
    async def test_renters_and_rented_sets(self):
        store = PostgresRentalStore(engine=FakeEngine(rows=[{"user_id": 2, "product_id": 9}]))

        assert await store.renters_of([9, 9]) == {2}
        assert await store.already_rented(2) == {9}

    @pytest.mark.asyncio
    async def test_query_errors_propagate_unchanged(self):
        error = ProgrammingError("SELECT", {}, Exception("column does not exist"))
        engine = FakeEngine(error=error)
        store = PostgresRentalStore(engine=engine, retry_attempts=3)

        with pytest.raises(ProgrammingError):
            await store.interactions(1)
        assert len(engine.executed) == 1

    @pytest.mark.asyncio
    async def test_ping_reports_query_errors(self):
        engine = FakeEngine(error=ProgrammingError("SELECT 1", {}, Exception("permission denied")))
        assert not await PostgresRentalStore(engine=engine).ping()
