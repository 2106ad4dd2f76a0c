"""
PostgreSQL Rental Store

Reads rental history and the product catalog from the rental platform's
database (tables ``alquiler``, ``detalle_alquiler`` and ``product``).
Transient connection failures are retried here; once retries are exhausted
the failure surfaces as UpstreamUnavailableError. Query errors such as
ProgrammingError propagate unchanged.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.exceptions import UpstreamUnavailableError
from ..core.models import PopularityStats, Product, ProductId, RentalInteraction, UserId
from .rental_store import RentalDataStore

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (OperationalError, InterfaceError, OSError, asyncio.TimeoutError)

INTERACTIONS_QUERY = """
    SELECT a.user_id, da.product_id, da.cantidad AS quantity, a.estado AS state,
           a.fecha_reserva AS reservation_date, a.fecha_devolucion AS return_date
    FROM alquiler a
    JOIN detalle_alquiler da ON a.id = da.alquiler_id
    WHERE a.user_id = :user_id
"""

CATALOG_QUERY = """
    SELECT p.id AS product_id, p.categoria_id AS category_id, p.color AS colors,
           p.talla AS sizes, p.precio AS price, p.disponible AS available,
           p.nombre AS name, p.imagen AS image, p.modelo_url AS model_url
    FROM product p
"""

POPULARITY_QUERY = """
    SELECT da.product_id,
           COUNT(DISTINCT a.user_id) AS unique_renter_count,
           COUNT(*) AS total_rentals,
           AVG(CASE WHEN a.estado = 'completado' THEN 1.0 ELSE 0.0 END) AS completion_rate
    FROM detalle_alquiler da
    JOIN alquiler a ON da.alquiler_id = a.id
    GROUP BY da.product_id
"""

ALREADY_RENTED_QUERY = """
    SELECT DISTINCT da.product_id
    FROM detalle_alquiler da
    JOIN alquiler a ON da.alquiler_id = a.id
    WHERE a.user_id = :user_id
"""

RENTERS_QUERY = """
    SELECT DISTINCT a.user_id
    FROM alquiler a
    JOIN detalle_alquiler da ON a.id = da.alquiler_id
    WHERE da.product_id = ANY(:product_ids)
"""


def normalize_database_url(url: str) -> str:
    """Use the asyncpg driver for plain postgresql:// URLs"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


class PostgresRentalStore(RentalDataStore):
    """Rental store backed by the platform's PostgreSQL database"""

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[AsyncEngine] = None,
        retry_attempts: int = 3,
        pool_size: int = 10,
    ):
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_async_engine(
                normalize_database_url(database_url),
                pool_size=pool_size,
                pool_pre_ping=True,
            )
        self.engine = engine
        self.retry_attempts = retry_attempts

    async def _fetch(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=0.1, max=2),
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                reraise=True,
            ):
                with attempt:
                    async with self.engine.connect() as conn:
                        result = await conn.execute(text(query), params or {})
                        return [dict(row) for row in result.mappings()]
        except TRANSIENT_ERRORS as e:
            logger.error(f"Rental store query failed: {e}")
            raise UpstreamUnavailableError(f"Rental store unavailable: {e}") from e

    async def interactions(self, user_id: UserId) -> List[RentalInteraction]:
        rows = await self._fetch(INTERACTIONS_QUERY, {"user_id": user_id})
        return [RentalInteraction.from_row(row) for row in rows]

    async def catalog(self, available_only: bool = True) -> List[Product]:
        query = CATALOG_QUERY
        if available_only:
            query += " WHERE p.disponible = true"
        rows = await self._fetch(query + " ORDER BY p.id")
        return [Product.from_row(row) for row in rows]

    async def aggregate_popularity(self) -> List[PopularityStats]:
        rows = await self._fetch(POPULARITY_QUERY)
        return [
            PopularityStats(
                product_id=int(row["product_id"]),
                unique_renter_count=int(row["unique_renter_count"]),
                total_rentals=int(row["total_rentals"]),
                completion_rate=float(row["completion_rate"] or 0.0),
            )
            for row in rows
        ]

    async def already_rented(self, user_id: UserId) -> Set[ProductId]:
        rows = await self._fetch(ALREADY_RENTED_QUERY, {"user_id": user_id})
        return {int(row["product_id"]) for row in rows}

    async def renters_of(self, product_ids: Iterable[ProductId]) -> Set[UserId]:
        ids = list(product_ids)
        if not ids:
            return set()
        rows = await self._fetch(RENTERS_QUERY, {"product_ids": ids})
        return {int(row["user_id"]) for row in rows}

    async def ping(self) -> bool:
        try:
            await self._fetch("SELECT 1")
            return True
        except (UpstreamUnavailableError, SQLAlchemyError) as e:
            logger.error(f"Rental store ping failed: {e}")
            return False

    async def close(self):
        logger.info("Closing PostgreSQL rental store...")
        await self.engine.dispose()
