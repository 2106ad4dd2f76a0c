"""Storage layer for the recommendation engine"""

from .cache import CacheManager
from .rental_store import InMemoryRentalStore, RentalDataStore
from .postgres_store import PostgresRentalStore

__all__ = ["CacheManager", "InMemoryRentalStore", "RentalDataStore", "PostgresRentalStore"]
