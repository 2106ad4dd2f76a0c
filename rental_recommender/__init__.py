"""
Rental Recommendation Engine

Recommends products to renters from their rental history: collaborative
filtering over implicit ratings, content similarity against past rentals,
and popularity ranking for users without signal.
"""

__version__ = "1.0.0"

from .core.config import EngineConfig, load_config
from .core.engine import RecommendationEngine
from .core.exceptions import InsufficientDataError, RecommenderError, UpstreamUnavailableError
from .core.models import Product, Recommendation, RentalInteraction, Strategy, StrategyTag
from .storage.rental_store import InMemoryRentalStore, RentalDataStore

__all__ = [
    "EngineConfig",
    "load_config",
    "RecommendationEngine",
    "RecommenderError",
    "InsufficientDataError",
    "UpstreamUnavailableError",
    "Product",
    "Recommendation",
    "RentalInteraction",
    "Strategy",
    "StrategyTag",
    "InMemoryRentalStore",
    "RentalDataStore"
]
