"""
Algorithm Registry for Recommendation Strategies

Maps each caller-selectable strategy to the algorithm that serves it.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple
import asyncio
import logging

from .config import EngineConfig
from .exceptions import InsufficientDataError
from .models import Product, ProductId, Recommendation, Strategy, StrategyTag, UserId
from ..storage.rental_store import RentalDataStore


class BaseRecommendationAlgorithm(ABC):
    """
    Base class for all recommendation algorithms

    An algorithm reads what it needs from the rental store and either returns
    a ranked list or raises InsufficientDataError so the engine can fall back.
    """

    tag: StrategyTag

    def __init__(self, store: RentalDataStore, config: Optional[EngineConfig] = None):
        self.store = store
        self.config = config or EngineConfig()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def recommend(self, user_id: UserId, limit: int) -> List[Recommendation]:
        """
        Generate recommendations for a user

        Args:
            user_id: User identifier
            limit: Maximum number of recommendations

        Returns:
            Ranked recommendations

        Raises:
            InsufficientDataError: when the algorithm has no signal for the user
            UpstreamUnavailableError: when the rental store cannot be read
        """

    async def eligible_candidates(self, user_id: UserId) -> Dict[ProductId, Product]:
        """Available products the user has not rented yet"""
        rented, catalog = await asyncio.gather(
            self.store.already_rented(user_id),
            self.store.catalog(available_only=True),
        )
        return {p.product_id: p for p in catalog if p.available and p.product_id not in rented}

    def build_recommendations(
        self,
        scored: Sequence[Tuple[Product, float]],
        reason: str = "",
    ) -> List[Recommendation]:
        return [
            Recommendation(product=product, score=score, strategy=self.tag, rank=i + 1, reason=reason)
            for i, (product, score) in enumerate(scored)
        ]

    def insufficient(self, reason: str) -> InsufficientDataError:
        self.logger.info(f"{self.tag.value} strategy has insufficient data: {reason}")
        return InsufficientDataError(reason)


class AlgorithmRegistry:
    """
    Registry for managing recommendation algorithms
    """

    def __init__(self):
        self.algorithms: Dict[Strategy, BaseRecommendationAlgorithm] = {}
        self.logger = logging.getLogger(__name__)

    def register_algorithm(self, strategy: Strategy, algorithm: BaseRecommendationAlgorithm):
        """
        Register a recommendation algorithm

        Args:
            strategy: Strategy the algorithm serves
            algorithm: Algorithm instance
        """
        self.algorithms[strategy] = algorithm
        self.logger.info(f"Registered algorithm for {strategy.value}: {algorithm.__class__.__name__}")

    def get_algorithm(self, strategy: Strategy) -> BaseRecommendationAlgorithm:
        """Get algorithm by strategy"""
        try:
            return self.algorithms[strategy]
        except KeyError:
            raise ValueError(f"No algorithm registered for strategy {strategy.value}") from None

    def list_algorithms(self) -> List[str]:
        """List all registered strategy names"""
        return [strategy.value for strategy in self.algorithms]
