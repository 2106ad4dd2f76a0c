"""
Main Recommendation Engine

Selects the caller's strategy, falls back to popularity ranking when the
strategy has no signal, and serves responses through an optional cache.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Union

from .algorithms import AlgorithmRegistry
from .config import EngineConfig
from .exceptions import InsufficientDataError, UpstreamUnavailableError
from .models import (
    Recommendation,
    RecommendationRequest,
    RecommendationResponse,
    Strategy,
    UserId,
)
from ..ml.algorithms import CollaborativeFiltering, ContentBased, PopularityFallback
from ..storage.cache import CacheManager, make_cache_key
from ..storage.rental_store import RentalDataStore


class RecommendationEngine:
    """
    Request-scoped recommendation orchestrator
    """

    def __init__(
        self,
        store: RentalDataStore,
        config: Optional[EngineConfig] = None,
        cache_manager: Optional[CacheManager] = None,
    ):
        """
        Initialize the recommendation engine

        Args:
            store: Read contracts of the rental data store
            config: Engine configuration
            cache_manager: Response cache; built from config when omitted and
                caching is enabled
        """
        self.config = (config or EngineConfig()).validate()
        self.store = store
        self.logger = logging.getLogger(__name__)

        if cache_manager is None and self.config.cache_enabled:
            cache_manager = CacheManager(
                max_entries=self.config.cache_max_entries,
                ttl_seconds=self.config.cache_ttl_seconds,
                redis_url=self.config.redis_url,
            )
        self.cache_manager = cache_manager

        # Algorithm instances
        self.algorithm_registry = AlgorithmRegistry()
        self.algorithm_registry.register_algorithm(
            Strategy.USER_BASED, CollaborativeFiltering(store, self.config)
        )
        self.algorithm_registry.register_algorithm(
            Strategy.ITEM_BASED, ContentBased(store, self.config)
        )
        self.fallback = PopularityFallback(store, self.config)

        # Performance tracking
        self.request_count = 0
        self.total_latency = 0.0
        self.error_count = 0
        self.fallback_count = 0
        self.start_time = time.time()

        self.logger.info(f"RecommendationEngine initialized with strategies: {self.algorithm_registry.list_algorithms()}")

    async def recommend(
        self,
        user_id: UserId,
        strategy: Union[Strategy, str] = Strategy.USER_BASED,
        limit: Optional[int] = None,
    ) -> List[Recommendation]:
        """
        Ranked recommendations for a user

        Args:
            user_id: User identifier
            strategy: user_based or item_based
            limit: Maximum number of results (config default when omitted)

        Returns:
            Ranked recommendations, possibly empty when nothing is eligible
        """
        request = RecommendationRequest(
            user_id=user_id,
            strategy=strategy,
            limit=limit if limit is not None else self.config.default_limit,
        )
        response = await self.get_recommendations(request)
        return response.recommendations

    async def recommend_user_based(self, user_id: UserId, limit: Optional[int] = None) -> List[Recommendation]:
        return await self.recommend(user_id, Strategy.USER_BASED, limit)

    async def recommend_item_based(self, user_id: UserId, limit: Optional[int] = None) -> List[Recommendation]:
        return await self.recommend(user_id, Strategy.ITEM_BASED, limit)

    async def recommend_popular(self, user_id: Optional[UserId] = None, limit: Optional[int] = None) -> List[Recommendation]:
        """Popularity ranking alone; excludes the user's rentals when a user is given"""
        limit = limit if limit is not None else self.config.default_limit
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        return await self.fallback.recommend(user_id, limit)

    async def get_recommendations(self, request: RecommendationRequest) -> RecommendationResponse:
        """
        Serve a recommendation request

        Args:
            request: User, strategy and limit

        Returns:
            Response with the ranked list and how it was produced

        Raises:
            UpstreamUnavailableError: when the rental store cannot be read
        """
        start_time = time.time()
        cache_key = make_cache_key(request.user_id, request.strategy.value, request.limit)

        if self.cache_manager is not None and request.use_cache:
            cached = await self.cache_manager.get(cache_key)
            if cached is not None:
                self._record_latency(start_time)
                return RecommendationResponse(
                    user_id=request.user_id,
                    strategy=request.strategy,
                    recommendations=[Recommendation.from_dict(r) for r in cached["recommendations"]],
                    total_time_ms=(time.time() - start_time) * 1000,
                    cache_hit=True,
                    fallback_used=cached["fallback_used"],
                    fallback_reason=cached["fallback_reason"],
                )

        algorithm = self.algorithm_registry.get_algorithm(request.strategy)
        fallback_reason = None

        try:
            try:
                recommendations = await algorithm.recommend(request.user_id, request.limit)
            except InsufficientDataError as e:
                fallback_reason = e.reason
                self.fallback_count += 1
                recommendations = await self.fallback.recommend(request.user_id, request.limit)
        except UpstreamUnavailableError as e:
            self.error_count += 1
            self.logger.error(f"Error generating recommendations for user {request.user_id}: {e}")
            raise

        if self.cache_manager is not None and request.use_cache:
            await self.cache_manager.set(cache_key, {
                "recommendations": [rec.to_dict() for rec in recommendations],
                "fallback_used": fallback_reason is not None,
                "fallback_reason": fallback_reason,
            })

        self._record_latency(start_time)
        return RecommendationResponse(
            user_id=request.user_id,
            strategy=request.strategy,
            recommendations=recommendations,
            total_time_ms=(time.time() - start_time) * 1000,
            fallback_used=fallback_reason is not None,
            fallback_reason=fallback_reason,
        )

    async def invalidate_user(self, user_id: UserId):
        """Drop cached responses after the user's rental history changed"""
        if self.cache_manager is not None:
            await self.cache_manager.invalidate_user(user_id)

    def _record_latency(self, start_time: float):
        """Record request latency for monitoring"""
        latency = time.time() - start_time
        self.request_count += 1
        self.total_latency += latency

    def get_statistics(self) -> Dict[str, Any]:
        """Get engine performance statistics"""
        uptime = time.time() - self.start_time
        avg_latency = self.total_latency / max(1, self.request_count) * 1000  # Convert to ms
        attempted = self.request_count + self.error_count

        return {
            "uptime_seconds": uptime,
            "total_requests": self.request_count,
            "average_latency_ms": avg_latency,
            "error_rate": self.error_count / max(1, attempted),
            "fallback_count": self.fallback_count,
            "cache_stats": self.cache_manager.get_stats() if self.cache_manager else {},
            "strategies": self.algorithm_registry.list_algorithms()
        }

    async def health_check(self) -> Dict[str, Any]:
        """Perform health check"""
        health = {
            "status": "healthy",
            "timestamp": time.time(),
            "components": {}
        }

        if await self.store.ping():
            health["components"]["rental_store"] = "healthy"
        else:
            health["components"]["rental_store"] = "unhealthy"
            health["status"] = "unhealthy"

        if self.cache_manager is None:
            health["components"]["cache"] = "disabled"
        elif await self.cache_manager.ping():
            health["components"]["cache"] = "healthy"
        else:
            health["components"]["cache"] = "unhealthy"
            if health["status"] == "healthy":
                health["status"] = "degraded"

        return health

    async def shutdown(self):
        """Gracefully shutdown the engine"""
        self.logger.info("Shutting down RecommendationEngine...")

        if self.cache_manager is not None:
            await self.cache_manager.close()
        await self.store.close()

        self.logger.info("RecommendationEngine shutdown complete")

    def __repr__(self) -> str:
        stats = self.get_statistics()
        return f"""RecommendationEngine(
    strategies={stats['strategies']},
    total_requests={stats['total_requests']},
    avg_latency_ms={stats['average_latency_ms']:.2f}
)"""
