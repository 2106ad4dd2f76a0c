"""
Recommendation Algorithms

User-based collaborative filtering, content-based similarity against the
rental history, and popularity ranking for cold-start users.
"""

import asyncio
from typing import Dict, Iterable, List, Optional

from ..core.algorithms import BaseRecommendationAlgorithm
from ..core.config import EngineConfig
from ..core.models import Recommendation, StrategyTag, UserId, UserRatings
from ..storage.rental_store import RentalDataStore
from .popularity import PopularityRanker
from .predictor import CollaborativePredictor
from .ratings import ImplicitRatingAggregator
from .similarity import ItemSimilarityEngine, UserSimilarityEngine


class CollaborativeFiltering(BaseRecommendationAlgorithm):
    """User-based collaborative filtering over implicit rental ratings"""

    tag = StrategyTag.COLLABORATIVE

    def __init__(self, store: RentalDataStore, config: Optional[EngineConfig] = None):
        super().__init__(store, config)
        self.aggregator = ImplicitRatingAggregator(self.config.rating)
        self.similarity = UserSimilarityEngine(self.config.neighbors)
        self.predictor = CollaborativePredictor(self.config.prediction)

    async def neighbor_ratings(self, user_ids: Iterable[UserId]) -> Dict[UserId, UserRatings]:
        """Fetch and aggregate interactions of candidate neighbours concurrently"""
        semaphore = asyncio.Semaphore(self.config.max_concurrent_fetches)

        async def load(user_id: UserId) -> UserRatings:
            async with semaphore:
                return self.aggregator.aggregate(await self.store.interactions(user_id))

        user_ids = sorted(user_ids)
        tasks = [asyncio.ensure_future(load(uid)) for uid in user_ids]
        try:
            ratings = await asyncio.gather(*tasks)
        except BaseException:
            # One failed read fails the request; stop the remaining reads
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return dict(zip(user_ids, ratings))

    async def recommend(self, user_id: UserId, limit: int) -> List[Recommendation]:
        interactions, candidates = await asyncio.gather(
            self.store.interactions(user_id),
            self.eligible_candidates(user_id),
        )
        target = self.aggregator.aggregate(interactions)
        if not target:
            raise self.insufficient(f"user {user_id} has no rental history")

        renters = await self.store.renters_of(target.keys())
        renters.discard(user_id)
        candidate_ratings = await self.neighbor_ratings(renters)

        neighbors = self.similarity.find_neighbors(target, candidate_ratings)
        if not neighbors:
            raise self.insufficient(f"no qualifying neighbours for user {user_id}")

        self.logger.debug(
            f"User {user_id}: {len(neighbors)} neighbours from {len(renters)} co-renters"
        )

        predictions = self.predictor.predict(neighbors, candidate_ratings, candidates, limit)
        if not predictions:
            raise self.insufficient(
                f"no prediction cleared {self.config.prediction.min_predicted_rating} for user {user_id}"
            )

        return self.build_recommendations(
            [(p.product, p.score) for p in predictions],
            reason="similar_renters",
        )


class ContentBased(BaseRecommendationAlgorithm):
    """Ranks products by their closest content match in the rental history"""

    tag = StrategyTag.CONTENT

    def __init__(self, store: RentalDataStore, config: Optional[EngineConfig] = None):
        super().__init__(store, config)
        self.similarity = ItemSimilarityEngine(self.config.content)

    async def recommend(self, user_id: UserId, limit: int) -> List[Recommendation]:
        rented, catalog = await asyncio.gather(
            self.store.already_rented(user_id),
            self.store.catalog(available_only=False),
        )
        if not rented:
            raise self.insufficient(f"user {user_id} has no rental history")

        # History products may be unavailable today; candidates must not be
        history = [p for p in catalog if p.product_id in rented]
        candidates = [p for p in catalog if p.available and p.product_id not in rented]

        ranked = self.similarity.rank(candidates, history, limit)
        return self.build_recommendations(ranked, reason="similar_to_history")


class PopularityFallback(BaseRecommendationAlgorithm):
    """Aggregate-demand ranking; never raises for lack of data"""

    tag = StrategyTag.POPULARITY

    def __init__(self, store: RentalDataStore, config: Optional[EngineConfig] = None):
        super().__init__(store, config)
        self.ranker = PopularityRanker(self.config.popularity)

    async def recommend(self, user_id: Optional[UserId], limit: int) -> List[Recommendation]:
        if user_id is None:
            catalog, popularity = await asyncio.gather(
                self.store.catalog(available_only=True),
                self.store.aggregate_popularity(),
            )
            candidates = [p for p in catalog if p.available]
        else:
            eligible, popularity = await asyncio.gather(
                self.eligible_candidates(user_id),
                self.store.aggregate_popularity(),
            )
            candidates = list(eligible.values())

        stats = {s.product_id: s for s in popularity}
        ranked = self.ranker.rank(candidates, stats, limit)
        return self.build_recommendations(ranked, reason="popular")
