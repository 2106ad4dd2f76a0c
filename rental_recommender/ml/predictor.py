"""
Collaborative Rating Prediction

Predicts the target user's rating for unseen products from the implicit
ratings of their neighbours.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from ..core.config import PredictionPolicy
from ..core.models import Neighbor, Product, ProductId, UserId, UserRatings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Prediction:
    """Predicted rating of one candidate product"""
    product: Product
    score: float
    recommending_neighbors: int

    @property
    def rank_score(self) -> float:
        return self.score * math.log(self.recommending_neighbors)


class CollaborativePredictor:
    """Similarity-weighted average of neighbour ratings"""

    def __init__(self, policy: Optional[PredictionPolicy] = None):
        self.policy = policy or PredictionPolicy()

    def predict(
        self,
        neighbors: Sequence[Neighbor],
        neighbor_ratings: Mapping[UserId, UserRatings],
        candidates: Mapping[ProductId, Product],
        limit: int,
    ) -> List[Prediction]:
        """
        Predict ratings for candidate products

        Args:
            neighbors: Ranked neighbourhood of the target user
            neighbor_ratings: Implicit ratings of each neighbour
            candidates: Available products the target user has not rented
            limit: Maximum number of predictions to return

        Returns:
            Predictions clearing min_predicted_rating, best first
        """
        weighted_sum: Dict[ProductId, float] = defaultdict(float)
        similarity_sum: Dict[ProductId, float] = defaultdict(float)
        supporters: Dict[ProductId, int] = defaultdict(int)

        for neighbor in neighbors:
            for product_id, rating in neighbor_ratings.get(neighbor.user_id, {}).items():
                if product_id not in candidates:
                    continue
                weighted_sum[product_id] += rating * neighbor.similarity
                similarity_sum[product_id] += abs(neighbor.similarity)
                supporters[product_id] += 1

        predictions = []
        for product_id, total in weighted_sum.items():
            if similarity_sum[product_id] == 0.0:
                continue
            score = total / similarity_sum[product_id]
            if score < self.policy.min_predicted_rating:
                continue
            predictions.append(Prediction(
                product=candidates[product_id],
                score=score,
                recommending_neighbors=supporters[product_id],
            ))

        predictions.sort(key=lambda p: (-p.rank_score, -p.score, p.product.product_id))

        logger.debug(
            f"{len(predictions)} of {len(weighted_sum)} neighbour-rated products "
            f"cleared {self.policy.min_predicted_rating}"
        )
        return predictions[:limit]
