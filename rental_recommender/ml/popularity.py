"""Popularity ranking for users without personal signal"""

import logging
import math
from typing import Iterable, List, Mapping, Optional, Tuple

from ..core.config import PopularityPolicy
from ..core.models import PopularityStats, Product, ProductId

logger = logging.getLogger(__name__)


class PopularityRanker:
    """
    Ranks products by aggregate demand

    score = completion_weight * completion_rate
          + popularity_weight * ln(unique_renter_count + 1)
    """

    def __init__(self, policy: Optional[PopularityPolicy] = None):
        self.policy = policy or PopularityPolicy()

    def score(self, stats: Optional[PopularityStats]) -> float:
        if stats is None:
            return 0.0
        return (
            self.policy.completion_weight * stats.completion_rate
            + self.policy.popularity_weight * math.log(stats.unique_renter_count + 1)
        )

    def rank(
        self,
        candidates: Iterable[Product],
        stats: Mapping[ProductId, PopularityStats],
        limit: int,
    ) -> List[Tuple[Product, float]]:
        """
        Rank candidates by popularity

        Products never rented score 0 and come last; ties are ordered by
        product id. An empty candidate set gives an empty list.
        """
        scored = [(product, self.score(stats.get(product.product_id))) for product in candidates]
        scored.sort(key=lambda pair: (-pair[1], pair[0].product_id))
        return scored[:limit]
