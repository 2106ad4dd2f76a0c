"""
Similarity Engines

User-user behavioural similarity (Pearson correlation over commonly rated
products) and item-item content similarity (weighted category, color and
size overlap).
"""

import logging
import math
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..core.config import ContentPolicy, NeighborPolicy
from ..core.models import Neighbor, Product, UserId, UserRatings

logger = logging.getLogger(__name__)


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation of two paired rating vectors

    Returns 0.0 when the vectors are shorter than two or either has zero
    variance.
    """
    if len(x) != len(y):
        raise ValueError(f"Rating vectors differ in length: {len(x)} != {len(y)}")
    if len(x) < 2:
        return 0.0

    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    dx = xs - xs.mean()
    dy = ys - ys.mean()

    denominator = math.sqrt(float(np.dot(dx, dx)) * float(np.dot(dy, dy)))
    if denominator == 0.0:
        return 0.0

    return float(np.clip(np.dot(dx, dy) / denominator, -1.0, 1.0))


class UserSimilarityEngine:
    """Selects the neighbourhood of a target user"""

    def __init__(self, policy: Optional[NeighborPolicy] = None):
        self.policy = policy or NeighborPolicy()

    def compare(self, target: UserRatings, other: UserRatings) -> Tuple[float, int]:
        """Pearson similarity over the intersection and the size of that intersection"""
        common = sorted(set(target) & set(other))
        if not common:
            return 0.0, 0
        similarity = pearson_correlation(
            [target[p] for p in common],
            [other[p] for p in common],
        )
        return similarity, len(common)

    def find_neighbors(
        self,
        target: UserRatings,
        candidates: Mapping[UserId, UserRatings],
    ) -> List[Neighbor]:
        """
        Rank candidate users by behavioural similarity

        Args:
            target: Implicit ratings of the user being served
            candidates: Implicit ratings of every candidate neighbour

        Returns:
            Up to max_neighbors neighbours, strongest first
        """
        policy = self.policy
        neighbors = []

        for user_id, ratings in candidates.items():
            similarity, common_items = self.compare(target, ratings)
            if common_items < policy.min_common_items:
                continue
            if similarity <= policy.min_similarity:
                continue
            neighbors.append(Neighbor(
                user_id=user_id,
                similarity=similarity,
                common_items=common_items,
                rated_items=len(ratings),
            ))

        neighbors.sort(key=lambda n: (
            -n.similarity * math.log(n.common_items),
            -n.rated_items,
            n.user_id,
        ))

        logger.debug(f"Kept {len(neighbors)} of {len(candidates)} candidate neighbours")
        return neighbors[:policy.max_neighbors]


@dataclass(frozen=True)
class ProductFeatures:
    """Content features of a product"""
    category_id: Optional[int]
    colors: FrozenSet[str]
    sizes: FrozenSet[str]


def extract_features(product: Product) -> ProductFeatures:
    return ProductFeatures(
        category_id=product.category_id,
        colors=frozenset(product.colors),
        sizes=frozenset(product.sizes),
    )


def overlap_coefficient(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    """|a & b| / sqrt(|a| * |b|), 0 when either set is empty"""
    if not a or not b:
        return 0.0
    return len(a & b) / math.sqrt(len(a) * len(b))


class ItemSimilarityEngine:
    """Content-based similarity between products"""

    def __init__(self, policy: Optional[ContentPolicy] = None):
        self.policy = policy or ContentPolicy()

    def similarity(self, a: ProductFeatures, b: ProductFeatures) -> float:
        policy = self.policy
        category_match = a.category_id == b.category_id
        return (
            policy.category_weight * (1.0 if category_match else 0.0)
            + policy.color_weight * overlap_coefficient(a.colors, b.colors)
            + policy.size_weight * overlap_coefficient(a.sizes, b.sizes)
        )

    def max_similarity(self, candidate: ProductFeatures, history: Iterable[ProductFeatures]) -> float:
        return max((self.similarity(candidate, past) for past in history), default=0.0)

    def rank(
        self,
        candidates: Iterable[Product],
        history: Iterable[Product],
        limit: int,
    ) -> List[Tuple[Product, float]]:
        """
        Score each candidate by its closest match in the rental history

        Args:
            candidates: Eligible products (available, not yet rented)
            history: Products the user has rented
            limit: Maximum number of results

        Returns:
            (product, similarity) pairs, most similar first
        """
        history_features = [extract_features(p) for p in history]
        if not history_features:
            return []

        scored = [
            (product, self.max_similarity(extract_features(product), history_features))
            for product in candidates
        ]
        scored.sort(key=lambda pair: (-pair[1], pair[0].product_id))
        return scored[:limit]

