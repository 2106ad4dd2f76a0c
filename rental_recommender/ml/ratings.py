"""
Implicit Rating Aggregation

Turns a user's rental history into a 0-5 preference score per product. The
same aggregator scores the target user and every candidate neighbor, so both
sides of a Pearson comparison share one scale.
"""

import logging
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from ..core.config import RatingPolicy
from ..core.models import RentalInteraction, UserRatings

logger = logging.getLogger(__name__)


def safe_ratio(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    """Element-wise division where 0/0 (or x/0) is 0"""
    numerator = np.asarray(numerator, dtype=float)
    denominator = np.asarray(denominator, dtype=float)
    return np.divide(
        numerator,
        denominator,
        out=np.zeros_like(numerator, dtype=float),
        where=denominator > 0,
    )


class ImplicitRatingAggregator:
    """
    Derives implicit ratings from rental interactions

    rating = max_rating * min(1,
        w_freq * min(1, rentals_per_active_month / frequency_cap)
      + w_completion * completed / rentals
      + w_on_time * on_time / rentals
      + w_quantity * min(1, mean_quantity / quantity_cap))
    """

    def __init__(self, policy: Optional[RatingPolicy] = None):
        self.policy = policy or RatingPolicy()

    def to_frame(self, interactions: Sequence[RentalInteraction]) -> pd.DataFrame:
        """Per-product behaviour counters for one user's interactions"""
        frame = pd.DataFrame(
            {
                "product_id": [i.product_id for i in interactions],
                "quantity": [i.quantity for i in interactions],
                "completed": [i.completed for i in interactions],
                "on_time": [i.returned_on_time for i in interactions],
                "month": [i.reservation_month for i in interactions],
            }
        )
        return frame.groupby("product_id").agg(
            rentals=("product_id", "size"),
            total_quantity=("quantity", "sum"),
            completed=("completed", "sum"),
            on_time=("on_time", "sum"),
            active_months=("month", "nunique"),
        )

    def aggregate(self, interactions: Sequence[RentalInteraction]) -> UserRatings:
        """
        Compute one implicit rating per rented product

        Args:
            interactions: All rental line items of a single user

        Returns:
            Mapping of product id to rating in [0, max_rating]; empty when
            the user has no interactions
        """
        if not interactions:
            return {}

        stats = self.to_frame(interactions)
        policy = self.policy

        rentals = stats["rentals"].to_numpy(dtype=float)
        frequency = np.minimum(
            1.0, safe_ratio(rentals, stats["active_months"].to_numpy()) / policy.frequency_cap
        )
        completion_rate = safe_ratio(stats["completed"].to_numpy(), rentals)
        on_time_rate = safe_ratio(stats["on_time"].to_numpy(), rentals)
        quantity = np.minimum(
            1.0, safe_ratio(stats["total_quantity"].to_numpy(), rentals) / policy.quantity_cap
        )

        blended = (
            policy.frequency_weight * frequency
            + policy.completion_weight * completion_rate
            + policy.on_time_weight * on_time_rate
            + policy.quantity_weight * quantity
        )
        ratings = policy.max_rating * np.clip(blended, 0.0, 1.0)

        result = {int(pid): float(r) for pid, r in zip(stats.index, ratings)}
        logger.debug(f"Aggregated {len(interactions)} interactions into {len(result)} ratings")
        return result
