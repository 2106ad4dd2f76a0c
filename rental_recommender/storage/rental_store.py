"""
Rental Data Store

Read-only contracts the engine uses to reach rental history, the product
catalog and aggregate demand, plus an in-memory implementation for fixtures
and demos.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from ..core.models import PopularityStats, Product, ProductId, RentalInteraction, UserId


class RentalDataStore(ABC):
    """Read contracts consumed by the recommendation engine"""

    @abstractmethod
    async def interactions(self, user_id: UserId) -> List[RentalInteraction]:
        """All rental line items of a user"""

    @abstractmethod
    async def catalog(self, available_only: bool = True) -> List[Product]:
        """Products in the catalog, optionally only the available ones"""

    @abstractmethod
    async def aggregate_popularity(self) -> List[PopularityStats]:
        """Demand statistics for every product that has been rented"""

    @abstractmethod
    async def already_rented(self, user_id: UserId) -> Set[ProductId]:
        """Products the user has rented at least once"""

    @abstractmethod
    async def renters_of(self, product_ids: Iterable[ProductId]) -> Set[UserId]:
        """Users who rented at least one of the given products"""

    async def ping(self) -> bool:
        return True

    async def close(self):
        pass


class InMemoryRentalStore(RentalDataStore):
    """
    Rental store held entirely in memory
    """

    def __init__(
        self,
        products: Optional[Iterable[Product]] = None,
        interactions: Optional[Iterable[RentalInteraction]] = None,
    ):
        self.products: Dict[ProductId, Product] = {}
        self.user_interactions: Dict[UserId, List[RentalInteraction]] = defaultdict(list)
        self.product_renters: Dict[ProductId, Set[UserId]] = defaultdict(set)

        self.logger = logging.getLogger(__name__)

        for product in products or []:
            self.add_product(product)
        for interaction in interactions or []:
            self.add_interaction(interaction)

    def add_product(self, product: Product):
        self.products[product.product_id] = product

    def add_interaction(self, interaction: RentalInteraction):
        self.user_interactions[interaction.user_id].append(interaction)
        self.product_renters[interaction.product_id].add(interaction.user_id)

    async def interactions(self, user_id: UserId) -> List[RentalInteraction]:
        return list(self.user_interactions.get(user_id, []))

    async def catalog(self, available_only: bool = True) -> List[Product]:
        products = sorted(self.products.values(), key=lambda p: p.product_id)
        if available_only:
            products = [p for p in products if p.available]
        return products

    async def aggregate_popularity(self) -> List[PopularityStats]:
        totals: Dict[ProductId, int] = defaultdict(int)
        completed: Dict[ProductId, int] = defaultdict(int)

        for interactions in self.user_interactions.values():
            for interaction in interactions:
                totals[interaction.product_id] += 1
                if interaction.completed:
                    completed[interaction.product_id] += 1

        return [
            PopularityStats(
                product_id=product_id,
                unique_renter_count=len(self.product_renters[product_id]),
                total_rentals=total,
                completion_rate=completed[product_id] / total,
            )
            for product_id, total in sorted(totals.items())
        ]

    async def already_rented(self, user_id: UserId) -> Set[ProductId]:
        return {i.product_id for i in self.user_interactions.get(user_id, [])}

    async def renters_of(self, product_ids: Iterable[ProductId]) -> Set[UserId]:
        renters: Set[UserId] = set()
        for product_id in product_ids:
            renters |= self.product_renters.get(product_id, set())
        return renters

    async def close(self):
        self.logger.info("Closing in-memory rental store...")
