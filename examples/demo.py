#!/usr/bin/env python3
"""
Rental Recommendation Engine - Demo

Builds a synthetic rental platform in memory and walks through every
strategy, the popularity fallback and the response cache.
"""

import asyncio
import logging
import random
import time
from datetime import date, timedelta
from typing import List, Tuple

from rental_recommender import (
    EngineConfig,
    InMemoryRentalStore,
    Product,
    RecommendationEngine,
    RentalInteraction,
    Strategy,
)
from rental_recommender.core.models import RecommendationRequest, RentalState

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

COLORS = ["red", "blue", "green", "black", "white", "gold"]
SIZES = ["XS", "S", "M", "L", "XL"]


def print_header(title: str, char: str = "="):
    """Print a formatted header"""
    print()
    print(char * 70)
    print(f" {title}")
    print(char * 70)
    print()


def print_section(title: str):
    """Print a section header"""
    print(f"\n⚡ {title}")
    print("-" * (len(title) + 3))


def generate_catalog(num_products: int = 200, num_categories: int = 8) -> List[Product]:
    products = []
    for product_id in range(1, num_products + 1):
        products.append(Product(
            product_id=product_id,
            category_id=random.randint(1, num_categories),
            colors=frozenset(random.sample(COLORS, random.randint(1, 3))),
            sizes=frozenset(random.sample(SIZES, random.randint(1, 3))),
            price=round(random.uniform(10, 150), 2),
            available=random.random() > 0.1,
            name=f"Costume {product_id}",
        ))
    return products


def generate_synthetic_data(
    products: List[Product],
    num_users: int = 300,
    num_clusters: int = 6,
) -> List[RentalInteraction]:
    """Users in the same taste cluster rent from the same pool of products"""
    pools = [
        random.sample([p.product_id for p in products], 25)
        for _ in range(num_clusters)
    ]
    start = date(2024, 1, 1)
    interactions = []

    logger.info(f"Generating rental history for {num_users} users...")

    for user_id in range(1, num_users + 1):
        pool = pools[user_id % num_clusters]
        # A third of the pool is the cluster's favourites
        favourites = pool[:8]
        for product_id in random.sample(pool, random.randint(4, 12)):
            loyal = product_id in favourites
            for _ in range(random.randint(1, 4) if loyal else 1):
                reserved = start + timedelta(days=random.randint(0, 365))
                returned = reserved + timedelta(days=random.randint(-2, 1 if loyal else 5))
                interactions.append(RentalInteraction(
                    user_id=user_id,
                    product_id=product_id,
                    quantity=random.randint(1, 3),
                    state=RentalState.COMPLETED if loyal or random.random() > 0.4 else RentalState.RESERVED,
                    reservation_date=reserved,
                    return_date=returned,
                ))

    logger.info(f"Generated {len(interactions)} rental line items")
    return interactions


def show(recommendations, limit: int = 5):
    for rec in recommendations[:limit]:
        print(f"  #{rec.rank:<2} product {rec.product_id:<4} score={rec.score:6.3f}  [{rec.strategy.value}] {rec.product.name}")


async def demo_strategies(engine: RecommendationEngine, user_ids: List[int]):
    print_section("Strategy Comparison")
    for user_id in user_ids:
        print(f"\nUser {user_id}")
        for strategy in Strategy:
            response = await engine.get_recommendations(RecommendationRequest(user_id, strategy, limit=5))
            note = f" (fallback: {response.fallback_reason})" if response.fallback_used else ""
            print(f" {strategy.value}{note}")
            show(response.recommendations)


async def demo_cold_start(engine: RecommendationEngine):
    print_section("Cold Start")
    recommendations = await engine.recommend(user_id=999999, strategy=Strategy.USER_BASED, limit=5)
    print("User without rentals gets the popularity ranking:")
    show(recommendations)


async def demo_cache_performance(engine: RecommendationEngine, user_id: int):
    print_section("Cache Performance")
    timings: List[Tuple[str, float]] = []
    for label in ("cold", "warm"):
        start_time = time.time()
        await engine.recommend(user_id, Strategy.USER_BASED)
        timings.append((label, (time.time() - start_time) * 1000))
    for label, latency_ms in timings:
        print(f"  {label} request: {latency_ms:.2f}ms")

    await engine.invalidate_user(user_id)
    print("  cache invalidated after a new rental")


async def benchmark_latency(engine: RecommendationEngine, user_ids: List[int], num_requests: int = 200):
    print_section("Latency Benchmark")
    latencies = []
    for _ in range(num_requests):
        user_id = random.choice(user_ids)
        strategy = random.choice(list(Strategy))
        start_time = time.time()
        await engine.recommend(user_id, strategy)
        latencies.append((time.time() - start_time) * 1000)

    latencies.sort()
    print(f"  Total requests: {len(latencies)}")
    print(f"  Average latency: {sum(latencies) / len(latencies):.2f}ms")
    print(f"  P50 latency: {latencies[len(latencies) // 2]:.2f}ms")
    print(f"  P95 latency: {latencies[int(len(latencies) * 0.95)]:.2f}ms")


async def run_demo():
    print_header("Rental Recommendation Engine Demo")
    random.seed(7)

    products = generate_catalog()
    store = InMemoryRentalStore(products, generate_synthetic_data(products))
    engine = RecommendationEngine(store, EngineConfig())
    print(f"✅ Engine initialized: {engine}")

    sample_users = [1, 2, 3]
    await demo_strategies(engine, sample_users)
    await demo_cold_start(engine)
    await demo_cache_performance(engine, sample_users[0])
    await benchmark_latency(engine, list(range(1, 301)))

    print_section("Final Statistics")
    for key, value in engine.get_statistics().items():
        print(f"  {key}: {value}")

    await engine.shutdown()
    print_header("Demo Complete", "-")


def main():
    """Main entry point"""
    try:
        asyncio.run(run_demo())
    except KeyboardInterrupt:
        print("\n\nDemo interrupted.")


if __name__ == "__main__":
    main()
