"""Tests for user and item similarity"""

import math
import random

import pytest

from rental_recommender.core.config import NeighborPolicy
from rental_recommender.ml.similarity import (
    ItemSimilarityEngine,
    UserSimilarityEngine,
    extract_features,
    overlap_coefficient,
    pearson_correlation,
)

from .conftest import make_product


class TestPearsonCorrelation:

    def test_identical_vectors(self):
        assert pearson_correlation([1, 2, 3, 4, 5], [1, 2, 3, 4, 5]) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        assert pearson_correlation([1, 2, 3], [3, 2, 1]) == pytest.approx(-1.0)

    def test_zero_variance_is_neutral(self):
        assert pearson_correlation([4.2, 4.2, 4.2], [1.0, 2.0, 3.0]) == 0.0

    def test_too_short_is_neutral(self):
        assert pearson_correlation([3.0], [4.0]) == 0.0

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            pearson_correlation([1, 2], [1, 2, 3])

    def test_bounded(self):
        rng = random.Random(3)
        for _ in range(200):
            n = rng.randint(2, 8)
            x = [rng.uniform(0, 5) for _ in range(n)]
            y = [rng.uniform(0, 5) for _ in range(n)]
            assert -1.0 <= pearson_correlation(x, y) <= 1.0


class TestUserSimilarityEngine:

    def test_identical_raters_become_top_neighbor(self):
        target = {1: 1.0, 2: 2.0, 3: 3.0, 4: 4.0, 5: 5.0}
        candidates = {
            2: dict(target),
            3: {1: 2.0, 2: 1.0, 3: 3.5, 4: 3.0, 5: 4.0},
        }
        neighbors = UserSimilarityEngine().find_neighbors(target, candidates)

        assert neighbors[0].user_id == 2
        assert neighbors[0].similarity == pytest.approx(1.0)
        assert neighbors[0].common_items == 5

    def test_too_few_common_items_excluded_despite_perfect_correlation(self):
        target = {1: 1.0, 2: 4.0, 3: 2.0}
        candidates = {2: {1: 1.0, 2: 4.0, 9: 5.0}}
        engine = UserSimilarityEngine()

        similarity, common = engine.compare(target, candidates[2])
        assert similarity == pytest.approx(1.0)
        assert common == 2
        assert engine.find_neighbors(target, candidates) == []

    def test_weak_and_negative_correlation_excluded(self):
        target = {1: 1.0, 2: 2.0, 3: 3.0, 4: 4.0}
        candidates = {
            2: {1: 4.0, 2: 3.0, 3: 2.0, 4: 1.0},
            3: {1: 2.0, 2: 1.0, 3: 1.0, 4: 2.0},
        }
        assert UserSimilarityEngine().find_neighbors(target, candidates) == []

    def test_zero_variance_neighbor_excluded(self):
        target = {1: 1.0, 2: 2.0, 3: 3.0}
        candidates = {2: {1: 3.0, 2: 3.0, 3: 3.0}}
        assert UserSimilarityEngine().find_neighbors(target, candidates) == []

    def test_broader_overlap_ranks_first(self):
        target = {p: float(p) for p in range(1, 6)}
        candidates = {
            2: {1: 1.0, 2: 2.0, 3: 3.0},
            3: {p: float(p) for p in range(1, 6)},
        }
        neighbors = UserSimilarityEngine().find_neighbors(target, candidates)
        assert [n.user_id for n in neighbors] == [3, 2]
        assert neighbors[0].similarity * math.log(5) > neighbors[1].similarity * math.log(3)

    def test_ties_broken_by_total_rated_products(self):
        target = {1: 1.0, 2: 2.0, 3: 3.0}
        candidates = {
            2: {1: 1.0, 2: 2.0, 3: 3.0},
            3: {1: 1.0, 2: 2.0, 3: 3.0, 7: 4.0, 8: 2.0},
        }
        neighbors = UserSimilarityEngine().find_neighbors(target, candidates)
        assert [n.user_id for n in neighbors] == [3, 2]
        assert neighbors[0].rated_items == 5

    def test_neighbor_cap(self):
        target = {1: 1.0, 2: 2.0, 3: 3.0}
        candidates = {uid: dict(target) for uid in range(2, 20)}
        engine = UserSimilarityEngine(NeighborPolicy(max_neighbors=4))
        assert len(engine.find_neighbors(target, candidates)) == 4


class TestOverlapCoefficient:

    def test_partial_overlap(self):
        assert overlap_coefficient(frozenset({"red", "blue"}), frozenset({"red"})) == pytest.approx(1 / math.sqrt(2))

    def test_empty_set_contributes_nothing(self):
        assert overlap_coefficient(frozenset(), frozenset({"red"})) == 0.0
        assert overlap_coefficient(frozenset(), frozenset()) == 0.0


class TestItemSimilarityEngine:

    @pytest.fixture
    def engine(self):
        return ItemSimilarityEngine()

    def test_self_similarity_is_maximal(self, engine):
        product = extract_features(make_product(1, colors=["red", "blue"], sizes=["S", "M", "L"]))
        assert engine.similarity(product, product) == pytest.approx(1.0)

    def test_symmetric(self, engine):
        rng = random.Random(11)
        palette = ["red", "blue", "green", "black"]
        sizes = ["S", "M", "L"]
        for _ in range(100):
            a = extract_features(make_product(
                1, rng.randint(1, 3), rng.sample(palette, rng.randint(0, 4)), rng.sample(sizes, rng.randint(0, 3))
            ))
            b = extract_features(make_product(
                2, rng.randint(1, 3), rng.sample(palette, rng.randint(0, 4)), rng.sample(sizes, rng.randint(0, 3))
            ))
            assert engine.similarity(a, b) == engine.similarity(b, a)

    def test_shared_features_outscore_disjoint(self, engine):
        a = extract_features(make_product(1, 1, ["red"], ["M"]))
        b = extract_features(make_product(2, 1, ["red", "blue"], ["M"]))
        c = extract_features(make_product(3, 2, ["green"], ["L"]))

        assert engine.similarity(a, b) == pytest.approx(0.4 + 0.3 / math.sqrt(2) + 0.3)
        assert engine.similarity(a, c) == 0.0

    def test_uncategorised_products_match_each_other(self, engine):
        a = extract_features(make_product(1, None, ["red"], ["M"]))
        b = extract_features(make_product(2, None, ["red"], ["M"]))

        assert engine.similarity(a, a) == pytest.approx(1.0)
        assert engine.similarity(a, b) == pytest.approx(1.0)

    def test_uncategorised_never_matches_a_category(self, engine):
        a = extract_features(make_product(1, None, ["red"], ["M"]))
        b = extract_features(make_product(2, 1, ["red"], ["M"]))
        assert engine.similarity(a, b) == pytest.approx(0.6)

    def test_rank_uses_best_history_match(self, engine):
        history = [make_product(1, 1, ["red"], ["M"]), make_product(2, 3, ["white"], ["XL"])]
        candidates = [
            make_product(10, 4, ["gold"], ["XS"]),
            make_product(11, 3, ["white"], ["S"]),
            make_product(12, 1, ["red"], ["M"]),
        ]
        ranked = engine.rank(candidates, history, limit=10)

        assert [p.product_id for p, _ in ranked] == [12, 11, 10]
        assert [score for _, score in ranked] == pytest.approx([1.0, 0.7, 0.0])

    def test_rank_truncates(self, engine):
        history = [make_product(1)]
        candidates = [make_product(pid) for pid in range(10, 20)]
        assert len(engine.rank(candidates, history, limit=3)) == 3

    def test_rank_without_history_is_empty(self, engine):
        assert engine.rank([make_product(10)], [], limit=10) == []
