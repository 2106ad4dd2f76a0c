"""Core recommendation engine components"""

from .engine import RecommendationEngine
from .algorithms import AlgorithmRegistry
from .models import Product, RentalInteraction, Recommendation, Strategy, StrategyTag

__all__ = ["RecommendationEngine", "AlgorithmRegistry", "Product", "RentalInteraction", "Recommendation", "Strategy", "StrategyTag"]
