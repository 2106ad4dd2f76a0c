"""Scoring algorithms for recommendations"""

from .algorithms import CollaborativeFiltering, ContentBased, PopularityFallback

__all__ = ["CollaborativeFiltering", "ContentBased", "PopularityFallback"]
