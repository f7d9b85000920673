"""
In-memory data store used in mock mode.

Implements the RecommendationStore protocol without external services.
"""

from .repository import InMemoryRecommendationRepository

__all__ = ["InMemoryRecommendationRepository"]
