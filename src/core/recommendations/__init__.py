"""
Resource recommendation logic.

Contains the domain models, the pure relevance scorer, and the
recommender service that runs it against a data store.
"""

from .models import (
    Coach,
    CoachNotFoundError,
    InvalidInputError,
    MatchingCriteria,
    Priority,
    RecommendationEvent,
    Resource,
    ResourceInteraction,
    ResourceNotFoundError,
    ResourceType,
    ScoredResource,
    SimilarCoach,
    Student,
)
from .recommender import RecommendationLimits, RecommendationStore, ResourceRecommender
from .scoring import DEFAULT_WEIGHTS, ScoringWeights, relevance_score

__all__ = [
    "Coach",
    "CoachNotFoundError",
    "InvalidInputError",
    "MatchingCriteria",
    "Priority",
    "RecommendationEvent",
    "Resource",
    "ResourceInteraction",
    "ResourceNotFoundError",
    "ResourceType",
    "ScoredResource",
    "SimilarCoach",
    "Student",
    "RecommendationLimits",
    "RecommendationStore",
    "ResourceRecommender",
    "DEFAULT_WEIGHTS",
    "ScoringWeights",
    "relevance_score",
]
