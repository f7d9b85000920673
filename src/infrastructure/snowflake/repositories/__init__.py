"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .recommendations import SnowflakeConfig, SnowflakeRecommendationRepository

__all__ = ["SnowflakeConfig", "SnowflakeRecommendationRepository"]
