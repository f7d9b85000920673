"""
Coach Resource Recommender - training resource recommendations for coaches.

This package contains the complete application:
- core: Framework-agnostic domain models and scoring
- infrastructure: Data store integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
