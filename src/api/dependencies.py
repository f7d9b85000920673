"""
Request-scoped dependencies for the recommendation routes.

Routes declare what they need through the `Annotated` aliases at the
bottom of this module and FastAPI builds it per request:

- the caller's API key, checked against settings
- a RecommendationStore: the shared in-memory repository in mock mode,
  otherwise a Snowflake repository whose connection is closed when the
  request ends
- a ResourceRecommender bound to that store and the configured limits

Tests swap any of these with `app.dependency_overrides`, or flip mock
mode through the environment.
"""

import json
import logging
from typing import Annotated, Iterator, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.recommendations.recommender import (
    RecommendationLimits,
    RecommendationStore,
    ResourceRecommender,
)
from ..infrastructure.memory import InMemoryRecommendationRepository
from ..infrastructure.snowflake.client import create_snowflake_connection
from ..infrastructure.snowflake.repositories import (
    SnowflakeConfig,
    SnowflakeRecommendationRepository,
)

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# One in-memory repository per process, so mock-mode writes survive between requests
_mock_repository: Optional[InMemoryRecommendationRepository] = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: Optional[str] = Security(api_key_header),
) -> str:
    """Return the caller's key, or 403 if it's missing or unknown."""
    if not api_key:
        logger.warning("Request without API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning("Rejected API key", extra={"key_prefix": api_key[:8]})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Data Store
# ---------------------------------------------------------------------------

def snowflake_config_from_settings(settings: Settings) -> SnowflakeConfig:
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


def get_mock_repository(settings: Settings) -> InMemoryRecommendationRepository:
    """
    The process-wide in-memory repository, created on first use.

    When MOCK_SEED_PATH is set, the new repository is loaded from that
    JSON file.
    """
    global _mock_repository

    if _mock_repository is None:
        repository = InMemoryRecommendationRepository()
        if settings.mock_seed_path:
            with open(settings.mock_seed_path, encoding="utf-8") as seed_file:
                repository.seed(json.load(seed_file))
        _mock_repository = repository
        logger.info("Mock mode repository ready", extra={"seed_path": settings.mock_seed_path})

    return _mock_repository


def reset_mock_repository() -> None:
    """Forget the shared in-memory repository. Used between tests."""
    global _mock_repository
    _mock_repository = None


def get_recommendation_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Iterator[RecommendationStore]:
    if settings.snowflake_mock_mode:
        yield get_mock_repository(settings)
        return

    with create_snowflake_connection(config=snowflake_config_from_settings(settings)) as conn:
        yield SnowflakeRecommendationRepository(conn)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

def get_recommender(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[RecommendationStore, Depends(get_recommendation_store)],
) -> ResourceRecommender:
    limits = RecommendationLimits(
        resource_batch_limit=settings.resource_batch_limit,
        similar_resource_candidate_limit=settings.similar_resource_candidate_limit,
        default_recommendation_limit=settings.default_recommendation_limit,
        default_recommendation_score=settings.default_recommendation_score,
        similar_coach_limit=settings.similar_coach_limit,
    )
    return ResourceRecommender(store=store, limits=limits)


# ---------------------------------------------------------------------------
# Route Signature Aliases
# ---------------------------------------------------------------------------

AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
RecommenderDep = Annotated[ResourceRecommender, Depends(get_recommender)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
