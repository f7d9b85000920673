"""
Resource library endpoints.

Resource-centric views that don't depend on a particular coach's roster:
trending resources, related resources, and recording coach usage.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.recommendations.models import (
    CoachNotFoundError,
    InvalidInputError,
    ResourceNotFoundError,
)
from ..dependencies import AuthenticatedUser, RecommenderDep, SettingsDep
from ..schemas import ScoredResourceItem, ScoredResourceList

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class InteractionRequest(BaseModel):
    """A coach opened or rated a resource."""
    coach_id: str = Field(description="Coach who used the resource", min_length=1)
    rating: Optional[int] = Field(None, ge=1, le=5, description="Optional rating, 1-5")


class InteractionResponse(BaseModel):
    """The stored interaction after the update."""
    coach_id: str
    resource_id: str
    access_count: int
    rating: Optional[int] = None
    last_accessed_at: Optional[str] = Field(None, description="ISO timestamp")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/trending",
    response_model=ScoredResourceList,
    status_code=status.HTTP_200_OK,
    summary="Get trending resources",
    description="Resources accessed most often within the look-back window",
)
async def get_trending_resources(
    days: Optional[int] = Query(None, ge=1, le=365),
    limit: int = Query(10, ge=1, le=100),
    api_key: AuthenticatedUser = None,
    recommender: RecommenderDep = None,
    settings: SettingsDep = None,
) -> ScoredResourceList:
    """Trending resources over the last `days` days (default from settings)."""
    trending = recommender.trending_resources(
        days=days or settings.trending_window_days,
        limit=limit,
    )
    items = [ScoredResourceItem.from_domain(r) for r in trending]
    return ScoredResourceList(resources=items, total=len(items))


@router.get(
    "/{resource_id}/similar",
    response_model=ScoredResourceList,
    status_code=status.HTTP_200_OK,
    summary="Get related resources",
    description="Resources of the same type ordered by similarity",
)
async def get_similar_resources(
    resource_id: str,
    limit: int = Query(5, ge=1, le=50),
    api_key: AuthenticatedUser = None,
    recommender: RecommenderDep = None,
) -> ScoredResourceList:
    """Related resources for a resource detail view."""
    try:
        similar = recommender.similar_resources(resource_id, limit=limit)
    except ResourceNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Resource not found"
        )

    items = [ScoredResourceItem.from_domain(r) for r in similar]
    return ScoredResourceList(resources=items, total=len(items))


@router.post(
    "/{resource_id}/interactions",
    response_model=InteractionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record resource usage",
    description="Record that a coach opened, and optionally rated, a resource",
)
async def record_interaction(
    resource_id: str,
    request: InteractionRequest,
    api_key: AuthenticatedUser = None,
    recommender: RecommenderDep = None,
) -> InteractionResponse:
    """
    Record a coach's use of a resource.

    Updates the resource's view count and average rating, which feed
    popularity scoring, trending, and collaborative recommendations.
    """
    logger.info(
        "Recording interaction",
        extra={"coach_id": request.coach_id, "resource_id": resource_id}
    )

    try:
        interaction = recommender.record_interaction(
            request.coach_id,
            resource_id,
            rating=request.rating,
        )
    except (CoachNotFoundError, ResourceNotFoundError) as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )
    except Exception as e:
        logger.error(
            "Failed to record interaction",
            extra={"resource_id": resource_id, "error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record interaction"
        )

    return InteractionResponse(
        coach_id=interaction.coach_id,
        resource_id=interaction.resource_id,
        access_count=interaction.access_count,
        rating=interaction.rating,
        last_accessed_at=(
            interaction.last_accessed_at.isoformat() if interaction.last_accessed_at else None
        ),
    )
