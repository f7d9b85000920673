"""
Coach-facing recommendation endpoints.

Everything here is keyed by coach: personalized recommendations based on
the coach's assigned students, recommendations borrowed from coaches with
similar rosters, and the similar coaches themselves.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.recommendations.models import CoachNotFoundError, ResourceType
from ..dependencies import AuthenticatedUser, RecommenderDep, SettingsDep
from ..schemas import ScoredResourceItem, ScoredResourceList

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class SimilarCoachItem(BaseModel):
    """A coach with a similar student roster."""
    coach_id: str = Field(description="Coach identifier")
    name: str = Field(description="Coach name")
    similarity: float = Field(description="Roster similarity, 0-1")


class SimilarCoachesResponse(BaseModel):
    """Coaches with similar rosters, most similar first."""
    coaches: list[SimilarCoachItem]
    total: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/{coach_id}/recommendations",
    response_model=ScoredResourceList,
    status_code=status.HTTP_200_OK,
    summary="Get personalized recommendations",
    description="Resources ranked by relevance to the coach's assigned students",
)
async def get_recommendations(
    coach_id: str,
    resource_type: Optional[ResourceType] = Query(None, alias="type"),
    limit: Optional[int] = Query(None, ge=1, le=100),
    include_shared: bool = Query(False),
    api_key: AuthenticatedUser = None,
    recommender: RecommenderDep = None,
    settings: SettingsDep = None,
) -> ScoredResourceList:
    """
    Rank the resource library for a coach.

    Coaches with no active students receive the default new-coach list.
    Resources already shared with the coach are omitted unless
    include_shared is set.
    """
    logger.info(
        "Fetching recommendations",
        extra={"coach_id": coach_id, "type": resource_type.value if resource_type else None}
    )

    try:
        recommendations = recommender.recommend_for_coach(
            coach_id,
            resource_type=resource_type,
            limit=limit or settings.recommendation_default_limit,
            include_shared=include_shared,
        )
    except CoachNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Coach not found"
        )
    except Exception as e:
        logger.error(
            "Failed to generate recommendations",
            extra={"coach_id": coach_id, "error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate recommendations"
        )

    items = [ScoredResourceItem.from_domain(r) for r in recommendations]
    return ScoredResourceList(resources=items, total=len(items))


@router.get(
    "/{coach_id}/recommendations/collaborative",
    response_model=ScoredResourceList,
    status_code=status.HTTP_200_OK,
    summary="Get recommendations from similar coaches",
    description="Resources rated highly by coaches whose students resemble this coach's",
)
async def get_collaborative_recommendations(
    coach_id: str,
    limit: int = Query(10, ge=1, le=100),
    api_key: AuthenticatedUser = None,
    recommender: RecommenderDep = None,
) -> ScoredResourceList:
    """Collaborative filtering over coach ratings."""
    try:
        recommendations = recommender.collaborative_recommendations(coach_id, limit=limit)
    except Exception as e:
        logger.error(
            "Failed to generate collaborative recommendations",
            extra={"coach_id": coach_id, "error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate recommendations"
        )

    items = [ScoredResourceItem.from_domain(r) for r in recommendations]
    return ScoredResourceList(resources=items, total=len(items))


@router.get(
    "/{coach_id}/similar-coaches",
    response_model=SimilarCoachesResponse,
    status_code=status.HTTP_200_OK,
    summary="Find coaches with similar students",
)
async def get_similar_coaches(
    coach_id: str,
    limit: Optional[int] = Query(None, ge=1, le=50),
    api_key: AuthenticatedUser = None,
    recommender: RecommenderDep = None,
) -> SimilarCoachesResponse:
    """Coaches above the similarity threshold, most similar first."""
    similar = recommender.find_similar_coaches(coach_id, limit=limit)

    return SimilarCoachesResponse(
        coaches=[
            SimilarCoachItem(
                coach_id=s.coach.id,
                name=s.coach.name,
                similarity=round(s.similarity, 4),
            )
            for s in similar
        ],
        total=len(similar),
    )
