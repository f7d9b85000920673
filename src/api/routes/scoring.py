"""
Stateless relevance scoring endpoint.

Scores a single resource against a coach and students supplied in the
request body, without touching the data store. Useful for previewing how
a new resource will rank before it's published, and for checking the
scorer from other services.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from ...core.recommendations.models import (
    Coach,
    InvalidInputError,
    Priority,
    Resource,
    ResourceType,
    Student,
)
from ...core.recommendations.scoring import match_reasons, matching_criteria, relevance_score
from ..dependencies import AuthenticatedUser
from ..schemas import MatchingCriteriaItem

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class ResourcePayload(BaseModel):
    """Resource fields used by the scorer."""
    id: str = Field(min_length=1)
    title: str = ""
    type: ResourceType = ResourceType.DOCUMENT
    grade: list[str] = Field(description="Grade labels, or ['all']")
    subject: list[str] = Field(description="Subject labels")
    student_profile: list[str] = Field(description="Academic profile labels, or ['all']")
    tags: list[str] = Field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    is_required: bool = False
    created_at: Optional[datetime] = None
    view_count: int = Field(0, ge=0)
    average_rating: Optional[float] = Field(None, ge=0, le=5)


class StudentPayload(BaseModel):
    """Student fields used by the scorer."""
    id: str
    grade: str = ""
    interests: list[str] = Field(default_factory=list)
    academic_profile: str = ""
    weak_spots: list[str] = Field(default_factory=list)
    quick_wins: list[str] = Field(default_factory=list)
    priority_areas: list[str] = Field(default_factory=list)


class ScoreRequest(BaseModel):
    """A resource to score against a coach's students."""
    resource: ResourcePayload
    students: list[StudentPayload] = Field(description="The coach's assigned students")
    current_module: int = Field(1, ge=1, description="Coach's current training module")
    evaluated_at: Optional[datetime] = Field(
        None,
        description="Evaluation time for recency. Defaults to now."
    )


class ScoreResponse(BaseModel):
    """Relevance score with its explanation."""
    resource_id: str
    relevance_score: int = Field(description="0-100")
    matching_criteria: MatchingCriteriaItem
    match_reasons: list[str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/relevance",
    response_model=ScoreResponse,
    status_code=status.HTTP_200_OK,
    summary="Score one resource",
    description="Compute the 0-100 relevance score for a resource and a set of students",
)
async def score_relevance(
    request: ScoreRequest,
    api_key: AuthenticatedUser = None,
) -> ScoreResponse:
    """Score a resource without reading or writing any stored data."""
    try:
        resource = Resource(
            id=request.resource.id,
            title=request.resource.title,
            type=request.resource.type,
            grade=request.resource.grade,
            subject=request.resource.subject,
            student_profile=request.resource.student_profile,
            tags=request.resource.tags,
            priority=request.resource.priority,
            is_required=request.resource.is_required,
            created_at=request.resource.created_at,
            view_count=request.resource.view_count,
            average_rating=request.resource.average_rating,
        )
        students = [Student(**s.model_dump()) for s in request.students]
        coach = Coach(id="preview", current_module=request.current_module)

        score = relevance_score(resource, coach, students, now=request.evaluated_at)
    except InvalidInputError as e:
        logger.warning(
            "Rejected scoring request",
            extra={"resource_id": request.resource.id, "error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    return ScoreResponse(
        resource_id=resource.id,
        relevance_score=score,
        matching_criteria=MatchingCriteriaItem.from_domain(matching_criteria(resource, students)),
        match_reasons=match_reasons(resource, students, coach),
    )
