"""
Response models shared across recommendation routes.

Domain objects are converted here so routes don't repeat the mapping.
"""

from typing import Optional

from pydantic import BaseModel, Field

from ..core.recommendations.models import MatchingCriteria, ScoredResource


class MatchingCriteriaItem(BaseModel):
    """Which targeting dimensions a resource hit."""
    student_match: bool
    grade_match: bool
    subject_match: bool
    profile_match: bool

    @classmethod
    def from_domain(cls, criteria: MatchingCriteria) -> "MatchingCriteriaItem":
        return cls(
            student_match=criteria.student_match,
            grade_match=criteria.grade_match,
            subject_match=criteria.subject_match,
            profile_match=criteria.profile_match,
        )


class ScoredResourceItem(BaseModel):
    """A resource with the scores computed for this request."""
    resource_id: str = Field(description="Resource identifier")
    title: str = Field(description="Resource title")
    type: str = Field(description="Resource type (document, video, ...)")
    priority: str = Field(description="Priority level (low, medium, high)")
    is_required: bool = Field(description="Whether the resource is required training")
    tags: list[str] = Field(default_factory=list, description="Resource tags")
    relevance_score: int = Field(description="Relevance to the coach's students, 0-100")
    similarity_score: Optional[float] = Field(None, description="Similarity to a reference resource")
    trending_score: Optional[int] = Field(None, description="Recent access count")
    collaborative_score: Optional[float] = Field(None, description="Weighted ratings from similar coaches")
    matching_criteria: MatchingCriteriaItem
    match_reasons: list[str] = Field(default_factory=list, description="Why this was recommended")
    total_uses: Optional[int] = Field(None, description="Number of coaches who used the resource")
    average_rating: Optional[float] = Field(None, description="Average coach rating, 1-5")

    @classmethod
    def from_domain(cls, scored: ScoredResource) -> "ScoredResourceItem":
        resource = scored.resource
        return cls(
            resource_id=resource.id,
            title=resource.title,
            type=resource.type.value,
            priority=resource.priority.value,
            is_required=resource.is_required,
            tags=sorted(resource.tags),
            relevance_score=scored.relevance_score,
            similarity_score=scored.similarity_score,
            trending_score=scored.trending_score,
            collaborative_score=scored.collaborative_score,
            matching_criteria=MatchingCriteriaItem.from_domain(scored.matching_criteria),
            match_reasons=scored.match_reasons,
            total_uses=scored.total_uses,
            average_rating=(
                scored.usage_average_rating
                if scored.usage_average_rating is not None
                else resource.average_rating
            ),
        )


class ScoredResourceList(BaseModel):
    """A ranked list of resources."""
    resources: list[ScoredResourceItem]
    total: int
