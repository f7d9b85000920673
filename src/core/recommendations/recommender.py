"""
Resource recommendation service.

This module ties the pure scorer to a data source. It decides which
records to fetch, which resources to score, and how to filter and
decorate the ranked results. It doesn't know whether the data lives in
Snowflake or in memory: everything goes through the RecommendationStore
protocol, which is injected.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol

from .models import (
    Coach,
    CoachNotFoundError,
    InvalidInputError,
    RecommendationEvent,
    Resource,
    ResourceInteraction,
    ResourceNotFoundError,
    ResourceType,
    ScoredResource,
    SimilarCoach,
    Student,
)
from .scoring import (
    DEFAULT_WEIGHTS,
    SIMILAR_COACH_THRESHOLD,
    ScoringWeights,
    coach_similarity,
    rank_resources,
    resource_similarity,
)

logger = logging.getLogger(__name__)


NEW_COACH_TAG = "new-coach"
COLLABORATIVE_MIN_RATING = 4


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class RecommendationStore(Protocol):
    """
    Interface for the data the recommender reads and writes.

    Implemented by the Snowflake repository in production and by an
    in-memory repository for local development and tests.
    """

    def get_coach(self, coach_id: str) -> Optional[Coach]: ...

    def list_coaches(self) -> list[Coach]: ...

    def get_assigned_students(self, coach_id: str) -> list[Student]:
        """Active students assigned to the coach."""
        ...

    def get_resource(self, resource_id: str) -> Optional[Resource]: ...

    def list_resources(self, limit: int) -> list[Resource]:
        """Most recently created resources first."""
        ...

    def list_resources_by_type(self, resource_type: ResourceType, limit: int) -> list[Resource]: ...

    def list_resources_by_tag(self, tag: str, limit: int) -> list[Resource]: ...

    def list_interactions(
        self,
        coach_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        since: Optional[datetime] = None,
        min_rating: Optional[int] = None,
    ) -> list[ResourceInteraction]: ...

    def record_interaction(self, interaction: ResourceInteraction) -> ResourceInteraction:
        """Insert or update the coach/resource interaction and bump the view count."""
        ...

    def record_event(self, event: RecommendationEvent) -> None: ...


@dataclass
class RecommendationLimits:
    """Collection caps and defaults used by the recommender."""
    resource_batch_limit: int = 500
    similar_resource_candidate_limit: int = 50
    default_recommendation_limit: int = 10
    default_recommendation_score: int = 80
    similar_coach_limit: int = 5


# ---------------------------------------------------------------------------
# Recommender Service
# ---------------------------------------------------------------------------

class ResourceRecommender:
    """
    Produces resource recommendations for coaches.

    Stateless apart from its dependencies. Every call reads what it
    needs from the store, and the scoring itself is a pure function.
    """

    def __init__(
        self,
        store: RecommendationStore,
        limits: Optional[RecommendationLimits] = None,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
    ) -> None:
        self._store = store
        self._limits = limits or RecommendationLimits()
        self._weights = weights

    def recommend_for_coach(
        self,
        coach_id: str,
        resource_type: Optional[ResourceType] = None,
        limit: Optional[int] = None,
        include_shared: bool = False,
        now: Optional[datetime] = None,
    ) -> list[ScoredResource]:
        """
        Rank resources for a coach based on their assigned students.

        Coaches with no active students get the default new-coach list.
        Resources already shared with the coach are dropped unless
        include_shared is set. Each call records an analytics event.
        """
        coach = self._require_coach(coach_id)
        now = now or datetime.utcnow()

        students = self._store.get_assigned_students(coach_id)
        if not students:
            logger.info(
                "Coach has no active students, using default recommendations",
                extra={"coach_id": coach_id}
            )
            return self.default_recommendations()

        resources = self._store.list_resources(self._limits.resource_batch_limit)
        ranked = rank_resources(resources, coach, students, now=now, weights=self._weights)

        if resource_type is not None:
            ranked = [r for r in ranked if r.resource.type == resource_type]

        if not include_shared:
            shared_ids = {i.resource_id for i in self._store.list_interactions(coach_id=coach_id)}
            ranked = [r for r in ranked if r.id not in shared_ids]

        if limit is not None:
            ranked = ranked[:limit]

        enhanced = self._attach_usage(ranked)
        self._track(coach_id, enhanced)

        logger.info(
            "Generated recommendations",
            extra={
                "coach_id": coach_id,
                "student_count": len(students),
                "resource_count": len(enhanced),
                "top_score": enhanced[0].relevance_score if enhanced else 0,
            }
        )

        return enhanced

    def default_recommendations(self) -> list[ScoredResource]:
        """Resources tagged for new coaches, highest priority first, at a fixed score."""
        resources = self._store.list_resources_by_tag(
            NEW_COACH_TAG, self._limits.resource_batch_limit
        )
        resources.sort(key=lambda r: r.priority.rank, reverse=True)
        return [
            ScoredResource(
                resource=r,
                relevance_score=self._limits.default_recommendation_score,
            )
            for r in resources[: self._limits.default_recommendation_limit]
        ]

    def similar_resources(self, resource_id: str, limit: int = 5) -> list[ScoredResource]:
        """Resources of the same type, ordered by similarity to the given one."""
        reference = self._store.get_resource(resource_id)
        if reference is None:
            raise ResourceNotFoundError(f"Resource {resource_id} not found")

        candidates = [
            r for r in self._store.list_resources_by_type(
                reference.type, self._limits.similar_resource_candidate_limit
            )
            if r.id != resource_id
        ]

        scored = [
            ScoredResource(resource=r, similarity_score=resource_similarity(reference, r))
            for r in candidates
        ]
        scored.sort(key=lambda s: s.similarity_score, reverse=True)
        return scored[:limit]

    def trending_resources(
        self,
        days: int = 7,
        limit: int = 10,
        now: Optional[datetime] = None,
    ) -> list[ScoredResource]:
        """Resources accessed by the most coaches within the last `days` days."""
        if days < 1:
            raise InvalidInputError("Trending window must be at least one day")
        now = now or datetime.utcnow()
        since = now - timedelta(days=days)

        counts: dict[str, int] = {}
        for interaction in self._store.list_interactions(since=since):
            counts[interaction.resource_id] = counts.get(interaction.resource_id, 0) + 1

        top = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:limit]

        trending = []
        for resource_id, count in top:
            resource = self._store.get_resource(resource_id)
            if resource is None:
                logger.warning(
                    "Trending resource no longer exists",
                    extra={"resource_id": resource_id}
                )
                continue
            trending.append(ScoredResource(resource=resource, trending_score=count))
        return trending

    def find_similar_coaches(self, coach_id: str, limit: Optional[int] = None) -> list[SimilarCoach]:
        """
        Coaches whose rosters resemble this coach's.

        Returns an empty list for unknown coaches or coaches with no
        students, since there is nothing to compare.
        """
        limit = limit if limit is not None else self._limits.similar_coach_limit
        target = self._store.get_coach(coach_id)
        roster = self._store.get_assigned_students(coach_id)
        if target is None or not roster:
            return []

        similar = []
        for coach in self._store.list_coaches():
            if coach.id == coach_id or coach.role != "coach":
                continue
            other_roster = self._store.get_assigned_students(coach.id)
            if not other_roster:
                continue
            similarity = coach_similarity(roster, other_roster)
            if similarity >= SIMILAR_COACH_THRESHOLD:
                similar.append(SimilarCoach(coach=coach, similarity=similarity))

        similar.sort(key=lambda s: s.similarity, reverse=True)
        return similar[:limit]

    def collaborative_recommendations(self, coach_id: str, limit: int = 10) -> list[ScoredResource]:
        """
        Resources rated highly by coaches with similar rosters.

        Each rating of 4 or 5 from a similar coach contributes
        similarity * rating / 5 to the resource's score.
        """
        scores: dict[str, float] = {}
        for similar in self.find_similar_coaches(coach_id):
            interactions = self._store.list_interactions(
                coach_id=similar.coach.id,
                min_rating=COLLABORATIVE_MIN_RATING,
            )
            for interaction in interactions:
                weight = similar.similarity * (interaction.rating / 5)
                scores[interaction.resource_id] = scores.get(interaction.resource_id, 0.0) + weight

        top = sorted(scores.items(), key=lambda item: item[1], reverse=True)[:limit]

        recommendations = []
        for resource_id, score in top:
            resource = self._store.get_resource(resource_id)
            if resource is not None:
                recommendations.append(
                    ScoredResource(resource=resource, collaborative_score=score)
                )
        return recommendations

    def record_interaction(
        self,
        coach_id: str,
        resource_id: str,
        rating: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ResourceInteraction:
        """Record that a coach opened (and optionally rated) a resource."""
        self._require_coach(coach_id)
        if self._store.get_resource(resource_id) is None:
            raise ResourceNotFoundError(f"Resource {resource_id} not found")

        now = now or datetime.utcnow()
        interaction = ResourceInteraction(
            coach_id=coach_id,
            resource_id=resource_id,
            shared_at=now,
            last_accessed_at=now,
            access_count=1,
            rating=rating,
        )
        return self._store.record_interaction(interaction)

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _require_coach(self, coach_id: str) -> Coach:
        coach = self._store.get_coach(coach_id)
        if coach is None:
            raise CoachNotFoundError(f"Coach {coach_id} not found")
        return coach

    def _attach_usage(self, ranked: list[ScoredResource]) -> list[ScoredResource]:
        """Fill in total uses and the average of actual ratings for each resource."""
        for scored in ranked:
            interactions = self._store.list_interactions(resource_id=scored.id)
            ratings = [i.rating for i in interactions if i.rating]
            scored.total_uses = len(interactions)
            scored.usage_average_rating = sum(ratings) / len(ratings) if ratings else None
        return ranked

    def _track(self, coach_id: str, recommendations: list[ScoredResource]) -> None:
        """Record the analytics event. Failures are logged, never raised."""
        event = RecommendationEvent(
            coach_id=coach_id,
            resource_ids=[r.id for r in recommendations],
            top_score=recommendations[0].relevance_score if recommendations else 0,
        )
        try:
            self._store.record_event(event)
        except Exception as e:
            logger.error(
                "Failed to record recommendation event",
                extra={"coach_id": coach_id, "error": str(e)}
            )
