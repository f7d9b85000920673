"""
In-memory recommendation repository for local development.

Implements the same RecommendationStore protocol as the Snowflake
repository, backed by dictionaries. Enables running the full API and the
test suite without provisioning a database.

Not suitable for production: data lives only as long as the process.
"""

import logging
from collections import deque
from datetime import datetime
from typing import Any, Iterable, Optional

from src.core.recommendations.models import (
    Coach,
    RecommendationEvent,
    Resource,
    ResourceInteraction,
    ResourceType,
    Student,
)

logger = logging.getLogger(__name__)

# Oldest analytics events are dropped past this many
MAX_EVENTS = 1000


class InMemoryRecommendationRepository:
    """
    Dictionary-backed store for coaches, students, resources and usage.

    Each instance is isolated, so tests can build exactly the data they
    need. The API shares one instance per process in mock mode.
    """

    def __init__(self, max_events: int = MAX_EVENTS) -> None:
        self._coaches: dict[str, Coach] = {}
        self._students: dict[str, Student] = {}
        self._resources: dict[str, Resource] = {}
        self._interactions: dict[tuple[str, str], ResourceInteraction] = {}
        self.events: deque[RecommendationEvent] = deque(maxlen=max_events)

        logger.info("Initialized in-memory recommendation repository")

    # -----------------------------------------------------------------------
    # Seeding (for tests and local development)
    # -----------------------------------------------------------------------

    def add_coach(self, coach: Coach) -> Coach:
        self._coaches[coach.id] = coach
        return coach

    def add_student(self, student: Student) -> Student:
        self._students[student.id] = student
        return student

    def save_resource(self, resource: Resource) -> None:
        self._resources[resource.id] = resource

    def add_interaction(self, interaction: ResourceInteraction) -> ResourceInteraction:
        """Store an interaction as-is, without touching resource metrics."""
        self._interactions[(interaction.coach_id, interaction.resource_id)] = interaction
        return interaction

    def seed(self, documents: dict[str, Iterable[dict[str, Any]]]) -> None:
        """
        Load camelCase documents keyed by collection name.

        Recognized collections: coaches, students, resources.
        """
        for doc in documents.get("coaches", []):
            self.add_coach(Coach.from_document(doc))
        for doc in documents.get("students", []):
            self.add_student(Student.from_document(doc))
        for doc in documents.get("resources", []):
            self.save_resource(Resource.from_document(doc))

        logger.info(
            "Seeded in-memory repository",
            extra={
                "coaches": len(self._coaches),
                "students": len(self._students),
                "resources": len(self._resources),
            }
        )

    def clear(self) -> None:
        self._coaches.clear()
        self._students.clear()
        self._resources.clear()
        self._interactions.clear()
        self.events.clear()

    # -----------------------------------------------------------------------
    # RecommendationStore
    # -----------------------------------------------------------------------

    def get_coach(self, coach_id: str) -> Optional[Coach]:
        return self._coaches.get(coach_id)

    def list_coaches(self) -> list[Coach]:
        return [c for c in self._coaches.values() if c.role == "coach"]

    def get_assigned_students(self, coach_id: str) -> list[Student]:
        return [
            s for s in self._students.values()
            if s.assigned_coach_id == coach_id and s.is_active
        ]

    def get_resource(self, resource_id: str) -> Optional[Resource]:
        return self._resources.get(resource_id)

    def list_resources(self, limit: int) -> list[Resource]:
        ordered = sorted(
            self._resources.values(),
            key=lambda r: r.created_at or datetime.min,
            reverse=True,
        )
        return ordered[:limit]

    def list_resources_by_type(self, resource_type: ResourceType, limit: int) -> list[Resource]:
        return [r for r in self._resources.values() if r.type == resource_type][:limit]

    def list_resources_by_tag(self, tag: str, limit: int) -> list[Resource]:
        return [r for r in self._resources.values() if tag in r.tags][:limit]

    def list_interactions(
        self,
        coach_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        since: Optional[datetime] = None,
        min_rating: Optional[int] = None,
    ) -> list[ResourceInteraction]:
        matches = []
        for interaction in self._interactions.values():
            if coach_id is not None and interaction.coach_id != coach_id:
                continue
            if resource_id is not None and interaction.resource_id != resource_id:
                continue
            if since is not None and (
                interaction.last_accessed_at is None or interaction.last_accessed_at < since
            ):
                continue
            if min_rating is not None and (
                interaction.rating is None or interaction.rating < min_rating
            ):
                continue
            matches.append(interaction)
        return matches

    def record_interaction(self, interaction: ResourceInteraction) -> ResourceInteraction:
        key = (interaction.coach_id, interaction.resource_id)
        existing = self._interactions.get(key)

        if existing is None:
            stored = ResourceInteraction(
                coach_id=interaction.coach_id,
                resource_id=interaction.resource_id,
                shared_at=interaction.shared_at,
                last_accessed_at=interaction.last_accessed_at,
                access_count=1,
                rating=interaction.rating,
            )
        else:
            stored = ResourceInteraction(
                coach_id=existing.coach_id,
                resource_id=existing.resource_id,
                shared_at=existing.shared_at,
                last_accessed_at=interaction.last_accessed_at,
                access_count=existing.access_count + 1,
                rating=interaction.rating if interaction.rating is not None else existing.rating,
            )
        self._interactions[key] = stored

        resource = self._resources.get(interaction.resource_id)
        if resource is not None:
            resource.view_count += 1
            if interaction.rating is not None:
                resource.average_rating = self._fold_rating(resource, interaction)

        return stored

    def _fold_rating(self, resource: Resource, interaction: ResourceInteraction) -> float:
        """
        Average a new rating into the resource's stored average.

        A stored average with no rated interactions behind it (imported
        or seeded) counts as a single rating.
        """
        if resource.average_rating is None:
            ratings = [
                i.rating for i in self._interactions.values()
                if i.resource_id == resource.id and i.rating is not None
            ]
            return sum(ratings) / len(ratings)

        weight = max(1, sum(
            1 for i in self._interactions.values()
            if i.resource_id == resource.id
            and i.coach_id != interaction.coach_id
            and i.rating is not None
        ))
        return (resource.average_rating * weight + interaction.rating) / (weight + 1)

    def record_event(self, event: RecommendationEvent) -> None:
        self.events.append(event)
        logger.debug(
            "Recorded recommendation event",
            extra={"coach_id": event.coach_id, "resource_count": event.resource_count}
        )
