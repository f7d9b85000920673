"""
Domain models for coach resource recommendations.

These models represent the records the recommender reasons about:
training resources, the students a coach is working with, and the coach
themselves. They carry no knowledge of Snowflake, HTTP, or any other
transport.

Labels (grades, subjects, profiles, tags) arrive from the document store
with inconsistent casing and stray whitespace. They are normalized once,
when a record is constructed, so the scoring code can compare labels
directly.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional


ALL_LABEL = "all"


class InvalidInputError(ValueError):
    """Raised when a record or scoring request violates a precondition."""
    pass


class CoachNotFoundError(LookupError):
    """Raised when a requested coach doesn't exist."""
    pass


class ResourceNotFoundError(LookupError):
    """Raised when a requested resource doesn't exist."""
    pass


class ResourceType(Enum):
    """Kinds of training material in the resource library."""
    DOCUMENT = "document"
    VIDEO = "video"
    TEMPLATE = "template"
    CASE_STUDY = "case-study"
    GAME_PLAN = "game-plan"


class Priority(Enum):
    """
    How strongly the training team wants a resource surfaced.

    High priority resources get a multiplicative boost when scored,
    and lead the default list shown to coaches without students.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


def normalize_label(label: str) -> str:
    """Trim and lower-case a single label."""
    if label is None:
        return ""
    return str(label).strip().lower()


def normalize_labels(labels: Optional[Iterable[str]], field_name: str) -> frozenset[str]:
    """
    Normalize a collection of labels into a frozenset.

    A bare string is treated as a single label rather than a sequence
    of characters. Empty labels are dropped.
    """
    if labels is None:
        raise InvalidInputError(f"{field_name} label set is required")
    if isinstance(labels, str):
        labels = [labels]
    normalized = (normalize_label(label) for label in labels)
    return frozenset(label for label in normalized if label)


def _normalize_sequence(labels: Optional[Iterable[str]]) -> tuple[str, ...]:
    if not labels:
        return ()
    if isinstance(labels, str):
        labels = [labels]
    normalized = (normalize_label(label) for label in labels)
    return tuple(label for label in normalized if label)


@dataclass
class Resource:
    """
    A piece of training material a coach can be pointed at.

    Content fields are fixed once created. Only the usage metrics
    (view_count, average_rating) change, and those are updated by
    interaction events, not by scoring.
    """
    id: str
    title: str = ""
    type: ResourceType = ResourceType.DOCUMENT
    grade: frozenset[str] = field(default_factory=lambda: frozenset({ALL_LABEL}))
    subject: frozenset[str] = field(default_factory=frozenset)
    student_profile: frozenset[str] = field(default_factory=lambda: frozenset({ALL_LABEL}))
    tags: frozenset[str] = field(default_factory=frozenset)
    priority: Priority = Priority.MEDIUM
    is_required: bool = False
    created_at: Optional[datetime] = None
    view_count: int = 0
    average_rating: Optional[float] = None
    description: str = ""

    def __post_init__(self) -> None:
        if not str(self.id).strip():
            raise InvalidInputError("Resource id cannot be empty")
        self.grade = normalize_labels(self.grade, "grade")
        self.subject = normalize_labels(self.subject, "subject")
        self.student_profile = normalize_labels(self.student_profile, "student_profile")
        self.tags = normalize_labels(self.tags, "tags")
        if self.view_count < 0:
            raise InvalidInputError("view_count cannot be negative")
        if self.average_rating is not None and not 0 <= self.average_rating <= 5:
            raise InvalidInputError("average_rating must be between 0 and 5")

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Resource":
        """
        Build a Resource from a document-store record.

        Accepts the camelCase field names used by the training platform's
        documents. The three targeting label sets must be present; tags
        may be omitted.
        """
        missing = [key for key in ("grade", "subject", "studentProfile") if doc.get(key) is None]
        if missing:
            raise InvalidInputError(
                f"Resource {doc.get('id')!r} is missing label sets: {', '.join(missing)}"
            )

        try:
            resource_type = ResourceType(doc.get("type") or ResourceType.DOCUMENT.value)
            priority = Priority(doc.get("priority") or Priority.MEDIUM.value)
        except ValueError as e:
            raise InvalidInputError(f"Resource {doc.get('id')!r}: {e}") from e

        rating = doc.get("averageRating")
        return cls(
            id=str(doc.get("id", "")),
            title=doc.get("title", ""),
            type=resource_type,
            grade=doc["grade"],
            subject=doc["subject"],
            student_profile=doc["studentProfile"],
            tags=doc.get("tags") or [],
            priority=priority,
            is_required=bool(doc.get("isRequired", False)),
            created_at=_parse_datetime(doc.get("createdAt")),
            view_count=int(doc.get("viewCount") or 0),
            average_rating=float(rating) if rating is not None else None,
            description=doc.get("description", ""),
        )

    @property
    def applies_to_all_grades(self) -> bool:
        return ALL_LABEL in self.grade

    @property
    def applies_to_all_profiles(self) -> bool:
        return ALL_LABEL in self.student_profile


@dataclass
class Student:
    """
    A student assigned to a coach.

    The assessment labels (weak spots, quick wins, priority areas) come
    from the student's intake assessment and drive tag matching.
    """
    id: str
    grade: str = ""
    interests: tuple[str, ...] = ()
    academic_profile: str = ""
    weak_spots: tuple[str, ...] = ()
    quick_wins: tuple[str, ...] = ()
    priority_areas: tuple[str, ...] = ()
    name: str = ""
    assigned_coach_id: Optional[str] = None
    status: str = "active"

    def __post_init__(self) -> None:
        self.grade = normalize_label(self.grade)
        self.academic_profile = normalize_label(self.academic_profile)
        self.interests = _normalize_sequence(self.interests)
        self.weak_spots = _normalize_sequence(self.weak_spots)
        self.quick_wins = _normalize_sequence(self.quick_wins)
        self.priority_areas = _normalize_sequence(self.priority_areas)
        self.status = normalize_label(self.status)

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Student":
        return cls(
            id=str(doc.get("id", "")),
            grade=doc.get("grade") or "",
            interests=doc.get("interests") or (),
            academic_profile=doc.get("academicProfile") or "",
            weak_spots=doc.get("weakSpots") or (),
            quick_wins=doc.get("quickWins") or (),
            priority_areas=doc.get("priorityAreas") or (),
            name=doc.get("name", ""),
            assigned_coach_id=doc.get("assignedCoachId"),
            status=doc.get("status") or "active",
        )

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass
class Coach:
    """A coach working through training (modules 1-5)."""
    id: str
    name: str = ""
    current_module: int = 1
    role: str = "coach"
    status: str = "training"

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Coach":
        return cls(
            id=str(doc.get("id", "")),
            name=doc.get("name", ""),
            current_module=1 if doc.get("currentModule") is None else int(doc["currentModule"]),
            role=doc.get("role", "coach"),
            status=doc.get("status", "training"),
        )


@dataclass(frozen=True)
class MatchingCriteria:
    """Which targeting dimensions a resource hit for a coach's students."""
    student_match: bool = False
    grade_match: bool = False
    subject_match: bool = False
    profile_match: bool = False


@dataclass
class ScoredResource:
    """
    A resource with the scores derived for one request.

    Transient: these are computed per request and never persisted as
    authoritative state.
    """
    resource: Resource
    relevance_score: int = 0
    similarity_score: Optional[float] = None
    trending_score: Optional[int] = None
    collaborative_score: Optional[float] = None
    matching_criteria: MatchingCriteria = field(default_factory=MatchingCriteria)
    match_reasons: list[str] = field(default_factory=list)
    total_uses: Optional[int] = None
    usage_average_rating: Optional[float] = None

    @property
    def id(self) -> str:
        return self.resource.id


@dataclass
class ResourceInteraction:
    """
    A coach's use of a resource: shared, opened, and optionally rated.

    These feed trending and collaborative recommendations.
    """
    coach_id: str
    resource_id: str
    shared_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    access_count: int = 0
    rating: Optional[int] = None

    def __post_init__(self) -> None:
        if self.rating is not None and not 1 <= self.rating <= 5:
            raise InvalidInputError("Rating must be between 1 and 5")


@dataclass
class SimilarCoach:
    """Another coach whose roster resembles the target coach's."""
    coach: Coach
    similarity: float


@dataclass
class RecommendationEvent:
    """Analytics record emitted each time recommendations are generated."""
    coach_id: str
    resource_ids: list[str] = field(default_factory=list)
    top_score: int = 0
    event_type: str = "recommendation_generated"
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def resource_count(self) -> int:
        return len(self.resource_ids)


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Accept datetimes, ISO strings, or epoch seconds from documents."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as e:
        raise InvalidInputError(f"Unrecognized timestamp: {value!r}") from e
    # Naive UTC everywhere, matching datetime.utcnow()
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
