"""
Relevance scoring for training resources.

Everything in this module is a pure function of its arguments: the same
resource, coach, students, weights and evaluation time always produce the
same score. There is no cache and no store access, so scoring can run
concurrently for independent requests without coordination.

Scores are accumulated in the 0-1 range (the weights sum to 1), boosted,
then scaled to an integer 0-100 for display.

The numeric constants below were hand-tuned by the training team. They
are named so tests and callers can reason about them, not because they
are derived from anything.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from .models import (
    ALL_LABEL,
    Coach,
    InvalidInputError,
    MatchingCriteria,
    Priority,
    Resource,
    ScoredResource,
    Student,
)


# ---------------------------------------------------------------------------
# Tunable constants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoringWeights:
    """Weights for each relevance factor. The defaults sum to 1.0."""
    grade_match: float = 0.25
    subject_match: float = 0.30
    profile_match: float = 0.20
    tag_match: float = 0.15
    popularity_score: float = 0.05
    recency_score: float = 0.05

    def __post_init__(self) -> None:
        for name, value in vars(self).items():
            if value < 0:
                raise InvalidInputError(f"Weight {name} cannot be negative")


DEFAULT_WEIGHTS = ScoringWeights()

# Popularity
POPULARITY_VIEW_NORMALIZER = 100
POPULARITY_VIEW_SHARE = 0.3
POPULARITY_RATING_SHARE = 0.7
MAX_RATING = 5
DEFAULT_NEUTRAL_RATING = 0.5  # normalized rating used when nobody has rated

# Recency (days)
RECENCY_FULL_SCORE_DAYS = 30
RECENCY_DECAY_END_DAYS = 180
RECENCY_FLOOR = 0.2

# Boosts
REQUIRED_BOOST = 1.2
HIGH_PRIORITY_BOOST = 1.15
NEW_COACH_BOOST = 1.3
NEW_COACH_MAX_MODULE = 2
FIRST_SESSION_TAG = "first-session"

# Tag relevance contributions per matched student need
WEAK_SPOT_WEIGHT = 0.5
QUICK_WIN_WEIGHT = 0.3
PRIORITY_AREA_WEIGHT = 0.4

# Resource-to-resource similarity
SIMILARITY_TYPE_MATCH = 0.2
SIMILARITY_GRADE_WEIGHT = 0.2
SIMILARITY_SUBJECT_WEIGHT = 0.3
SIMILARITY_TAG_WEIGHT = 0.2
SIMILARITY_PROFILE_WEIGHT = 0.1

# Coach-to-coach similarity
COACH_GRADE_WEIGHT = 0.3
COACH_INTEREST_WEIGHT = 0.4
COACH_PROFILE_WEIGHT = 0.3
SIMILAR_COACH_THRESHOLD = 0.3

MAX_SCORE = 100


# ---------------------------------------------------------------------------
# Comparators
# ---------------------------------------------------------------------------

def label_overlap(first: Iterable[str], second: Iterable[str]) -> float:
    """
    Case-insensitive overlap between two label collections.

    Intersection size over the size of the larger set, so a resource
    tagged with one of a student's two interests scores 0.5.
    """
    first_set = {label.lower() for label in first}
    second_set = {label.lower() for label in second}
    if not first_set or not second_set:
        return 0.0
    return len(first_set & second_set) / max(len(first_set), len(second_set))


def _label_hits_tags(label: str, tags: frozenset[str]) -> bool:
    label = label.lower()
    return label in tags or any(label in tag for tag in tags)


def tag_relevance(tags: Iterable[str], student: Student) -> float:
    """
    How well a resource's tags address a student's assessed needs.

    A need matches when it equals a tag or is a substring of one
    ("essay" matches "essay-writing"). Contributions add up per matched
    need and the total is clamped to 1.0 afterwards.
    """
    tag_set = frozenset(tag.lower() for tag in tags)
    if not tag_set:
        return 0.0

    relevance = 0.0
    for weak_spot in student.weak_spots:
        if _label_hits_tags(weak_spot, tag_set):
            relevance += WEAK_SPOT_WEIGHT
    for quick_win in student.quick_wins:
        if _label_hits_tags(quick_win, tag_set):
            relevance += QUICK_WIN_WEIGHT
    for priority_area in student.priority_areas:
        if _label_hits_tags(priority_area, tag_set):
            relevance += PRIORITY_AREA_WEIGHT

    return min(relevance, 1.0)


def grade_matches(resource: Resource, student: Student) -> bool:
    return ALL_LABEL in resource.grade or student.grade in resource.grade


def profile_matches(resource: Resource, student: Student) -> bool:
    return ALL_LABEL in resource.student_profile or student.academic_profile in resource.student_profile


def popularity_score(resource: Resource) -> float:
    """Blend of view volume (30%) and average rating (70%), in [0, 1]."""
    view_score = min(resource.view_count / POPULARITY_VIEW_NORMALIZER, 1.0)
    if resource.average_rating is not None:
        rating_score = resource.average_rating / MAX_RATING
    else:
        rating_score = DEFAULT_NEUTRAL_RATING
    return view_score * POPULARITY_VIEW_SHARE + rating_score * POPULARITY_RATING_SHARE


def _as_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def resource_age_days(resource: Resource, now: datetime) -> float:
    """Age in fractional days. A resource with no creation time is age 0."""
    if resource.created_at is None:
        return 0.0
    delta = _as_naive_utc(now) - _as_naive_utc(resource.created_at)
    return delta.total_seconds() / 86400


def recency_score(resource: Resource, now: datetime) -> float:
    """
    Full score for the first 30 days, linear decay to 0.2 by day 180,
    then flat at 0.2.

    The decay interpolates between 1.0 and the floor so the curve is
    continuous at both ends.
    """
    age = resource_age_days(resource, now)
    if age <= RECENCY_FULL_SCORE_DAYS:
        return 1.0
    if age < RECENCY_DECAY_END_DAYS:
        progress = (age - RECENCY_FULL_SCORE_DAYS) / (RECENCY_DECAY_END_DAYS - RECENCY_FULL_SCORE_DAYS)
        return 1.0 - progress * (1.0 - RECENCY_FLOOR)
    return RECENCY_FLOOR


def student_match_score(
    resource: Resource,
    student: Student,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    """The per-student part of the relevance score (grade, subject, profile, tags)."""
    score = 0.0
    if grade_matches(resource, student):
        score += weights.grade_match
    score += label_overlap(resource.subject, student.interests) * weights.subject_match
    if profile_matches(resource, student):
        score += weights.profile_match
    score += tag_relevance(resource.tags, student) * weights.tag_match
    return score


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def relevance_score(
    resource: Resource,
    coach: Coach,
    students: Sequence[Student],
    now: Optional[datetime] = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> int:
    """
    Score a resource for a coach's students on a 0-100 integer scale.

    The per-student scores are averaged, popularity and recency are
    added, then boosts for required, high-priority, and first-session
    material (for coaches still early in training) are applied in turn.

    Raises InvalidInputError if students is empty. Coaches without
    students get the default recommendation list instead of a score.
    """
    if not students:
        raise InvalidInputError("Cannot score a resource without any students")
    if now is None:
        now = datetime.utcnow()

    total = sum(student_match_score(resource, s, weights) for s in students) / len(students)
    total += popularity_score(resource) * weights.popularity_score
    total += recency_score(resource, now) * weights.recency_score

    if resource.is_required:
        total *= REQUIRED_BOOST
    if resource.priority == Priority.HIGH:
        total *= HIGH_PRIORITY_BOOST
    if coach.current_module <= NEW_COACH_MAX_MODULE and FIRST_SESSION_TAG in resource.tags:
        total *= NEW_COACH_BOOST

    return max(0, min(_round_half_up(total * MAX_SCORE), MAX_SCORE))


def resource_similarity(first: Resource, second: Resource) -> float:
    """
    Similarity between two resources, in [0, 1].

    Callers compare resources of the same type only, so the type
    component is always awarded. Used for relative ordering, never
    shown as a percentage.
    """
    similarity = SIMILARITY_TYPE_MATCH
    similarity += label_overlap(first.grade, second.grade) * SIMILARITY_GRADE_WEIGHT
    similarity += label_overlap(first.subject, second.subject) * SIMILARITY_SUBJECT_WEIGHT
    similarity += label_overlap(first.tags, second.tags) * SIMILARITY_TAG_WEIGHT
    similarity += label_overlap(first.student_profile, second.student_profile) * SIMILARITY_PROFILE_WEIGHT
    return similarity


def student_similarity(first: Student, second: Student) -> float:
    similarity = 0.0
    if first.grade and first.grade == second.grade:
        similarity += COACH_GRADE_WEIGHT
    similarity += label_overlap(first.interests, second.interests) * COACH_INTEREST_WEIGHT
    if first.academic_profile and first.academic_profile == second.academic_profile:
        similarity += COACH_PROFILE_WEIGHT
    return similarity


def coach_similarity(roster: Sequence[Student], other_roster: Sequence[Student]) -> float:
    """Mean pairwise student similarity across two coaches' rosters."""
    comparisons = len(roster) * len(other_roster)
    if comparisons == 0:
        return 0.0
    total = sum(student_similarity(s1, s2) for s1 in roster for s2 in other_roster)
    return total / comparisons


# ---------------------------------------------------------------------------
# Explanations
# ---------------------------------------------------------------------------

def matching_criteria(resource: Resource, students: Sequence[Student]) -> MatchingCriteria:
    """
    Which targeting dimensions the resource hit for any of the students.

    student_match means a single student matched on grade, subject and
    profile together.
    """
    grade_hits = [grade_matches(resource, s) for s in students]
    subject_hits = [label_overlap(resource.subject, s.interests) > 0 for s in students]
    profile_hits = [profile_matches(resource, s) for s in students]
    return MatchingCriteria(
        student_match=any(
            g and sub and p for g, sub, p in zip(grade_hits, subject_hits, profile_hits)
        ),
        grade_match=any(grade_hits),
        subject_match=any(subject_hits),
        profile_match=any(profile_hits),
    )


def match_reasons(
    resource: Resource,
    students: Sequence[Student],
    coach: Optional[Coach] = None,
) -> list[str]:
    """Human-readable reasons a resource was recommended."""
    reasons: list[str] = []

    if resource.applies_to_all_grades:
        reasons.append("Suitable for all grades")
    else:
        grades = sorted({s.grade for s in students if s.grade in resource.grade})
        if grades:
            reasons.append(f"Matches grade {', '.join(grades)}")

    interests = sorted({
        interest for s in students for interest in s.interests
        if interest in resource.subject
    })
    if interests:
        reasons.append(f"Covers interests: {', '.join(interests)}")

    if not resource.applies_to_all_profiles:
        profiles = sorted({
            s.academic_profile for s in students
            if s.academic_profile in resource.student_profile
        })
        if profiles:
            reasons.append(f"Fits {', '.join(profiles)} students")

    needs = (
        ("Addresses weak spot", "weak_spots"),
        ("Quick win", "quick_wins"),
        ("Priority area", "priority_areas"),
    )
    for label, attr in needs:
        hits = sorted({
            need for s in students for need in getattr(s, attr)
            if _label_hits_tags(need, resource.tags)
        })
        if hits:
            reasons.append(f"{label}: {', '.join(hits)}")

    if resource.is_required:
        reasons.append("Required training resource")
    if resource.priority == Priority.HIGH:
        reasons.append("High priority")
    if (
        coach is not None
        and coach.current_module <= NEW_COACH_MAX_MODULE
        and FIRST_SESSION_TAG in resource.tags
    ):
        reasons.append("Recommended for your first sessions")

    return reasons


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------

def score_resource(
    resource: Resource,
    coach: Coach,
    students: Sequence[Student],
    now: Optional[datetime] = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> ScoredResource:
    """Score one resource and attach its matching criteria and reasons."""
    return ScoredResource(
        resource=resource,
        relevance_score=relevance_score(resource, coach, students, now, weights),
        matching_criteria=matching_criteria(resource, students),
        match_reasons=match_reasons(resource, students, coach),
    )


def rank_resources(
    resources: Iterable[Resource],
    coach: Coach,
    students: Sequence[Student],
    now: Optional[datetime] = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> list[ScoredResource]:
    """Score every resource and sort by relevance, highest first. Ties keep input order."""
    if not students:
        raise InvalidInputError("Cannot rank resources without any students")
    if now is None:
        now = datetime.utcnow()

    scored = [score_resource(r, coach, students, now, weights) for r in resources]
    scored.sort(key=lambda s: s.relevance_score, reverse=True)
    return scored
