"""
Unit tests for relevance scoring.

The scorer is a pure function, so every test builds its own resource,
coach and students and passes an explicit evaluation time. Nothing here
reads the clock.
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.core.recommendations.models import (
    Coach,
    InvalidInputError,
    Priority,
    Resource,
    ResourceType,
    Student,
)
from src.core.recommendations.scoring import (
    RECENCY_FLOOR,
    ScoringWeights,
    coach_similarity,
    label_overlap,
    match_reasons,
    matching_criteria,
    popularity_score,
    rank_resources,
    recency_score,
    relevance_score,
    resource_similarity,
    tag_relevance,
)


NOW = datetime(2026, 10, 19, 12, 0, 0)


def make_resource(**overrides) -> Resource:
    """The pre-med video used throughout: scores 69 for the biology student."""
    fields = dict(
        id="res-premed",
        title="Pre-med Pathways",
        type=ResourceType.VIDEO,
        grade=["all"],
        subject=["biology"],
        student_profile=["all"],
        tags=["premed"],
        view_count=50,
        average_rating=4,
        created_at=NOW - timedelta(days=10),
        is_required=False,
        priority=Priority.MEDIUM,
    )
    fields.update(overrides)
    return Resource(**fields)


def make_student(**overrides) -> Student:
    fields = dict(
        id="student-1",
        grade="11th",
        interests=["biology", "volunteering"],
        academic_profile="high-achieving",
    )
    fields.update(overrides)
    return Student(**fields)


@pytest.fixture
def coach():
    return Coach(id="coach-1", current_module=3)


# ---------------------------------------------------------------------------
# Label Overlap Tests
# ---------------------------------------------------------------------------

class TestLabelOverlap:
    """Tests for the shared overlap comparator."""

    def test_empty_set_has_no_overlap(self):
        assert label_overlap([], ["biology"]) == 0.0
        assert label_overlap(["biology"], []) == 0.0

    def test_identical_sets_overlap_fully(self):
        assert label_overlap(["biology", "chemistry"], ["chemistry", "biology"]) == 1.0

    def test_divides_by_larger_set(self):
        """One of two interests covered is half an overlap."""
        assert label_overlap(["biology"], ["biology", "volunteering"]) == 0.5

    def test_comparison_ignores_case(self):
        assert label_overlap(["Biology"], ["biology"]) == 1.0

    def test_overlap_is_symmetric(self):
        first, second = ["a", "b", "c"], ["b", "c", "d", "e"]
        assert label_overlap(first, second) == label_overlap(second, first)


# ---------------------------------------------------------------------------
# Component Score Tests
# ---------------------------------------------------------------------------

class TestTagRelevance:
    """Tests for matching student needs against resource tags."""

    def test_no_tags_means_no_relevance(self):
        student = make_student(weak_spots=["essay"])
        assert tag_relevance([], student) == 0.0

    def test_need_matches_as_substring_of_tag(self):
        student = make_student(weak_spots=["essay"])
        assert tag_relevance(["essay-writing"], student) == pytest.approx(0.5)

    def test_each_need_category_has_its_own_weight(self):
        student = make_student(quick_wins=["resume"], priority_areas=["deadlines"])
        assert tag_relevance(["resume", "deadlines"], student) == pytest.approx(0.7)

    def test_compounding_matches_are_clamped_after_summing(self):
        """0.5 + 0.5 + 0.3 + 0.4 adds past 1.0 before the clamp."""
        student = make_student(
            weak_spots=["essay", "grammar"],
            quick_wins=["essay"],
            priority_areas=["essay"],
        )
        assert tag_relevance(["essay-writing", "grammar"], student) == 1.0


class TestPopularityScore:
    """Tests for the view/rating blend."""

    def test_blends_views_and_rating(self):
        resource = make_resource(view_count=50, average_rating=4)
        assert popularity_score(resource) == pytest.approx(0.71)

    def test_view_component_caps_at_one_hundred_views(self):
        assert popularity_score(make_resource(view_count=500)) == popularity_score(
            make_resource(view_count=100)
        )

    def test_unrated_resource_uses_neutral_rating(self):
        resource = make_resource(view_count=0, average_rating=None)
        assert popularity_score(resource) == pytest.approx(0.35)


class TestRecencyScore:
    """Tests for the age decay curve."""

    @pytest.mark.parametrize("age_days", [0, 30])
    def test_full_score_through_first_month(self, age_days):
        resource = make_resource(created_at=NOW - timedelta(days=age_days))
        assert recency_score(resource, NOW) == 1.0

    @pytest.mark.parametrize("age_days", [180, 400])
    def test_floor_after_six_months(self, age_days):
        resource = make_resource(created_at=NOW - timedelta(days=age_days))
        assert recency_score(resource, NOW) == pytest.approx(RECENCY_FLOOR)

    def test_halfway_through_decay(self):
        resource = make_resource(created_at=NOW - timedelta(days=105))
        assert recency_score(resource, NOW) == pytest.approx(0.6)

    def test_strictly_decreasing_between_thresholds(self):
        scores = [
            recency_score(make_resource(created_at=NOW - timedelta(days=d)), NOW)
            for d in (31, 60, 90, 120, 150, 179)
        ]
        assert all(a > b for a, b in zip(scores, scores[1:]))
        assert all(RECENCY_FLOOR < s < 1.0 for s in scores)

    def test_missing_created_at_counts_as_new(self):
        assert recency_score(make_resource(created_at=None), NOW) == 1.0

    def test_aware_timestamps_are_compared_in_utc(self):
        created = (NOW - timedelta(days=200)).replace(tzinfo=timezone.utc)
        resource = make_resource(created_at=created)
        assert recency_score(resource, NOW) == pytest.approx(RECENCY_FLOOR)


# ---------------------------------------------------------------------------
# Relevance Score Tests
# ---------------------------------------------------------------------------

class TestRelevanceScore:
    """Tests for the combined 0-100 score."""

    def test_reference_scenario_scores_69(self, coach):
        """0.25 + 0.15 + 0.20 + 0 + 0.0355 + 0.05 = 0.6855."""
        score = relevance_score(make_resource(), coach, [make_student()], now=NOW)
        assert score == 69

    def test_score_is_deterministic(self, coach):
        resource, students = make_resource(), [make_student()]
        assert relevance_score(resource, coach, students, now=NOW) == relevance_score(
            resource, coach, students, now=NOW
        )

    def test_empty_student_list_is_rejected(self, coach):
        with pytest.raises(InvalidInputError):
            relevance_score(make_resource(), coach, [], now=NOW)

    def test_students_are_averaged(self, coach):
        """A second, unmatched student pulls the score down."""
        unmatched = make_student(
            id="student-2", grade="9th", interests=["art"], academic_profile="creative"
        )
        resource = make_resource(grade=["11th"], student_profile=["high-achieving"])

        alone = relevance_score(resource, coach, [make_student()], now=NOW)
        together = relevance_score(resource, coach, [make_student(), unmatched], now=NOW)
        assert together < alone

    def test_required_never_lowers_score(self, coach):
        students = [make_student()]
        plain = relevance_score(make_resource(), coach, students, now=NOW)
        required = relevance_score(make_resource(is_required=True), coach, students, now=NOW)
        assert required >= plain
        assert required == 82

    def test_high_priority_boosts(self, coach):
        students = [make_student()]
        plain = relevance_score(make_resource(), coach, students, now=NOW)
        high = relevance_score(make_resource(priority=Priority.HIGH), coach, students, now=NOW)
        assert high > plain

    def test_first_session_boost_only_for_new_coaches(self):
        resource = make_resource(tags=["premed", "first-session"])
        students = [make_student()]

        new_coach = relevance_score(resource, Coach(id="c1", current_module=2), students, now=NOW)
        experienced = relevance_score(resource, Coach(id="c2", current_module=3), students, now=NOW)
        assert new_coach > experienced

    def test_stacked_boosts_clamp_to_100(self):
        resource = make_resource(
            is_required=True,
            priority=Priority.HIGH,
            tags=["premed", "first-session"],
        )
        coach = Coach(id="c1", current_module=1)
        assert relevance_score(resource, coach, [make_student()], now=NOW) == 100

    def test_score_stays_in_range_with_nothing_matching(self, coach):
        resource = make_resource(
            grade=["9th"],
            subject=["art"],
            student_profile=["creative"],
            tags=[],
            view_count=0,
            average_rating=0,
            created_at=NOW - timedelta(days=365),
        )
        score = relevance_score(resource, coach, [make_student()], now=NOW)
        assert score == 1

    def test_custom_weights(self, coach):
        """Only grade counts, and the student matches all grades."""
        weights = ScoringWeights(
            grade_match=1.0,
            subject_match=0,
            profile_match=0,
            tag_match=0,
            popularity_score=0,
            recency_score=0,
        )
        score = relevance_score(make_resource(), coach, [make_student()], now=NOW, weights=weights)
        assert score == 100

    def test_negative_weight_is_rejected(self):
        with pytest.raises(InvalidInputError, match="grade_match"):
            ScoringWeights(grade_match=-0.1)


# ---------------------------------------------------------------------------
# Similarity Tests
# ---------------------------------------------------------------------------

class TestResourceSimilarity:
    """Tests for resource-to-resource similarity."""

    def test_identical_resources_are_fully_similar(self):
        resource = make_resource()
        assert resource_similarity(resource, resource) == pytest.approx(1.0)

    def test_unrelated_resources_keep_type_component(self):
        first = make_resource(grade=["9th"], subject=["art"], student_profile=["creative"], tags=["a"])
        second = make_resource(grade=["12th"], subject=["math"], student_profile=["stem"], tags=["b"])
        assert resource_similarity(first, second) == pytest.approx(0.2)


class TestCoachSimilarity:
    """Tests for roster-to-roster similarity."""

    def test_identical_rosters_are_fully_similar(self):
        roster = [make_student(interests=["biology"])]
        assert coach_similarity(roster, roster) == pytest.approx(1.0)

    def test_rosters_with_nothing_in_common_score_zero(self):
        roster = [make_student()]
        other = [make_student(id="s2", grade="9th", interests=["art"], academic_profile="creative")]
        assert coach_similarity(roster, other) == 0.0

    def test_empty_roster_scores_zero(self):
        assert coach_similarity([make_student()], []) == 0.0

    def test_blank_labels_do_not_count_as_shared(self):
        roster = [Student(id="s1")]
        other = [Student(id="s2")]
        assert coach_similarity(roster, other) == 0.0

    def test_mean_of_pairwise_similarities(self):
        """One identical pair and one unrelated pair average to half."""
        roster = [make_student(interests=["biology"])]
        other = [
            make_student(id="s2", interests=["biology"]),
            make_student(id="s3", grade="9th", interests=["art"], academic_profile="creative"),
        ]
        assert coach_similarity(roster, other) == pytest.approx(0.5)


# ---------------------------------------------------------------------------
# Explanation Tests
# ---------------------------------------------------------------------------

class TestExplanations:
    """Tests for matching criteria and match reasons."""

    def test_criteria_for_reference_scenario(self):
        criteria = matching_criteria(make_resource(), [make_student()])
        assert criteria.student_match
        assert criteria.grade_match
        assert criteria.subject_match
        assert criteria.profile_match

    def test_student_match_requires_one_student_hitting_everything(self):
        """Grade from one student and subject from another isn't a student match."""
        resource = make_resource(grade=["12th"], student_profile=["all"])
        students = [
            make_student(id="s1", grade="12th", interests=["art"]),
            make_student(id="s2", grade="11th", interests=["biology"]),
        ]
        criteria = matching_criteria(resource, students)
        assert criteria.grade_match
        assert criteria.subject_match
        assert not criteria.student_match

    def test_reasons_for_reference_scenario(self):
        reasons = match_reasons(make_resource(), [make_student()])
        assert reasons == ["Suitable for all grades", "Covers interests: biology"]

    def test_reasons_name_specific_targets_and_needs(self, coach):
        resource = make_resource(
            grade=["11th"],
            student_profile=["high-achieving"],
            tags=["essay-writing", "first-session"],
            is_required=True,
            priority=Priority.HIGH,
        )
        student = make_student(weak_spots=["essay"])
        new_coach = Coach(id="c1", current_module=1)

        reasons = match_reasons(resource, [student], new_coach)

        assert "Matches grade 11th" in reasons
        assert "Fits high-achieving students" in reasons
        assert "Addresses weak spot: essay" in reasons
        assert "Required training resource" in reasons
        assert "High priority" in reasons
        assert "Recommended for your first sessions" in reasons


# ---------------------------------------------------------------------------
# Ranking Tests
# ---------------------------------------------------------------------------

class TestRankResources:
    """Tests for ranking a batch of resources."""

    def test_sorted_by_score_descending(self, coach):
        weak = make_resource(id="weak", grade=["9th"], subject=["art"], student_profile=["creative"])
        strong = make_resource(id="strong")

        ranked = rank_resources([weak, strong], coach, [make_student()], now=NOW)

        assert [r.id for r in ranked] == ["strong", "weak"]
        assert ranked[0].relevance_score == 69
        assert ranked[0].match_reasons

    def test_ties_keep_input_order(self, coach):
        resources = [make_resource(id=f"r{i}") for i in range(4)]
        ranked = rank_resources(resources, coach, [make_student()], now=NOW)
        assert [r.id for r in ranked] == ["r0", "r1", "r2", "r3"]

    def test_empty_student_list_is_rejected(self, coach):
        with pytest.raises(InvalidInputError):
            rank_resources([make_resource()], coach, [], now=NOW)
