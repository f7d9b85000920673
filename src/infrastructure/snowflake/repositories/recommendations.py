"""
Snowflake repository for recommendation data.

Implements the RecommendationStore protocol from core.recommendations.
The repository:
1. Translates between domain models and database rows
2. Encapsulates all SQL queries
3. Provides the data access the recommender needs, in domain terms

Label sets (grades, subjects, tags, ...) are stored as VARIANT arrays.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol
from uuid import uuid4

from src.core.recommendations.models import (
    Coach,
    InvalidInputError,
    Priority,
    RecommendationEvent,
    Resource,
    ResourceInteraction,
    ResourceType,
    Student,
)


logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a fake without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "COACH_TRAINING"
    schema: str = "RECOMMENDATIONS"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


_RESOURCE_COLUMNS = """
    resource_id, title, description, type, grade, subject, student_profile,
    tags, priority, is_required, created_at, view_count, average_rating
"""

_STUDENT_COLUMNS = """
    student_id, name, grade, interests, academic_profile, weak_spots,
    quick_wins, priority_areas, assigned_coach_id, status
"""

_INTERACTION_COLUMNS = """
    coach_id, resource_id, shared_at, last_accessed_at, access_count, rating
"""


class SnowflakeRecommendationRepository:
    """
    Repository for coaches, students, resources and their interactions.

    Each method corresponds to a read or write the recommender needs.
    Write failures are logged and re-raised; the caller decides what a
    failure means.
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    # -----------------------------------------------------------------------
    # Coaches and students
    # -----------------------------------------------------------------------

    def get_coach(self, coach_id: str) -> Optional[Coach]:
        row = self._fetchone("""
            SELECT coach_id, name, current_module, role, status
            FROM coaches
            WHERE coach_id = %s
        """, (coach_id,))
        return self._build_coach(row) if row else None

    def list_coaches(self) -> list[Coach]:
        rows = self._fetchall("""
            SELECT coach_id, name, current_module, role, status
            FROM coaches
            WHERE role = 'coach'
            ORDER BY coach_id
        """)
        return [self._build_coach(row) for row in rows]

    def get_assigned_students(self, coach_id: str) -> list[Student]:
        rows = self._fetchall(f"""
            SELECT {_STUDENT_COLUMNS}
            FROM students
            WHERE assigned_coach_id = %s
              AND status = 'active'
            ORDER BY student_id
        """, (coach_id,))
        return [self._build_student(row) for row in rows]

    # -----------------------------------------------------------------------
    # Resources
    # -----------------------------------------------------------------------

    def get_resource(self, resource_id: str) -> Optional[Resource]:
        row = self._fetchone(f"""
            SELECT {_RESOURCE_COLUMNS}
            FROM resources
            WHERE resource_id = %s
        """, (resource_id,))
        return self._build_resource(row) if row else None

    def list_resources(self, limit: int) -> list[Resource]:
        rows = self._fetchall(f"""
            SELECT {_RESOURCE_COLUMNS}
            FROM resources
            ORDER BY created_at DESC
            LIMIT %s
        """, (limit,))
        return self._build_resources(rows)

    def list_resources_by_type(self, resource_type: ResourceType, limit: int) -> list[Resource]:
        rows = self._fetchall(f"""
            SELECT {_RESOURCE_COLUMNS}
            FROM resources
            WHERE type = %s
            LIMIT %s
        """, (resource_type.value, limit))
        return self._build_resources(rows)

    def list_resources_by_tag(self, tag: str, limit: int) -> list[Resource]:
        rows = self._fetchall(f"""
            SELECT {_RESOURCE_COLUMNS}
            FROM resources
            WHERE ARRAY_CONTAINS(%s::VARIANT, tags)
            LIMIT %s
        """, (tag, limit))
        return self._build_resources(rows)

    def save_resource(self, resource: Resource) -> None:
        """Insert or update a resource. Used by the import script."""
        grade = json.dumps(sorted(resource.grade))
        subject = json.dumps(sorted(resource.subject))
        profile = json.dumps(sorted(resource.student_profile))
        tags = json.dumps(sorted(resource.tags))

        self._execute("""
            MERGE INTO resources AS target
            USING (SELECT %s AS resource_id) AS source
            ON target.resource_id = source.resource_id
            WHEN MATCHED THEN UPDATE SET
                title = %s,
                description = %s,
                type = %s,
                grade = PARSE_JSON(%s),
                subject = PARSE_JSON(%s),
                student_profile = PARSE_JSON(%s),
                tags = PARSE_JSON(%s),
                priority = %s,
                is_required = %s
            WHEN NOT MATCHED THEN INSERT (
                resource_id, title, description, type, grade, subject,
                student_profile, tags, priority, is_required, created_at,
                view_count, average_rating
            ) VALUES (%s, %s, %s, %s, PARSE_JSON(%s), PARSE_JSON(%s),
                      PARSE_JSON(%s), PARSE_JSON(%s), %s, %s, %s, %s, %s)
        """, (
            resource.id,
            resource.title, resource.description, resource.type.value,
            grade, subject, profile, tags,
            resource.priority.value, resource.is_required,
            resource.id, resource.title, resource.description, resource.type.value,
            grade, subject, profile, tags,
            resource.priority.value, resource.is_required,
            resource.created_at or datetime.utcnow(),
            resource.view_count, resource.average_rating,
        ), context={"resource_id": resource.id})

    # -----------------------------------------------------------------------
    # Interactions and analytics
    # -----------------------------------------------------------------------

    def list_interactions(
        self,
        coach_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        since: Optional[datetime] = None,
        min_rating: Optional[int] = None,
    ) -> list[ResourceInteraction]:
        clauses = []
        params: list[Any] = []
        if coach_id is not None:
            clauses.append("coach_id = %s")
            params.append(coach_id)
        if resource_id is not None:
            clauses.append("resource_id = %s")
            params.append(resource_id)
        if since is not None:
            clauses.append("last_accessed_at >= %s")
            params.append(since)
        if min_rating is not None:
            clauses.append("rating >= %s")
            params.append(min_rating)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._fetchall(f"""
            SELECT {_INTERACTION_COLUMNS}
            FROM coach_resources
            {where}
            ORDER BY last_accessed_at DESC
        """, tuple(params))

        return [
            ResourceInteraction(
                coach_id=row[0],
                resource_id=row[1],
                shared_at=row[2],
                last_accessed_at=row[3],
                access_count=row[4] or 0,
                rating=row[5],
            )
            for row in rows
        ]

    def record_interaction(self, interaction: ResourceInteraction) -> ResourceInteraction:
        """
        Upsert the coach/resource interaction and bump the resource's views.

        Repeat accesses increment the access count; a missing rating
        leaves any earlier rating in place, on the interaction and on the
        resource average.
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                MERGE INTO coach_resources AS target
                USING (SELECT %s AS coach_id, %s AS resource_id) AS source
                ON target.coach_id = source.coach_id
                   AND target.resource_id = source.resource_id
                WHEN MATCHED THEN UPDATE SET
                    last_accessed_at = %s,
                    access_count = target.access_count + 1,
                    rating = COALESCE(%s, target.rating)
                WHEN NOT MATCHED THEN INSERT (
                    coach_id, resource_id, shared_at, last_accessed_at,
                    access_count, rating
                ) VALUES (%s, %s, %s, %s, 1, %s)
            """, (
                interaction.coach_id, interaction.resource_id,
                interaction.last_accessed_at, interaction.rating,
                interaction.coach_id, interaction.resource_id,
                interaction.shared_at, interaction.last_accessed_at,
                interaction.rating,
            ))

            cursor.execute("""
                UPDATE resources
                SET view_count = view_count + 1
                WHERE resource_id = %s
            """, (interaction.resource_id,))

            if interaction.rating is not None:
                # A stored average with no rated rows behind it counts as one rating
                cursor.execute("""
                    UPDATE resources
                    SET average_rating = CASE
                        WHEN average_rating IS NULL THEN (
                            SELECT AVG(rating) FROM coach_resources
                            WHERE resource_id = %s AND rating IS NOT NULL
                        )
                        ELSE (average_rating * weight.n + %s) / (weight.n + 1)
                    END
                    FROM (
                        SELECT GREATEST(COUNT(*), 1) AS n FROM coach_resources
                        WHERE resource_id = %s AND coach_id <> %s AND rating IS NOT NULL
                    ) AS weight
                    WHERE resource_id = %s
                """, (
                    interaction.resource_id, interaction.rating,
                    interaction.resource_id, interaction.coach_id,
                    interaction.resource_id,
                ))

            cursor.execute(f"""
                SELECT {_INTERACTION_COLUMNS}
                FROM coach_resources
                WHERE coach_id = %s AND resource_id = %s
            """, (interaction.coach_id, interaction.resource_id))
            row = cursor.fetchone()

            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to record interaction",
                extra={
                    "coach_id": interaction.coach_id,
                    "resource_id": interaction.resource_id,
                    "error": str(e),
                }
            )
            raise
        finally:
            cursor.close()

        if not row:
            return interaction
        return ResourceInteraction(
            coach_id=row[0],
            resource_id=row[1],
            shared_at=row[2],
            last_accessed_at=row[3],
            access_count=row[4] or 0,
            rating=row[5],
        )

    def record_event(self, event: RecommendationEvent) -> None:
        event_data = json.dumps({
            "resourceCount": event.resource_count,
            "resourceIds": event.resource_ids,
            "topRelevanceScore": event.top_score,
        })
        self._execute("""
            INSERT INTO analytics_events (event_id, event_type, user_id, user_role,
                                          event_data, created_at)
            SELECT %s, %s, %s, 'coach', PARSE_JSON(%s), %s
        """, (
            str(uuid4()), event.event_type, event.coach_id,
            event_data, event.created_at,
        ), context={"coach_id": event.coach_id})

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _fetchone(self, sql: str, params: tuple = ()):
        cursor = self._conn.cursor()
        try:
            cursor.execute(sql, params)
            return cursor.fetchone()
        finally:
            cursor.close()

    def _fetchall(self, sql: str, params: tuple = ()) -> list:
        cursor = self._conn.cursor()
        try:
            cursor.execute(sql, params)
            return cursor.fetchall()
        finally:
            cursor.close()

    def _execute(self, sql: str, params: tuple, context: dict[str, Any]) -> None:
        cursor = self._conn.cursor()
        try:
            cursor.execute(sql, params)
            self._conn.commit()
        except Exception as e:
            logger.error(
                "Snowflake write failed",
                extra={**context, "error": str(e)}
            )
            raise
        finally:
            cursor.close()

    def _build_coach(self, row) -> Coach:
        return Coach(
            id=row[0],
            name=row[1] or "",
            current_module=row[2] or 1,
            role=row[3] or "coach",
            status=row[4] or "training",
        )

    def _build_student(self, row) -> Student:
        return Student(
            id=row[0],
            name=row[1] or "",
            grade=row[2] or "",
            interests=self._parse_label_list(row[3]),
            academic_profile=row[4] or "",
            weak_spots=self._parse_label_list(row[5]),
            quick_wins=self._parse_label_list(row[6]),
            priority_areas=self._parse_label_list(row[7]),
            assigned_coach_id=row[8],
            status=row[9] or "active",
        )

    def _build_resources(self, rows: list) -> list[Resource]:
        """Build resources, skipping rows that fail validation."""
        resources = []
        for row in rows:
            try:
                resources.append(self._build_resource(row))
            except (InvalidInputError, ValueError) as e:
                logger.warning(
                    "Skipping malformed resource row",
                    extra={"resource_id": row[0], "error": str(e)}
                )
        return resources

    def _build_resource(self, row) -> Resource:
        return Resource(
            id=row[0],
            title=row[1] or "",
            description=row[2] or "",
            type=ResourceType(row[3]) if row[3] else ResourceType.DOCUMENT,
            grade=self._parse_label_list(row[4]),
            subject=self._parse_label_list(row[5]),
            student_profile=self._parse_label_list(row[6]),
            tags=self._parse_label_list(row[7]),
            priority=Priority(row[8]) if row[8] else Priority.MEDIUM,
            is_required=bool(row[9]),
            created_at=row[10],
            view_count=row[11] or 0,
            average_rating=float(row[12]) if row[12] is not None else None,
        )

    def _parse_variant_json(self, variant_data):
        """
        Parse Snowflake VARIANT data that might be a string or already parsed.

        snowflake-connector-python returns VARIANT columns as JSON
        strings; other drivers may hand back parsed lists.
        """
        if not variant_data:
            return None

        if isinstance(variant_data, str):
            try:
                return json.loads(variant_data)
            except json.JSONDecodeError as e:
                logger.error(
                    "Failed to parse VARIANT JSON string",
                    extra={"variant_data": variant_data[:100], "error": str(e)}
                )
                return None

        return variant_data

    def _parse_label_list(self, variant_data) -> list[str]:
        data = self._parse_variant_json(variant_data)
        if not data:
            return []
        if not isinstance(data, list):
            logger.warning(
                "Label data is not a list after parsing",
                extra={"type": str(type(data))}
            )
            return []
        return [str(item) for item in data]
