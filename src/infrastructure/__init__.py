"""
Infrastructure layer - external service integrations.

Each subdirectory wraps a data source:
- snowflake: Database persistence
- memory: In-memory store for mock mode

These wrappers translate between external formats and our domain models.
"""
