"""
Core business logic for coach resource recommendations.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
or any infrastructure concerns. The scorer can be tested in isolation
and the data source swapped without touching it.
"""
