"""
Snowflake persistence for coaches, students, resources and usage.
"""
