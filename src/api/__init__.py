"""HTTP layer: FastAPI routes, dependencies and response schemas."""
