"""
Recommender API entry point.

`create_app()` builds the FastAPI application; the module-level `app` is
what ASGI servers load. Keeping construction in a factory lets tests
build a fresh app after changing environment variables.

Run locally against the in-memory store:
    SNOWFLAKE_MOCK_MODE=true MOCK_SEED_PATH=data/sample_seed.json uvicorn src.main:app --reload

Run in production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import coaches, health, resources, scoring
from .config.settings import Settings, get_settings
from .core.recommendations.models import InvalidInputError

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)

# (router, prefix, tag)
ROUTERS = (
    (health.router, "/health", "Health"),
    (coaches.router, "/api/v1/coaches", "Coaches"),
    (resources.router, "/api/v1/resources", "Resources"),
    (scoring.router, "/api/v1/scoring", "Scoring"),
)

API_DESCRIPTION = """
Training resource recommendations for coaches.

Every endpoint except `/health` requires an `X-API-Key` header.

- `GET /api/v1/coaches/{coach_id}/recommendations` ranks the library
  against the coach's assigned students
- `GET /api/v1/coaches/{coach_id}/recommendations/collaborative` surfaces
  resources rated highly by coaches with similar students
- `GET /api/v1/resources/trending` lists this week's most-used resources
- `GET /api/v1/resources/{resource_id}/similar` lists related resources
- `POST /api/v1/scoring/relevance` scores one resource without storage
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the data source in use and flag missing configuration at startup."""
    settings = get_settings()

    logger.info(
        "Recommender API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": settings.snowflake_mock_mode,
        }
    )

    missing = settings.validate_required_fields()
    if missing:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing}
        )

    yield

    logger.info("Recommender API shutting down")


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        logger.warning(
            "Invalid input",
            extra={"path": request.url.path, "error": str(exc)}
        )
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        # Full detail goes to the log only; clients get a generic body
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error. Please contact support if this persists."},
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application from settings (the cached settings by default)."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description=API_DESCRIPTION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router, prefix, tag in ROUTERS:
        app.include_router(router, prefix=prefix, tags=[tag])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": settings.api_title,
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    _register_exception_handlers(app)

    logger.info(
        "Recommender application created",
        extra={"routers": [prefix for _, prefix, _ in ROUTERS]}
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=get_settings().log_level.lower(),
    )
