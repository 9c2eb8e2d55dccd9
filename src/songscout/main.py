"""FastAPI application factory."""

from fastapi import FastAPI

from songscout import __version__
from songscout.api.exception_handlers import register_exception_handlers
from songscout.api.routers import api_router
from songscout.config import Settings
from songscout.infrastructure.lifecycle import lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the operator API.

    Args:
        settings: Explicit settings (tests); get_settings() is used when omitted
    """
    app = FastAPI(
        title="SongScout",
        description="Unsigned songwriter discovery pipeline",
        version=__version__,
        lifespan=lifespan,
    )
    if settings is not None:
        app.state.settings = settings
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
