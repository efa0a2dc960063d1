from functools import lru_cache
from typing import Optional

from fastapi import FastAPI
from contextlib import asynccontextmanager

from recommendation_service.services.recommender import RecommenderService
from recommendation_service.routers.recommender import router as recommender_router

from recommendation_service.utils.logger import Logger

_logger = Logger(name="recommendation-service")

@lru_cache(maxsize=None)
def get_recommender_service() -> RecommenderService:
    """Instantiate (and cache) the process-wide recommender service."""
    return RecommenderService()


def create_app(service: Optional[RecommenderService] = None) -> FastAPI:
    """Build the HTTP host; `service` overrides the cached singleton."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Hydrate the recommender (catalog + activity log) once per process."""
        app.state.recommender_service = service or get_recommender_service()
        _logger.info("Starting Application...",
                     min_actions=app.state.recommender_service.settings.min_actions_for_training)
        yield
        _logger.info("Shutting Down Application...")

    app = FastAPI(title="Marketplace Recommendation API", lifespan=lifespan)
    app.include_router(recommender_router)

    @app.get("/healthz")
    async def health():
        """Simple readiness endpoint."""
        return {"ok": True}

    return app


app = create_app()
