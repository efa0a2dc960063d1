from __future__ import annotations


from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from recommendation_service.models.recommender import ActivityEvent, Product, RecommendResponse
from recommendation_service.services.recommender import RecommenderService
from recommendation_service.utils.logger import Logger

_logger = Logger(name="recommendation-service.api")

router = APIRouter(
    prefix="/api",
    tags=["recommend"]
)


def _service(request: Request) -> RecommenderService:
    service = getattr(request.app.state, "recommender_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Recommender service unavailable")
    return service


@router.get("/recommendations/{user_id}", response_model=RecommendResponse)
async def get_recommended_products(request: Request, user_id: str):
    """Fallback, cached or freshly trained recommendations for one user."""
    service = _service(request)
    try:
        products = await service.get_recommended_products(user_id)
    except Exception:
        _logger.exception("Failed to fetch recommended products", user_id=user_id)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to fetch recommended products"},
        )
    return RecommendResponse(recommendations=products)


@router.post("/analytics/events", status_code=status.HTTP_202_ACCEPTED)
async def track_event(request: Request, event: ActivityEvent):
    """Append a tracking event to the user's activity log."""
    service = _service(request)
    await service.analytics.record_event(event)
    _logger.debug("Recorded event", user_id=event.user_id, action=event.action)
    return {"success": True}


@router.post("/products", status_code=status.HTTP_201_CREATED)
async def upsert_product(request: Request, product: Product):
    """Add a product to the catalog, or replace the one with the same id."""
    service = _service(request)
    created = await service.catalog.add(product)
    _logger.debug("Upserted product", product_id=product.id, created=created)
    return {"success": True, "created": created}
