"""
Recommendation API Routes.

NOTE: Routes use `def` (not `async def`) because the pipeline (Supabase
client, OpenAI SDK) is synchronous. FastAPI runs sync handlers in a
thread pool, and the structlog context bound by the pipeline stays
visible to the failure log below.
"""

from typing import Any, List

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from core.logging import get_logger
from recommend.catalog import CatalogQueryError
from recommend.models import ErrorResponse, RecommendRequest, TasteKeyword
from recommend.service import get_recommendation_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Recommend"])


def _user_text(body: Any) -> str:
    """Text of the request, or "" when the body has none."""
    if not isinstance(body, dict):
        return ""
    return RecommendRequest.model_validate(body).user_text()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@router.post(
    "/recommend",
    summary="Recommend 1-3 flavors from free text",
)
def recommend(body: Any = Body(default=None)) -> JSONResponse:
    """
    Recommend flavors for a natural-language request.

    Body is `{"message": "..."}` or `{"messages": [{"role", "content"}, ...]}`
    (the last message is the user turn).

    Response `type`:
    - **ask**: a clarifying question in `message`
    - **empty**: nothing matched, reason in `message`
    - **ok**: `picks`, `followup`, `candidatesCount`
    """
    text = _user_text(body)
    if not text:
        return _error(400, "Empty")

    try:
        response = get_recommendation_service().recommend(text)
    except Exception:
        logger.exception("Recommendation failed")
        return _error(500, "Internal server error")

    return JSONResponse(content=response.model_dump(by_alias=True, mode="json"))


@router.get(
    "/taste-keywords",
    response_model=List[TasteKeyword],
    summary="Taste keyword catalog",
)
def taste_keywords():
    """All taste keywords, ordered by sort_order then label."""
    try:
        return get_recommendation_service().list_taste_keywords()
    except CatalogQueryError:
        logger.exception("Taste keyword listing failed")
        return _error(500, "Internal server error")
