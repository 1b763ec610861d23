from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request

from aviary.core.auth import get_current_user_id
from aviary.core.rate_limit import enforce_rate_limit
from aviary.schemas.suggestions import Suggestion, SuggestionsResponse
from aviary.utils.ttl_cache import CacheKeys

router = APIRouter(tags=["Suggestions"])

SUGGESTIONS_TTL_SECONDS = 300


@router.get(
    "/suggestions",
    response_model=SuggestionsResponse,
    dependencies=[Depends(enforce_rate_limit("read"))],
)
async def get_suggestions(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    limit: int = Query(10, ge=1, le=50, description="Number of suggestions to return."),
) -> SuggestionsResponse:
    """Species the user should photograph next, highest priority first.

    Rankings are cached per user and limit; photo, species and detection
    writes invalidate them.
    """
    container = request.app.state.container

    async def fetch() -> list[Suggestion]:
        return await container.suggestion_service.get_photo_suggestions(user_id, limit)

    suggestions = await container.cache.get_or_fetch(
        CacheKeys.suggestions(user_id, limit), fetch, SUGGESTIONS_TTL_SECONDS
    )
    return SuggestionsResponse(
        suggestions=suggestions,
        top_suggestion=suggestions[0] if suggestions else None,
        generated_at=datetime.now(timezone.utc),
    )
