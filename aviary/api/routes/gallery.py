from fastapi import APIRouter, Depends, Request

from aviary.core.auth import get_current_user_id
from aviary.core.rate_limit import enforce_rate_limit
from aviary.schemas.gallery import CapacityResponse, LinkDetectionsResponse

router = APIRouter(tags=["Gallery"])


@router.get(
    "/species/{species_id}/capacity",
    response_model=CapacityResponse,
    dependencies=[Depends(enforce_rate_limit("read"))],
)
async def species_capacity(
    species_id: int,
    request: Request,
    replace_photo_id: int | None = None,
    user_id: str = Depends(get_current_user_id),
) -> CapacityResponse:
    """Whether the species gallery can take another photo.

    Pass ``replace_photo_id`` to ask whether a swap is allowed when the
    gallery is full.
    """
    service = request.app.state.container.capacity_service
    result = await service.check_species_limit(species_id, user_id, replace_photo_id)
    return CapacityResponse(
        allowed=result.allowed,
        current_count=result.current_count,
        limit=service.species_limit,
        error=result.error,
    )


@router.get(
    "/inbox/capacity",
    response_model=CapacityResponse,
    dependencies=[Depends(enforce_rate_limit("read"))],
)
async def inbox_capacity(
    request: Request,
    user_id: str = Depends(get_current_user_id),
) -> CapacityResponse:
    service = request.app.state.container.capacity_service
    result = await service.check_unassigned_limit(user_id)
    return CapacityResponse(
        allowed=result.allowed,
        current_count=result.current_count,
        limit=service.unassigned_limit,
        error=result.error,
    )


@router.post(
    "/species/{species_id}/detections/link",
    response_model=LinkDetectionsResponse,
    dependencies=[Depends(enforce_rate_limit("write"))],
)
async def link_species_detections(
    species_id: int,
    request: Request,
    user_id: str = Depends(get_current_user_id),
) -> LinkDetectionsResponse:
    """Attach detections whose raw name matches the species' common name."""
    service = request.app.state.container.detection_link_service
    linked = await service.link_detections(user_id, species_id)
    return LinkDetectionsResponse(linked=linked)


@router.post(
    "/detections/link",
    response_model=LinkDetectionsResponse,
    dependencies=[Depends(enforce_rate_limit("sync"))],
)
async def link_all_detections(
    request: Request,
    user_id: str = Depends(get_current_user_id),
) -> LinkDetectionsResponse:
    """Resolve every unlinked detection of the caller against their species."""
    service = request.app.state.container.detection_link_service
    linked = await service.link_all(user_id)
    return LinkDetectionsResponse(linked=linked)
