from fastapi import APIRouter, Depends, Query, Request, status

from linksecure.core.security import get_current_user
from linksecure.dependencies import get_link_service
from linksecure.models.user import User
from linksecure.schemas.secure_link import (
    SecureLinkAccessEventInfo,
    SecureLinkCreate,
    SecureLinkCreated,
    SecureLinkDetails,
    SecureLinkInfo,
    SecureLinkList,
)
from linksecure.services.secure_links import LinkLifecycleService, LinkPolicy
from linksecure.utils.urls import external_base_url

router = APIRouter(prefix="/files", tags=["Secure links"])


@router.post("/{file_id}/generate-link", response_model=SecureLinkCreated, status_code=status.HTTP_201_CREATED)
async def generate_link(
    file_id: str,
    payload: SecureLinkCreate,
    request: Request,
    service: LinkLifecycleService = Depends(get_link_service),
    current_user: User = Depends(get_current_user),
):
    created = await service.create(
        file_id,
        current_user.id,
        LinkPolicy(**payload.model_dump()),
        external_base_url(request),
    )
    info = SecureLinkInfo.from_link(created.link)
    return SecureLinkCreated(
        **info.model_dump(),
        token=created.link.token,
        secure_url=created.secure_url,
        mediated=created.mediated,
    )


@router.get("/secure-links", response_model=SecureLinkList)
async def list_secure_links(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: LinkLifecycleService = Depends(get_link_service),
    current_user: User = Depends(get_current_user),
):
    result = await service.list_links(current_user.id, page, limit)
    result["links"] = [SecureLinkInfo.from_link(link) for link in result["links"]]
    return SecureLinkList(**result)


@router.get("/secure-links/{link_id}", response_model=SecureLinkDetails)
async def secure_link_details(
    link_id: str,
    service: LinkLifecycleService = Depends(get_link_service),
    current_user: User = Depends(get_current_user),
):
    link, events = await service.details(link_id, current_user.id)
    return SecureLinkDetails(
        **SecureLinkInfo.from_link(link).model_dump(),
        events=[SecureLinkAccessEventInfo.model_validate(e) for e in events],
    )


@router.delete("/secure-links/{link_id}")
async def revoke_secure_link(
    link_id: str,
    service: LinkLifecycleService = Depends(get_link_service),
    current_user: User = Depends(get_current_user),
):
    link = await service.revoke(link_id, current_user.id)
    return {"message": "Secure link revoked successfully", "id": link.id, "is_active": link.is_active}
