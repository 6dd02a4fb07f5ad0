from fastapi import APIRouter, Depends, Request, status

from linksecure.core.security import get_current_user
from linksecure.dependencies import get_team_service
from linksecure.models.user import User
from linksecure.schemas.team import (
    AccessRequestCreate,
    AccessRequestInfo,
    AccessRequestManage,
    FileAccessCheck,
    FileAccessResult,
    GrantCreate,
    GrantUpdate,
    MemberInfo,
)
from linksecure.services.team import TeamService
from linksecure.utils.urls import client_ip

router = APIRouter(prefix="/team", tags=["Team"])


def _member(grant, user) -> MemberInfo:
    return MemberInfo(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=grant.role,
        granted_by=grant.granted_by,
        granted_at=grant.granted_at,
        last_accessed_at=grant.last_accessed_at,
    )


@router.post("/grants", response_model=MemberInfo, status_code=status.HTTP_201_CREATED)
async def add_grant(
    payload: GrantCreate,
    service: TeamService = Depends(get_team_service),
    current_user: User = Depends(get_current_user),
):
    grant, user = await service.grant(
        current_user.id, payload.file_id, payload.role, email=payload.email, user_id=payload.user_id
    )
    return _member(grant, user)


@router.put("/grants")
async def update_grant(
    payload: GrantUpdate,
    service: TeamService = Depends(get_team_service),
    current_user: User = Depends(get_current_user),
):
    grant = await service.update_role(current_user.id, payload.file_id, payload.user_id, payload.role)
    return {"message": "Access level updated", "user_id": grant.user_id, "role": grant.role}


@router.delete("/grants/{file_id}/{user_id}")
async def remove_grant(
    file_id: str,
    user_id: str,
    service: TeamService = Depends(get_team_service),
    current_user: User = Depends(get_current_user),
):
    await service.remove(current_user.id, file_id, user_id)
    return {"message": "Access removed", "file_id": file_id, "user_id": user_id}


@router.get("/files/{file_id}/members", response_model=list[MemberInfo])
async def file_members(
    file_id: str,
    service: TeamService = Depends(get_team_service),
    current_user: User = Depends(get_current_user),
):
    return [_member(grant, user) for grant, user in await service.members(current_user.id, file_id)]


@router.post("/file/access", response_model=FileAccessResult)
async def check_file_access(
    payload: FileAccessCheck,
    request: Request,
    service: TeamService = Depends(get_team_service),
    current_user: User = Depends(get_current_user),
):
    file, decision = await service.access(
        current_user.id, payload.file_id, client_ip(request), request.headers.get("user-agent")
    )
    return FileAccessResult(
        access_level=decision.role,
        via=decision.via.value,
        file_id=file.id,
        filename=file.filename,
        size=file.size,
        content_type=file.content_type,
    )


@router.post("/requests", response_model=AccessRequestInfo, status_code=status.HTTP_201_CREATED)
async def request_access(
    payload: AccessRequestCreate,
    service: TeamService = Depends(get_team_service),
    current_user: User = Depends(get_current_user),
):
    req = await service.request_access(current_user.id, payload.file_id, payload.requested_role, payload.message)
    return AccessRequestInfo.model_validate(req)


@router.get("/requests/mine", response_model=list[AccessRequestInfo])
async def my_requests(
    service: TeamService = Depends(get_team_service),
    current_user: User = Depends(get_current_user),
):
    return [AccessRequestInfo.model_validate(r) for r in await service.my_requests(current_user.id)]


@router.get("/files/{file_id}/requests", response_model=list[AccessRequestInfo])
async def file_requests(
    file_id: str,
    service: TeamService = Depends(get_team_service),
    current_user: User = Depends(get_current_user),
):
    return [AccessRequestInfo.model_validate(r) for r in await service.file_requests(current_user.id, file_id)]


@router.post("/requests/{request_id}/manage", response_model=AccessRequestInfo)
async def manage_request(
    request_id: str,
    payload: AccessRequestManage,
    service: TeamService = Depends(get_team_service),
    current_user: User = Depends(get_current_user),
):
    req = await service.manage_request(current_user.id, request_id, payload.action, payload.role)
    return AccessRequestInfo.model_validate(req)
