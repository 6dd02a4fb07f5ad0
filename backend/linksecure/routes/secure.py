"""Public secure-link endpoints; no login needed, the token is the credential."""
from fastapi import APIRouter, Depends, Header, Query, Request

from linksecure.core.security import get_optional_user
from linksecure.dependencies import get_blob_proxy, get_link_service
from linksecure.models.file import ACCESS_DOWNLOAD, ACCESS_VIEW
from linksecure.models.user import User
from linksecure.schemas.secure_link import SecureAccessInfo, SecureLinkPolicies
from linksecure.services.blob_proxy import DISPOSITION_ATTACHMENT, DISPOSITION_INLINE, BlobProxy
from linksecure.services.secure_links import LinkLifecycleService
from linksecure.utils.urls import client_ip

router = APIRouter(prefix="/secure", tags=["Secure access"])

WATERMARK_HEADER = "X-LinkSecure-Watermark"


async def _serve(
    token: str,
    access_type: str,
    request: Request,
    service: LinkLifecycleService,
    proxy: BlobProxy,
    user: User | None,
    password: str | None,
    email: str | None,
):
    granted = await service.open(
        token,
        user.id if user else None,
        access_type,
        password=password,
        visitor_email=email,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    file = granted.file
    extra = {WATERMARK_HEADER: "true"} if granted.link.watermark_enabled and not granted.decision.direct else None
    return await proxy.stream(
        await service.content_url(file),
        file.filename,
        file.content_type,
        DISPOSITION_INLINE if access_type == ACCESS_VIEW else DISPOSITION_ATTACHMENT,
        range_header=request.headers.get("range"),
        extra_headers=extra,
    )


@router.get("/{token}/info", response_model=SecureAccessInfo)
async def secure_info(token: str, service: LinkLifecycleService = Depends(get_link_service)):
    validated = await service.validate(token)
    link, file = validated.link, validated.file
    return SecureAccessInfo(
        file_name=file.filename,
        file_size=file.size,
        mime_type=file.content_type,
        expires_at=link.expires_at,
        access_count=link.access_count,
        max_access_count=link.max_access_count,
        is_active=link.is_active,
        policies=SecureLinkPolicies(
            password_protected=bool(link.password_hash),
            require_email=link.require_email,
            allow_preview=link.allow_preview,
            watermark_enabled=link.watermark_enabled,
        ),
    )


@router.get("/{token}/download")
async def secure_download(
    token: str,
    request: Request,
    password: str | None = Query(None),
    email: str | None = Query(None),
    x_secure_password: str | None = Header(None),
    x_visitor_email: str | None = Header(None),
    service: LinkLifecycleService = Depends(get_link_service),
    proxy: BlobProxy = Depends(get_blob_proxy),
    user: User | None = Depends(get_optional_user),
):
    return await _serve(
        token,
        ACCESS_DOWNLOAD,
        request,
        service,
        proxy,
        user,
        password or x_secure_password,
        email or x_visitor_email,
    )


@router.get("/{token}")
async def secure_view(
    token: str,
    request: Request,
    password: str | None = Query(None),
    email: str | None = Query(None),
    x_secure_password: str | None = Header(None),
    x_visitor_email: str | None = Header(None),
    service: LinkLifecycleService = Depends(get_link_service),
    proxy: BlobProxy = Depends(get_blob_proxy),
    user: User | None = Depends(get_optional_user),
):
    return await _serve(
        token,
        ACCESS_VIEW,
        request,
        service,
        proxy,
        user,
        password or x_secure_password,
        email or x_visitor_email,
    )
