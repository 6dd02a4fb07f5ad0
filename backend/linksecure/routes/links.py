from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse

from linksecure.core.config import settings
from linksecure.core.errors import Forbidden
from linksecure.core.security import get_current_user
from linksecure.dependencies import get_blob_proxy, get_short_link_resolver
from linksecure.models.user import User
from linksecure.schemas.links import (
    ShortLinkCheck,
    ShortLinkCreate,
    ShortLinkCreated,
    ShortLinkInfo,
    ShortLinkList,
    ShortLinkRevoked,
    VerifyRequest,
    VerifyResponse,
)
from linksecure.services.blob_proxy import DISPOSITION_ATTACHMENT, DISPOSITION_INLINE, BlobProxy
from linksecure.services.short_links import ContentGrant, ShortLinkResolver, short_link_url
from linksecure.utils.urls import external_base_url

router = APIRouter(prefix="/links", tags=["Short links"])
redirect_router = APIRouter(tags=["Short links"])


async def _proxy(grant: ContentGrant, proxy: BlobProxy, request: Request, disposition: str):
    mapping = grant.mapping
    filename = mapping.original_file_name or mapping.blob_path.rsplit("/", 1)[-1]
    return await proxy.stream(
        grant.signed_url,
        filename,
        mapping.mime_type,
        disposition,
        range_header=request.headers.get("range"),
    )


@router.post("/create", response_model=ShortLinkCreated, status_code=status.HTTP_201_CREATED)
async def create_link(
    payload: ShortLinkCreate,
    request: Request,
    resolver: ShortLinkResolver = Depends(get_short_link_resolver),
    current_user: User = Depends(get_current_user),
):
    if payload.owner_id != current_user.id:
        raise Forbidden("Links can only be created for your own account")
    mapping, link = await resolver.create(
        current_user.id,
        payload.blob_path,
        external_base_url(request),
        expiry_minutes=payload.expiry_minutes,
        metadata=payload.metadata.model_dump() if payload.metadata else None,
        password=payload.password,
    )
    return ShortLinkCreated(
        link=link, short_code=mapping.short_code, expires_at=mapping.expires_at, blob_path=mapping.blob_path
    )


@router.get("/my-links", response_model=ShortLinkList)
async def my_links(
    request: Request,
    include_expired: bool = Query(False),
    resolver: ShortLinkResolver = Depends(get_short_link_resolver),
    current_user: User = Depends(get_current_user),
):
    base = external_base_url(request)
    links = await resolver.list_links(current_user.id, include_expired)
    return ShortLinkList(
        count=len(links),
        links=[ShortLinkInfo.from_mapping(m, short_link_url(base, m.short_code)) for m in links],
    )


@router.patch("/{short_code}/revoke", response_model=ShortLinkRevoked)
async def revoke_link(
    short_code: str,
    request: Request,
    resolver: ShortLinkResolver = Depends(get_short_link_resolver),
    current_user: User = Depends(get_current_user),
):
    mapping = await resolver.revoke(short_code, current_user.id)
    url = short_link_url(external_base_url(request), mapping.short_code)
    return ShortLinkRevoked(message="Link revoked", link=ShortLinkInfo.from_mapping(mapping, url))


@router.get("/{short_code}/info", response_model=ShortLinkInfo)
async def link_info(
    short_code: str,
    request: Request,
    resolver: ShortLinkResolver = Depends(get_short_link_resolver),
    current_user: User = Depends(get_current_user),
):
    mapping = await resolver.info(short_code, current_user.id)
    return ShortLinkInfo.from_mapping(mapping, short_link_url(external_base_url(request), mapping.short_code))


@router.post("/verify/{short_code}", response_model=VerifyResponse)
async def verify_link(
    short_code: str,
    payload: VerifyRequest,
    resolver: ShortLinkResolver = Depends(get_short_link_resolver),
):
    token = await resolver.verify(short_code, payload.password)
    return VerifyResponse(downloadToken=token, expires_in=settings.DOWNLOAD_TOKEN_TTL_SECONDS)


@router.get("/{short_code}/content")
async def link_content(
    short_code: str,
    request: Request,
    check: bool = Query(False),
    token: str | None = Query(None),
    disposition: str = Query(DISPOSITION_ATTACHMENT, pattern="^(inline|attachment)$"),
    resolver: ShortLinkResolver = Depends(get_short_link_resolver),
    proxy: BlobProxy = Depends(get_blob_proxy),
):
    if check:
        return ShortLinkCheck(**await resolver.check(short_code))
    grant = await resolver.grant_content(short_code, token)
    return await _proxy(grant, proxy, request, disposition)


@redirect_router.get("/s/{short_code}")
async def short_redirect(
    short_code: str,
    request: Request,
    token: str | None = Query(None),
    resolver: ShortLinkResolver = Depends(get_short_link_resolver),
    proxy: BlobProxy = Depends(get_blob_proxy),
):
    grant = await resolver.grant_content(short_code, token)
    if grant.mapping.password_hash:
        return await _proxy(grant, proxy, request, DISPOSITION_INLINE)
    return RedirectResponse(grant.signed_url, status_code=status.HTTP_302_FOUND)
