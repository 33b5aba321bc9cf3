"""
Public share endpoints - no authentication, the token is the credential.

Every refusal carries a machine-readable reason in error.details.reason so
clients can tell revoked, expired and exhausted links apart.
"""
from fastapi import APIRouter, Depends

from ..dependencies import get_request_context, get_share_link_manager
from ..domain.context import RequestContext
from ..schemas.share_link import (
    DownloadLocatorRead,
    DownloadRequest,
    PasswordCheck,
    PasswordCheckResult,
    SharedAssetRead,
    SharedAssetResponse,
)
from ..services.sharing.share_link_service import ShareLinkManager

router = APIRouter(prefix="/share", tags=["public-share"])


@router.get("/{token}", response_model=SharedAssetResponse)
async def open_share_link(
    token: str,
    manager: ShareLinkManager = Depends(get_share_link_manager),
    context: RequestContext = Depends(get_request_context),
) -> SharedAssetResponse:
    view = await manager.resolve_for_access(token, context=context)
    return SharedAssetResponse(
        asset=SharedAssetRead.model_validate(view.asset),
        preview_url=view.preview_url,
        thumbnail_url=view.thumbnail_url,
        requires_password=view.requires_password,
        allow_download=view.link.allow_download,
        expires_at=view.link.expires_at,
    )


@router.post("/{token}/verify-password", response_model=PasswordCheckResult)
async def verify_share_password(
    token: str,
    payload: PasswordCheck,
    manager: ShareLinkManager = Depends(get_share_link_manager),
    context: RequestContext = Depends(get_request_context),
) -> PasswordCheckResult:
    await manager.verify_password(token, payload.password, context=context)
    return PasswordCheckResult(valid=True)


@router.post("/{token}/download", response_model=DownloadLocatorRead)
async def download_shared_asset(
    token: str,
    payload: DownloadRequest,
    manager: ShareLinkManager = Depends(get_share_link_manager),
    context: RequestContext = Depends(get_request_context),
) -> DownloadLocatorRead:
    locator = await manager.get_download_locator(
        token, payload.password, context=context
    )
    return DownloadLocatorRead(
        url=locator.url,
        filename=locator.filename,
        mime_type=locator.mime_type,
        file_size=locator.file_size,
        expires_in=locator.expires_in,
    )
