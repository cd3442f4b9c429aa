# smas/routers/sharing_router.py
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from smas.dependencies.auth import get_current_account, get_current_user
from smas.dependencies.db import get_session_dep
from smas.schemas.sharing_schema import (
    CreateLinkRequest,
    CreateLinkResponse,
    SharingLinkPublic,
    SharingLinkRead,
    share_path,
)
from smas.services.sharing_service import SharingService, SlugGenerationExhausted

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/sharing", tags=["sharing"])


@router.get("/{slug}", response_model=SharingLinkPublic)
async def get_sharing_link(slug: str, session: AsyncSession = Depends(get_session_dep)):
    link = await SharingService(session).get_by_slug(slug)
    if not link:
        raise HTTPException(status_code=404, detail="Sharing link not found")
    return SharingLinkPublic(
        link_slug=link.slug,
        owner_name=link.owner_name,
        playlist_id=link.playlist_id,
        is_active=link.is_active,
        created_at=link.created_at,
    )


@router.post("/create-link", response_model=CreateLinkResponse)
async def create_link(
    payload: CreateLinkRequest,
    current_user=Depends(get_current_user),
    account=Depends(get_current_account),
    session: AsyncSession = Depends(get_session_dep),
):
    if payload.playlist_id is None:
        raise HTTPException(status_code=400, detail="Playlist ID is required")

    owner_name = payload.owner_name or current_user.display_name
    svc = SharingService(session)
    try:
        link = await svc.create_unique_link(payload.playlist_id, account.external_account_id, owner_name)
    except ValueError as exc:
        logger.info("create_link_rejected", playlist_id=str(payload.playlist_id), error=str(exc))
        raise HTTPException(status_code=400, detail="Invalid playlist")
    except SlugGenerationExhausted as exc:
        logger.error("create_link_failed", playlist_id=str(payload.playlist_id), error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to create sharing link")
    return {"link": share_path(link.slug)}


@router.delete("/links/{link_id}", response_model=SharingLinkRead)
async def revoke_link(
    link_id: uuid.UUID,
    account=Depends(get_current_account),
    session: AsyncSession = Depends(get_session_dep),
):
    try:
        return await SharingService(session).revoke(link_id, account.external_account_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
