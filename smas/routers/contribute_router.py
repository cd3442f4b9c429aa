# smas/routers/contribute_router.py
import asyncio
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from smas.dependencies.auth import get_current_account, get_current_user
from smas.dependencies.db import get_session_dep, get_session_factory
from smas.dependencies.services import get_lock_manager, get_music_provider, get_token_client
from smas.schemas.contribution_schema import (
    ContributeRequest,
    ContributeResponse,
    ContributionRead,
    CooldownResponse,
)
from smas.services.contribution_workflow import (
    ContributionOutcome,
    ContributionStatus,
    ContributionWorkflow,
    ContributorContext,
)
from smas.services.credential_service import CredentialService
from smas.services.sharing_service import SharingService

logger = structlog.get_logger(__name__)
router = APIRouter(tags=["contribute"])

STATUS_CODES = {
    ContributionStatus.LINK_INVALID: status.HTTP_404_NOT_FOUND,
    ContributionStatus.NO_TRACKS_AVAILABLE: 422,
    ContributionStatus.COOLDOWN_BLOCKED: status.HTTP_429_TOO_MANY_REQUESTS,
}


async def _run_workflow(
    session_factory,
    provider,
    token_client,
    lock_manager,
    contributor: ContributorContext,
    link_slug: str,
    playlist_id: Optional[uuid.UUID],
    track_uris: Optional[List[str]],
):
    async with session_factory() as session:
        workflow = ContributionWorkflow(session, provider, token_client, lock_manager)
        outcome = await workflow.run(contributor, link_slug, playlist_id=playlist_id, track_uris=track_uris)
        cooldown_body = None
        if outcome.status == ContributionStatus.COOLDOWN_BLOCKED:
            cooldown_body = _cooldown_body(outcome)
        return outcome, cooldown_body


def _cooldown_body(outcome: ContributionOutcome) -> dict:
    contribution = outcome.cooldown.contribution if outcome.cooldown else None
    body = CooldownResponse(
        message=outcome.message,
        days_remaining=outcome.days_remaining or 0,
        cooldown_ends_at=outcome.release_at,
        contribution=ContributionRead.model_validate(contribution) if contribution else None,
    )
    return body.model_dump(by_alias=True, mode="json")


@router.post("/contribute", response_model=ContributeResponse)
async def contribute(
    payload: ContributeRequest,
    current_user=Depends(get_current_user),
    account=Depends(get_current_account),
    session: AsyncSession = Depends(get_session_dep),
    session_factory=Depends(get_session_factory),
    provider=Depends(get_music_provider),
    token_client=Depends(get_token_client),
    lock_manager=Depends(get_lock_manager),
):
    if payload.playlist_id is None and not payload.link_slug:
        raise HTTPException(status_code=400, detail="Missing required data")

    link_slug = payload.link_slug
    if not link_slug:
        link = await SharingService(session).get_active_for_playlist(payload.playlist_id)
        if link is None:
            raise HTTPException(status_code=404, detail="No active sharing link for this playlist")
        link_slug = link.slug

    # the contributor's own token only reads their top tracks
    token = await CredentialService(session, token_client, lock_manager).get_valid_access_token(
        account.external_account_id
    )
    if not token.ok:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Spotify session expired")

    contributor = ContributorContext(
        contributor_id=current_user.id,
        contributor_name=current_user.display_name,
        contributor_access_token=token.access_token,
    )
    # a client disconnect must not cut the run between the playlist write and the ledger write
    outcome, cooldown_body = await asyncio.shield(
        _run_workflow(
            session_factory,
            provider,
            token_client,
            lock_manager,
            contributor,
            link_slug,
            payload.playlist_id,
            payload.track_uris,
        )
    )

    if outcome.ok:
        return {"success": True, "message": outcome.message, "tracks": outcome.tracks}
    if cooldown_body is not None:
        return JSONResponse(status_code=status.HTTP_429_TOO_MANY_REQUESTS, content=cooldown_body)
    raise HTTPException(
        status_code=STATUS_CODES.get(outcome.status, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=outcome.message,
    )
