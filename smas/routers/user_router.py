# smas/routers/user_router.py
from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from smas.accounts.repository import AccountLinkRepository
from smas.accounts.schemas import UserRead
from smas.dependencies.auth import get_current_user
from smas.dependencies.db import get_session_dep
from smas.infrastructure.contributions_repo import ContributionsRepository
from smas.schemas.contribution_schema import ContributionHistoryResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserRead)
async def me(current_user=Depends(get_current_user), session: AsyncSession = Depends(get_session_dep)):
    link = await AccountLinkRepository(session).get_by_user(current_user.id)
    return {
        "id": current_user.id,
        "display_name": current_user.display_name,
        "email": current_user.email,
        "image_url": current_user.image_url,
        "spotify_user_id": link.external_profile_id if link else None,
        "created_at": current_user.created_at,
    }


@router.get("/me/contributions", response_model=ContributionHistoryResponse)
async def my_contributions(current_user=Depends(get_current_user), session: AsyncSession = Depends(get_session_dep)):
    """Everything the signed-in user has contributed, across playlists, newest first."""
    contributions = await ContributionsRepository(session).list_by_contributor(current_user.id)
    return {"contributions": contributions}
