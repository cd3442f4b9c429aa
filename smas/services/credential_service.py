# smas/services/credential_service.py
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from smas.accounts.utils import decrypt_token, encrypt_token
from smas.config import TOKEN_REFRESH_MARGIN_SECONDS
from smas.infrastructure.credentials_repo import CredentialsRepository
from smas.infrastructure.locks import LockManager, credential_refresh_key
from smas.infrastructure.spotify_auth import REFRESH_ERROR, RefreshError, SpotifyTokenClient
from smas.models.base import utcnow
from smas.models.credential import UserCredential

logger = structlog.get_logger(__name__)

NOT_FOUND = "NotFound"

REFRESH_MARGIN = timedelta(seconds=TOKEN_REFRESH_MARGIN_SECONDS)


def needs_refresh(credential: UserCredential, now: datetime, margin: timedelta = REFRESH_MARGIN) -> bool:
    """A token this close to expiry may die between the check and the provider call."""
    return credential.access_token_expires_at - now <= margin


@dataclass(frozen=True)
class AccessTokenResult:
    access_token: Optional[str] = None
    error: Optional[str] = None
    refreshed: bool = False

    @property
    def ok(self) -> bool:
        return self.access_token is not None


class CredentialService:
    def __init__(
        self,
        session: AsyncSession,
        token_client: SpotifyTokenClient,
        lock_manager: LockManager,
        clock: Callable[[], datetime] = utcnow,
        margin: timedelta = REFRESH_MARGIN,
    ):
        self.repo = CredentialsRepository(session)
        self.token_client = token_client
        self.lock_manager = lock_manager
        self.clock = clock
        self.margin = margin

    async def get_valid_access_token(self, external_account_id: str) -> AccessTokenResult:
        """
        Access token for the account, refreshed first when it is within the
        safety margin of expiry. Refreshes for one account are serialized so
        concurrent callers share a single rotation.
        """
        cred = await self.repo.get(external_account_id)
        if cred is None:
            return AccessTokenResult(error=NOT_FOUND)

        if not needs_refresh(cred, self.clock(), self.margin):
            return self._result(cred)

        async with self.lock_manager.lock(credential_refresh_key(external_account_id)):
            cred = await self.repo.reload(cred)
            if not needs_refresh(cred, self.clock(), self.margin):
                logger.debug("credential_refreshed_concurrently", external_account_id=external_account_id)
                return self._result(cred)
            return await self._refresh(cred)

    def _result(self, cred: UserCredential, refreshed: bool = False) -> AccessTokenResult:
        access_token = decrypt_token(cred.access_token_enc)
        if access_token is None:
            return AccessTokenResult(error=REFRESH_ERROR)
        return AccessTokenResult(access_token=access_token, refreshed=refreshed)

    async def _refresh(self, cred: UserCredential) -> AccessTokenResult:
        previous_refresh_enc = cred.refresh_token_enc
        refresh_token = decrypt_token(previous_refresh_enc)
        if refresh_token is None:
            logger.warning("credential_missing_refresh_token", external_account_id=cred.external_account_id)
            return AccessTokenResult(error=REFRESH_ERROR)

        result = await self.token_client.refresh(refresh_token)
        if isinstance(result, RefreshError):
            logger.warning(
                "credential_refresh_failed",
                external_account_id=cred.external_account_id,
                status=result.status_code,
                detail=result.detail,
            )
            return AccessTokenResult(error=result.error)

        stored = await self.repo.update_tokens_if_unchanged(
            cred,
            previous_refresh_enc,
            access_token_enc=encrypt_token(result.access_token),
            refresh_token_enc=encrypt_token(result.refresh_token),
            expires_at=result.access_token_expires_at,
        )
        if not stored:
            # another writer rotated first; its pair is the one the provider honours
            logger.warning("credential_refresh_superseded", external_account_id=cred.external_account_id)
            return self._result(cred)

        logger.info(
            "credential_refreshed",
            external_account_id=cred.external_account_id,
            expires_at=result.access_token_expires_at.isoformat(),
        )
        return AccessTokenResult(access_token=result.access_token, refreshed=True)
