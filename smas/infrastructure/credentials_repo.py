# smas/infrastructure/credentials_repo.py
from typing import Optional
import uuid
from datetime import datetime

from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from smas.models.base import utcnow
from smas.models.credential import UserCredential


class CredentialsRepository:
    """
    Repository for UserCredential.
    Tokens are passed in already encrypted; this layer never sees plaintext.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, external_account_id: str) -> Optional[UserCredential]:
        q = select(UserCredential).where(UserCredential.external_account_id == external_account_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def reload(self, credential: UserCredential) -> UserCredential:
        await self.session.refresh(credential)
        return credential

    async def put(
        self,
        user_id: uuid.UUID,
        external_account_id: str,
        access_token_enc: str,
        refresh_token_enc: Optional[str],
        expires_at: datetime,
        scope: Optional[str] = None,
    ) -> UserCredential:
        """
        Idempotent upsert keyed on the external account.
        A missing refresh token keeps the stored one.
        """
        cred = await self.get(external_account_id)
        if cred is None:
            cred = UserCredential(
                user_id=user_id,
                external_account_id=external_account_id,
                access_token_enc=access_token_enc,
                refresh_token_enc=refresh_token_enc,
                access_token_expires_at=expires_at,
                scope=scope,
            )
        else:
            cred.user_id = user_id
            cred.access_token_enc = access_token_enc
            if refresh_token_enc is not None:
                cred.refresh_token_enc = refresh_token_enc
            cred.access_token_expires_at = expires_at
            if scope is not None:
                cred.scope = scope
            cred.updated_at = utcnow()
        self.session.add(cred)
        await self.session.commit()
        await self.session.refresh(cred)
        return cred

    async def update_tokens_if_unchanged(
        self,
        cred: UserCredential,
        previous_refresh_token_enc: Optional[str],
        access_token_enc: str,
        refresh_token_enc: str,
        expires_at: datetime,
    ) -> bool:
        """
        Conditional write keyed on the refresh token we refreshed from.
        Returns False when another writer already replaced it; the caller
        should re-read instead of overwriting a newer pair.
        """
        stmt = (
            update(UserCredential)
            .where(
                UserCredential.id == cred.id,
                UserCredential.refresh_token_enc == previous_refresh_token_enc,
            )
            .values(
                access_token_enc=access_token_enc,
                refresh_token_enc=refresh_token_enc,
                access_token_expires_at=expires_at,
                updated_at=utcnow(),
            )
        )
        res = await self.session.execute(stmt)
        await self.session.commit()
        await self.session.refresh(cred)
        return res.rowcount == 1
