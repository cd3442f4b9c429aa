# smas/accounts/repository.py
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from .models import User, AccountLink
from typing import Optional
import uuid

from smas.models.base import utcnow


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        q = select(User).where(User.id == user_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def create(self, user: User) -> User:
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def update_profile(self, user: User, display_name: str, email: Optional[str], image_url: Optional[str]) -> User:
        user.display_name = display_name
        user.email = email
        user.image_url = image_url
        user.last_login = utcnow()
        user.updated_at = utcnow()
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user


class AccountLinkRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_external_account(self, external_account_id: str, provider: str = "spotify") -> Optional[AccountLink]:
        q = select(AccountLink).where(
            AccountLink.provider == provider,
            AccountLink.external_account_id == external_account_id,
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_user(self, user_id: uuid.UUID) -> Optional[AccountLink]:
        q = select(AccountLink).where(AccountLink.user_id == user_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def create(self, link: AccountLink) -> AccountLink:
        self.session.add(link)
        await self.session.commit()
        await self.session.refresh(link)
        return link
