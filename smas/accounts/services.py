# smas/accounts/services.py
from typing import Optional
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from .models import User, AccountLink
from .repository import UserRepository, AccountLinkRepository
from . import utils
from smas.infrastructure.credentials_repo import CredentialsRepository
from smas.infrastructure.spotify_auth import TokenGrant
from smas.schemas.spotify_schema import SpotifyProfile

logger = structlog.get_logger(__name__)

PROVIDER = "spotify"


class AuthenticationError(Exception):
    pass


class AccountService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)
        self.links = AccountLinkRepository(session)
        self.credentials = CredentialsRepository(session)

    async def complete_sign_in(self, profile: SpotifyProfile, grant: TokenGrant) -> User:
        """
        Resolve (or create) the user behind a Spotify profile and store its tokens.
        The AccountLink is written once, on first sign-in; later sign-ins only
        refresh profile fields and credentials.
        """
        link = await self.links.get_by_external_account(profile.id, PROVIDER)
        if link is None:
            user = await self.users.create(
                User(display_name=profile.display_name, email=profile.email, image_url=profile.image_url)
            )
            link = await self.links.create(
                AccountLink(
                    user_id=user.id,
                    provider=PROVIDER,
                    external_account_id=profile.id,
                    external_profile_id=profile.id,
                )
            )
            logger.info("account_linked", user_id=str(user.id), external_account_id=profile.id)
        else:
            user = await self.users.get_by_id(link.user_id)
            if user is None:
                raise AuthenticationError("account link points at a missing user")

        if not user.is_active:
            logger.warning("sign_in_inactive_user", user_id=str(user.id))
            raise AuthenticationError("user is inactive")

        user = await self.users.update_profile(user, profile.display_name, profile.email, profile.image_url)
        await self.credentials.put(
            user_id=user.id,
            external_account_id=link.external_account_id,
            access_token_enc=utils.encrypt_token(grant.access_token),
            refresh_token_enc=utils.encrypt_token(grant.refresh_token),
            expires_at=grant.access_token_expires_at,
            scope=grant.scope,
        )
        logger.info("sign_in_success", user_id=str(user.id), external_account_id=link.external_account_id)
        return user

    def issue_session(self, user: User) -> dict:
        session_token = utils.create_session_token(str(user.id))
        logger.info("session_issued", user_id=str(user.id), jti=session_token["jti"])
        return session_token

    async def get_account_link(self, user: User) -> Optional[AccountLink]:
        return await self.links.get_by_user(user.id)

    async def logout(self, session_token: str) -> None:
        try:
            payload = utils.decode_token(session_token)
        except Exception:
            raise AuthenticationError("invalid session token")
        jti = payload.get("jti")
        exp = payload.get("exp")
        if jti and exp:
            await utils.revoke_session_jti(jti, exp)
            logger.info("session_revoked_on_logout", jti=jti, user_id=payload.get("sub"))
