# smas/infrastructure/spotify_auth.py
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

import httpx
import structlog

from smas.config import (
    SPOTIFY_CLIENT_ID,
    SPOTIFY_CLIENT_SECRET,
    SPOTIFY_REDIRECT_URI,
    SPOTIFY_AUTH_URL,
    SPOTIFY_TOKEN_URL,
    SPOTIFY_SCOPES,
)
from smas.models.base import utcnow

logger = structlog.get_logger(__name__)

REFRESH_ERROR = "RefreshAccessTokenError"


class SpotifyAuthError(Exception):
    pass


@dataclass(frozen=True)
class RefreshedTokens:
    access_token: str
    refresh_token: str
    access_token_expires_at: datetime


@dataclass(frozen=True)
class RefreshError:
    error: str = REFRESH_ERROR
    status_code: Optional[int] = None
    detail: Optional[str] = None


RefreshResult = Union[RefreshedTokens, RefreshError]


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    refresh_token: Optional[str]
    access_token_expires_at: datetime
    scope: Optional[str] = None


class SpotifyTokenClient:
    """Client-credential (Basic auth) calls against the Spotify accounts service."""

    def __init__(
        self,
        client_id: str = SPOTIFY_CLIENT_ID,
        client_secret: str = SPOTIFY_CLIENT_SECRET,
        token_url: str = SPOTIFY_TOKEN_URL,
        redirect_uri: str = SPOTIFY_REDIRECT_URI,
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self.transport = transport
        self.clock = clock

    def build_authorize_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": SPOTIFY_SCOPES,
            "state": state,
        }
        return str(httpx.URL(SPOTIFY_AUTH_URL, params=params))

    async def _post_token(self, data: dict) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            return await client.post(
                self.token_url,
                data=data,
                auth=(self.client_id, self.client_secret),
            )

    def _expiry(self, expires_in) -> datetime:
        return self.clock() + timedelta(seconds=int(expires_in or 3600))

    async def exchange_code(self, code: str) -> TokenGrant:
        try:
            response = await self._post_token(
                {"grant_type": "authorization_code", "code": code, "redirect_uri": self.redirect_uri}
            )
        except httpx.HTTPError as e:
            raise SpotifyAuthError(f"Token exchange error: {e}") from e

        if response.status_code >= 400:
            raise SpotifyAuthError(f"Token exchange failed ({response.status_code}): {response.text}")

        tokens = response.json()
        if not tokens.get("access_token"):
            raise SpotifyAuthError("No access token returned from provider")

        return TokenGrant(
            access_token=tokens["access_token"],
            refresh_token=tokens.get("refresh_token"),
            access_token_expires_at=self._expiry(tokens.get("expires_in")),
            scope=tokens.get("scope"),
        )

    async def refresh(self, refresh_token: str) -> RefreshResult:
        """
        Exchange a refresh token for a new token pair.
        Never raises: failures come back as RefreshError. Spotify does not always
        rotate refresh tokens, so an absent one in the response keeps the old one.
        """
        if not refresh_token:
            return RefreshError(detail="missing refresh token")

        try:
            response = await self._post_token({"grant_type": "refresh_token", "refresh_token": refresh_token})
        except httpx.HTTPError as e:
            logger.warning("spotify_token_refresh_error", error=str(e))
            return RefreshError(detail=str(e))

        try:
            tokens = response.json()
        except ValueError:
            tokens = {}

        if not response.is_success:
            logger.warning(
                "spotify_token_refresh_failed",
                status=response.status_code,
                error=tokens.get("error"),
                error_description=tokens.get("error_description"),
            )
            return RefreshError(status_code=response.status_code, detail=tokens.get("error_description"))

        if not tokens.get("access_token"):
            logger.warning("spotify_token_refresh_malformed", status=response.status_code)
            return RefreshError(status_code=response.status_code, detail="no access token in response")

        return RefreshedTokens(
            access_token=tokens["access_token"],
            refresh_token=tokens.get("refresh_token") or refresh_token,
            access_token_expires_at=self._expiry(tokens.get("expires_in")),
        )
