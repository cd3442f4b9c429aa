# smas/config.py
import os

# Config (env), read once at import
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./smas.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# session tokens issued by this service
SECRET_KEY = os.getenv("SECRET_KEY", "change_me_now")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
SESSION_EXPIRE_MINUTES = int(os.getenv("SESSION_EXPIRE_MINUTES", str(60 * 24 * 7)))

# Fernet key for provider tokens at rest; must be set in prod
OAUTH_TOKEN_KEY = os.getenv("OAUTH_TOKEN_KEY")

SPOTIFY_CLIENT_ID = os.getenv("SPOTIFY_CLIENT_ID", "")
SPOTIFY_CLIENT_SECRET = os.getenv("SPOTIFY_CLIENT_SECRET", "")
SPOTIFY_REDIRECT_URI = os.getenv("SPOTIFY_REDIRECT_URI", f"{BASE_URL}/auth/spotify/callback")
SPOTIFY_AUTH_URL = os.getenv("SPOTIFY_AUTH_URL", "https://accounts.spotify.com/authorize")
SPOTIFY_TOKEN_URL = os.getenv("SPOTIFY_TOKEN_URL", "https://accounts.spotify.com/api/token")
SPOTIFY_API_BASE = os.getenv("SPOTIFY_API_BASE", "https://api.spotify.com/v1")
SPOTIFY_SCOPES = os.getenv(
    "SPOTIFY_SCOPES",
    "user-top-read playlist-modify-public playlist-read-private user-read-email user-library-read ugc-image-upload",
)

PLAYLIST_NAME = os.getenv("PLAYLIST_NAME", "SMAS")
PLAYLIST_DESCRIPTION = os.getenv(
    "PLAYLIST_DESCRIPTION",
    "A collaborative playlist created with Send Me a Song - discover music from friends!",
)
PLAYLIST_COVER_PATH = os.getenv("PLAYLIST_COVER_PATH")  # base64 jpeg, optional
TOP_TRACKS_LIMIT = int(os.getenv("TOP_TRACKS_LIMIT", "5"))
TOP_TRACKS_TIME_RANGE = os.getenv("TOP_TRACKS_TIME_RANGE", "short_term")

TOKEN_REFRESH_MARGIN_SECONDS = int(os.getenv("TOKEN_REFRESH_MARGIN_SECONDS", "60"))
LOCK_TIMEOUT_SECONDS = int(os.getenv("LOCK_TIMEOUT_SECONDS", "30"))
LOCK_BLOCKING_TIMEOUT_SECONDS = int(os.getenv("LOCK_BLOCKING_TIMEOUT_SECONDS", "10"))
