# smas/accounts/utils.py
import secrets
import uuid
import json
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

import structlog
from jose import jwt, JWTError
from cryptography.fernet import Fernet, InvalidToken

from smas.config import SECRET_KEY, ALGORITHM, SESSION_EXPIRE_MINUTES, OAUTH_TOKEN_KEY
from smas.infrastructure.redis_cache import redis_client

logger = structlog.get_logger(__name__)

if not OAUTH_TOKEN_KEY:
    # dev fallback (not for production): tokens become unreadable after restart
    OAUTH_TOKEN_KEY = Fernet.generate_key().decode()

fernet = Fernet(OAUTH_TOKEN_KEY.encode())


# --- Session JWT helpers ---
def _now_ts() -> int:
    return int(datetime.now(timezone.utc).timestamp())


def create_session_token(subject: str, expires_delta: Optional[timedelta] = None) -> Dict[str, Any]:
    jti = str(uuid.uuid4())
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=SESSION_EXPIRE_MINUTES))
    payload = {"sub": subject, "exp": int(expire.timestamp()), "jti": jti, "type": "session", "iat": _now_ts()}
    token = jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)
    logger.debug("create_session_token", sub=subject, jti=jti, exp=payload["exp"])
    return {"token": token, "jti": jti, "exp": payload["exp"]}


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning("token_decode_failed", error=str(e))
        raise


# --- Redis-based session revocation ---
async def revoke_session_jti(jti: str, expires_at_ts: int) -> None:
    ttl = max(0, expires_at_ts - _now_ts())
    if ttl <= 0:
        return
    await redis_client.set(f"bl:{jti}", "1", ex=ttl)
    logger.info("session_jti_revoked", jti=jti, ttl=ttl)


async def is_session_revoked(jti: str) -> bool:
    return await redis_client.exists(f"bl:{jti}") == 1


# --- Provider token encryption ---
def encrypt_token(plaintext: Optional[str]) -> Optional[str]:
    if plaintext is None:
        return None
    return fernet.encrypt(plaintext.encode()).decode()


def decrypt_token(ciphertext: Optional[str]) -> Optional[str]:
    if not ciphertext:
        return None
    try:
        return fernet.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.warning("token_decrypt_failed")
        return None


# --- OAuth state helpers ---
OAUTH_STATE_TTL = 300


async def create_oauth_state(provider: str = "spotify", redirect_to: Optional[str] = None) -> str:
    state = secrets.token_urlsafe(32)
    payload = {"provider": provider, "redirect_to": redirect_to}
    await redis_client.set(f"oauth_state:{state}", json.dumps(payload), ex=OAUTH_STATE_TTL)
    return state


async def pop_oauth_state(state: str) -> Optional[dict]:
    key = f"oauth_state:{state}"
    raw = await redis_client.getdel(key)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None
