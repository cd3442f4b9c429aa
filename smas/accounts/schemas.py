# smas/accounts/schemas.py
from pydantic import BaseModel
from typing import Optional
import uuid
from datetime import datetime


class UserRead(BaseModel):
    id: uuid.UUID
    display_name: str
    email: Optional[str]
    image_url: Optional[str]
    spotify_user_id: Optional[str]
    created_at: datetime


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthUrl(BaseModel):
    auth_url: str
