# smas/models/credential.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
from datetime import datetime
import uuid
from sqlalchemy import String

from smas.models.base import utcnow


class UserCredential(SQLModel, table=True):
    """Delegated Spotify tokens for one external account. Tokens are Fernet-encrypted."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    external_account_id: str = Field(sa_column=Column(String, unique=True, index=True, nullable=False))
    access_token_enc: str
    refresh_token_enc: Optional[str] = None
    access_token_expires_at: datetime
    scope: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
