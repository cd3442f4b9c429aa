# smas/accounts/models.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
from datetime import datetime
import uuid
from sqlalchemy import String, UniqueConstraint

from smas.models.base import utcnow


class User(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    display_name: str = Field(default="")
    email: Optional[str] = Field(sa_column=Column(String, index=True), default=None)
    image_url: Optional[str] = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_login: Optional[datetime] = None


class AccountLink(SQLModel, table=True):
    """
    The single mapping between our user id and the provider's identifiers.
    Created once, at first sign-in; every identity lookup goes through it.
    """

    __table_args__ = (UniqueConstraint("provider", "external_account_id", name="uq_accountlink_provider_account"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True, unique=True)
    provider: str = Field(default="spotify")
    external_account_id: str = Field(index=True)
    external_profile_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)
