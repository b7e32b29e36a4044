"""Owner and Property models for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, String, ForeignKey
from datetime import datetime
import uuid


class Owner(SQLModel, table=True):
    """Property owner; owner-scoped rules fan out to every property they own."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(max_length=255)
    email: str | None = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Property(SQLModel, table=True):
    """A managed property (rental unit)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    owner_id: str = Field(
        sa_column=Column(String, ForeignKey("owner.id", ondelete="CASCADE"), index=True)
    )
    name: str = Field(max_length=255)
    nickname: str | None = Field(default=None, max_length=100)
    created_at: datetime = Field(default_factory=datetime.utcnow)
