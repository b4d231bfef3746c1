"""Shared column helpers for table models."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime
from sqlmodel import Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def created_at_field():
    return Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow),
    )


def timestamp_field(description: Optional[str] = None):
    """Nullable timezone-aware timestamp column."""
    return Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
        description=description,
    )
