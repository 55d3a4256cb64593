"""Cached public profiles used to label message senders."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hearth.db.session import Base
from hearth.db.time import utcnow


class Profile(Base):
    """Public identity with its transport inbox and display handle."""

    __tablename__ = "profiles"

    identity: Mapped[str] = mapped_column(String(512), primary_key=True)
    inbox_ref: Mapped[str | None] = mapped_column(String(512), nullable=True, unique=True)
    handle: Mapped[str | None] = mapped_column(String(200), nullable=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
