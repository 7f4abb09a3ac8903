"""
Notification queue model.

Outbound message intents written by the engine and delivered by an
external dispatcher.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.models.base import Base
from affiliate_engine.models.enums import NotificationChannel, NotificationStatus
from affiliate_engine.models.types import JSONType


class NotificationQueue(Base):
    """Queued notification."""

    __tablename__ = "notification_queue"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    channel: Mapped[str] = mapped_column(
        String(20), default=NotificationChannel.EMAIL.value, nullable=False
    )
    recipient: Mapped[str] = mapped_column(String(255), nullable=False)
    template_slug: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=NotificationStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, default="", nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSONType, default=dict, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
