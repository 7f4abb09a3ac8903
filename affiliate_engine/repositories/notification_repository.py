"""
Notification queue repository.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.enums import NotificationChannel, NotificationStatus
from affiliate_engine.models.notification_queue import NotificationQueue
from affiliate_engine.repositories.base import BaseRepository


class NotificationQueueRepository(BaseRepository[NotificationQueue]):
    """Notification queue repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize notification queue repository."""
        super().__init__(NotificationQueue, session)

    async def enqueue(
        self,
        recipient: str,
        template_slug: str,
        payload: dict[str, Any],
        user_id: int | None = None,
        content: str = "",
    ) -> NotificationQueue:
        """
        Queue an email notification for the external dispatcher.

        Args:
            recipient: Recipient email
            template_slug: Template identifier
            payload: Template variables (JSON serializable)
            user_id: Recipient customer ID
            content: Optional pre-rendered body

        Returns:
            Queued notification
        """
        return await self.create(
            channel=NotificationChannel.EMAIL.value,
            recipient=recipient,
            template_slug=template_slug,
            status=NotificationStatus.PENDING.value,
            user_id=user_id,
            content=content,
            payload=payload,
        )
