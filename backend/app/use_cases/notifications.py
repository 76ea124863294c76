"""Notification use-cases."""
from __future__ import annotations

from ..repositories.base import Repository
from ..schemas import Notification, NotificationCreate
from .activity_log import record_activity, require


def send_notification_use_case(*, repo: Repository, data: NotificationCreate, actor_id: str) -> Notification:
    notification = repo.create_notification(data.model_copy(update={"sent_by": actor_id}))
    record_activity(
        repo,
        user_id=actor_id,
        type="notification",
        description=f"Sent notification: {notification.title}",
        metadata={"notification_id": notification.id, "target_type": notification.target_type},
    )
    return notification


def list_user_notifications_use_case(*, repo: Repository, user_id: str) -> list[Notification]:
    """Inbox for ``user_id``, including notifications addressed to the user's role."""
    user = repo.get_user(user_id)
    return repo.get_user_notifications(user_id, role=user.role if user else None)


def mark_notification_read_use_case(*, repo: Repository, notification_id: str) -> None:
    # Read state is shared: marking a broadcast read marks it for everyone.
    if not repo.mark_notification_read(notification_id):
        require(None, entity="notification", record_id=notification_id)
