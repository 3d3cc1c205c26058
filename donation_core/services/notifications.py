# donation_core/services/notifications.py
"""
Notification dispatcher.

Sending never fails the caller: a notification that cannot be stored is
logged and dropped.
"""

from __future__ import annotations

import logging
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction

from donation_core.exceptions import NotFound
from donation_core.models import Notification

logger = logging.getLogger(__name__)


def send(user_id, title: str, message: str, category: str = Notification.Category.GENERAL) -> Optional[Notification]:
    User = get_user_model()
    try:
        if not User.objects.filter(pk=user_id).exists():
            logger.warning("Notification %r dropped: user %s does not exist", title, user_id)
            return None

        with transaction.atomic():
            notification = Notification.objects.create(
                recipient_id=user_id,
                title=title,
                message=message,
                category=category,
            )
    except Exception:
        logger.exception("Failed to store notification %r for user %s", title, user_id)
        return None

    if getattr(settings, "NOTIFICATION_EMAILS_ENABLED", False):
        from donation_core.tasks import deliver_notification_email

        transaction.on_commit(lambda: deliver_notification_email.delay(notification.pk))

    return notification


def send_template(user_id, template) -> Optional[Notification]:
    """
    Dispatch a ``rules.NotificationTemplate``.
    """
    return send(user_id, template.title, template.message, template.category)


def list_for_user(user_id, *, unread_only: bool = False):
    qs = Notification.objects.filter(recipient_id=user_id)
    if unread_only:
        qs = qs.filter(read=False)
    return qs.order_by("-created_at", "-id")


def unread_count(user_id) -> int:
    return Notification.objects.filter(recipient_id=user_id, read=False).count()


def mark_read(notification_id, user_id) -> Notification:
    notification = Notification.objects.filter(pk=notification_id, recipient_id=user_id).first()
    if notification is None:
        raise NotFound(f"Notification {notification_id} was not found.")
    if not notification.read:
        notification.read = True
        notification.save(update_fields=["read"])
    return notification


def mark_all_read(user_id) -> int:
    return Notification.objects.filter(recipient_id=user_id, read=False).update(read=True)
