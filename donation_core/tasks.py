# donation_core/tasks.py
from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from donation_core.models import Notification
from donation_core.services.store import repair_mirror_drift

logger = logging.getLogger(__name__)


@shared_task
def deliver_notification_email(notification_id: int) -> bool:
    notification = Notification.objects.select_related("recipient").filter(pk=notification_id).first()
    if notification is None:
        return False

    email = getattr(notification.recipient, "email", "")
    if not email:
        return False

    sent = send_mail(
        subject=f"[Donor Portal] {notification.title}",
        message=notification.message,
        from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
        recipient_list=[email],
        fail_silently=True,
    )
    if not sent:
        logger.warning("Email copy of notification %s was not delivered", notification_id)
    return bool(sent)


@shared_task
def repair_status_mirrors() -> int:
    return len(repair_mirror_drift())
