# donation_core/signals.py
from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import send_mail
from django.db.models.signals import post_save
from django.dispatch import receiver

from donation_core.models import WorkflowTransition
from donation_core.workflows.statuses import label_of

logger = logging.getLogger(__name__)


def _safe_username(user) -> str:
    if not user:
        return "system"
    return user.get_username()


# ===============================================================
# WORKFLOW TRANSITIONS
# ===============================================================
@receiver(post_save, sender=WorkflowTransition)
def audit_workflow_transition(sender, instance: WorkflowTransition, created: bool, **kwargs):
    """
    Side effects of a recorded transition:
    - structured log line
    - optional staff email (WORKFLOW_EMAIL_NOTIFICATIONS)
    """
    if not created:
        return

    logger.info(
        "WORKFLOW application %s: %s -> %s by %s as %s",
        instance.application_id,
        instance.from_status,
        instance.to_status,
        _safe_username(instance.performed_by),
        instance.role,
    )

    if not getattr(settings, "WORKFLOW_EMAIL_NOTIFICATIONS", False):
        return

    recipients = getattr(settings, "WORKFLOW_NOTIFY_EMAILS", None)
    if not recipients:
        return

    subject = (
        f"[Donor Portal] Application {instance.application_id} "
        f"{label_of(instance.from_status)} -> {label_of(instance.to_status)}"
    )

    body = "\n".join(
        [
            "Workflow transition recorded.",
            "",
            f"Application ID: {instance.application_id}",
            f"From: {instance.from_status}",
            f"To: {instance.to_status}",
            f"Action: {instance.action}",
            f"Role: {instance.role}",
            f"By: {_safe_username(instance.performed_by)}",
            f"Comment: {instance.comment or '-'}",
            f"At: {instance.created_at}",
        ]
    )

    sent = send_mail(
        subject=subject,
        message=body,
        from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
        recipient_list=list(recipients),
        fail_silently=True,
    )
    if not sent:
        logger.warning("Staff email for transition %s was not sent", instance.pk)
