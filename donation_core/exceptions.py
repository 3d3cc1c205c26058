# donation_core/exceptions.py
"""
Error taxonomy for the donation workflow engine.

Every error raised by the engine derives from WorkflowError so the API
boundary can translate it in one place (see api_exception_handler).
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler


class WorkflowError(Exception):
    """
    Base class. ``code`` is stable and safe to show to API clients.
    """

    code = "workflow_error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class InvalidTransition(WorkflowError):
    """
    No rule exists for (status, role, action); nothing was written.
    """

    code = "invalid_transition"

    def __init__(self, message: str = "", *, status_value=None, role=None, action=None):
        self.status_value = status_value
        self.role = role
        self.action = action
        if not message:
            message = f"Role {role} cannot perform {action} from status '{status_value}'."
        super().__init__(message)


class MissingPayload(WorkflowError):
    code = "missing_payload"

    def __init__(self, fields: Iterable[str], message: str = ""):
        self.fields = sorted(set(fields))
        super().__init__(message or f"Missing required field(s): {', '.join(self.fields)}")


class NotFound(WorkflowError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class ConcurrentModification(WorkflowError):
    code = "concurrent_modification"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, message: str = ""):
        super().__init__(message or "This record changed while you were editing it. Please retry.")


class PersistenceFailure(WorkflowError):
    code = "persistence_failure"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class CooldownActive(WorkflowError):
    code = "cooldown_active"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, available_at: datetime, message: str = ""):
        self.available_at = available_at
        super().__init__(
            message or f"You can reapply after {available_at.date().isoformat()}."
        )


class ActiveApplicationExists(WorkflowError):
    code = "active_application_exists"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, application_id: Optional[int] = None, message: str = ""):
        self.application_id = application_id
        super().__init__(message or "An application is already in progress for this donor.")


# ===============================================================
# DRF integration
# ===============================================================
def api_exception_handler(exc, context):
    """
    Translate WorkflowError into a DRF response; defer everything else to DRF.
    """
    if isinstance(exc, WorkflowError):
        data = {"detail": exc.message, "code": exc.code}
        if isinstance(exc, MissingPayload):
            data["fields"] = exc.fields
        if isinstance(exc, CooldownActive):
            data["available_at"] = exc.available_at.isoformat()
        return Response(data, status=exc.http_status)

    return drf_exception_handler(exc, context)
