"""
Custom exceptions for the InternTrack backend.

Every error raised by the notification engine or the task access control engine
derives from InternTrackError, so the API layer can map it to a response with
one handler:

    from exceptions import TaskNotFoundError

    task = await tasks.find_one({"id": task_id})
    if not task:
        raise TaskNotFoundError(task_id)

"Permission denied" (403), "not found" (404) and server-side faults (500) stay
distinct all the way to the client.
"""

from typing import Optional, Any, Dict


class InternTrackError(Exception):
    """Base exception for all InternTrack errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "detail": self.message,
            "details": self.details
        }


# ============================================
# Authorization Errors
# ============================================

class PermissionDeniedError(InternTrackError):
    """Caller attempted an action its resolved permission does not cover"""

    status_code = 403

    def __init__(self, message: str = "You do not have permission to perform this action", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="PERMISSION_DENIED", details=details)


class IneligibleGranteeError(InternTrackError):
    """Task access was offered to a user outside the project's eligible set"""

    status_code = 422

    def __init__(self, user_id: str, user_kind: str, task_id: str):
        super().__init__(
            f"{user_kind} {user_id} is not eligible to access task {task_id}",
            code="INELIGIBLE_GRANTEE",
            details={"user_id": user_id, "user_kind": user_kind, "task_id": task_id}
        )


# ============================================
# Not Found Errors
# ============================================

class ResourceNotFoundError(InternTrackError):
    """Requested resource does not exist"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            code="NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class NotificationNotFoundError(ResourceNotFoundError):
    def __init__(self, notification_id: str):
        super().__init__("Notification", notification_id)


class TaskNotFoundError(ResourceNotFoundError):
    def __init__(self, task_id: str):
        super().__init__("Task", task_id)


class ProjectNotFoundError(ResourceNotFoundError):
    def __init__(self, project_id: str):
        super().__init__("Project", project_id)


class ShareNotFoundError(ResourceNotFoundError):
    def __init__(self, task_id: str, user_id: str):
        super().__init__("Task share", f"{task_id}:{user_id}")


# ============================================
# Notification Errors
# ============================================

class UnknownRecipientError(InternTrackError):
    """Recipient id/kind pair does not resolve in the directory"""

    status_code = 422

    def __init__(self, recipient_id: str, recipient_kind: str):
        super().__init__(
            f"Unknown recipient {recipient_kind}:{recipient_id}",
            code="UNKNOWN_RECIPIENT",
            details={"recipient": recipient_id, "recipient_kind": recipient_kind}
        )


class TemplateNotFoundError(InternTrackError):
    """Message template key is not in the catalog"""

    def __init__(self, key: str):
        super().__init__(
            f"Notification template not found: {key}",
            code="TEMPLATE_NOT_FOUND",
            details={"key": key}
        )


class TaskNotRatedError(InternTrackError):
    """Rating notification requested for a task that has no rating yet"""

    status_code = 422

    def __init__(self, task_id: str):
        super().__init__(
            f"Task {task_id} has not been rated",
            code="TASK_NOT_RATED",
            details={"task_id": task_id}
        )


class StreamDeliveryWarning(RuntimeWarning):
    """Realtime push could not be delivered. Logged, never raised to callers."""
