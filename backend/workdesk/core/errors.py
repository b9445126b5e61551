"""
Error taxonomy for the chat and credits services.

Every error carries the HTTP status the API layer answers with. Ownership and
existence failures share one public message so callers cannot probe for
other users' records.
"""

from typing import Any, Dict, Optional


class WorkdeskError(Exception):
    """Base error class."""

    status_code: int = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        """Message safe to show to the caller."""
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.public_message}


class UnauthenticatedError(WorkdeskError):
    """No resolved identity for the call."""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ResourceAccessError(WorkdeskError):
    """
    Base for "doesn't exist" and "isn't yours".

    Subclasses keep the internal reason in ``message`` for logs, while
    ``public_message`` is identical for both.
    """

    status_code = 404

    def __init__(self, resource: str, resource_id: str, message: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(message)

    @property
    def public_message(self) -> str:
        return f"{self.resource} not found"


class NotFoundError(ResourceAccessError):
    """Target id does not resolve."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(resource, resource_id, f"{resource} {resource_id} does not exist")


class UnauthorizedError(ResourceAccessError):
    """Target exists but is owned by someone else."""

    def __init__(self, resource: str, resource_id: str, caller_id: str):
        self.caller_id = caller_id
        super().__init__(
            resource, resource_id,
            f"{resource} {resource_id} is not owned by {caller_id}"
        )


class InsufficientCreditsError(WorkdeskError):
    """Balance check failed, before the call or at debit time."""

    status_code = 402

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient credits. This action requires {required} credits "
            f"but you only have {available}. Upgrade to Pro for unlimited credits."
        )

    @property
    def shortfall(self) -> int:
        return max(0, self.required - self.available)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "required": self.required,
            "available": self.available,
            "shortfall": self.shortfall,
        }


class InvalidStreamStateError(WorkdeskError):
    """Append or start targeted a message in the wrong streaming state."""

    status_code = 409

    def __init__(self, message_id: Optional[str], message: str):
        self.message_id = message_id
        super().__init__(message)


class ProviderFailureError(WorkdeskError):
    """The AI provider errored, timed out or is not configured."""

    status_code = 502

    def __init__(self, message: str = "AI provider request failed"):
        super().__init__(message)


class StorageError(WorkdeskError):
    """A document could not be written."""

    status_code = 500

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Failed to write document {path}")

    @property
    def public_message(self) -> str:
        return "Internal storage error"
