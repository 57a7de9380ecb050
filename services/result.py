from dataclasses import dataclass, field
from typing import Any, Optional

from services.errors import BookingWorkflowError


@dataclass
class WorkflowResult:
    success: bool
    booking: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    http_status: int = 200
    details: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, booking, message, http_status=200):
        return cls(success=True, booking=booking, message=message, http_status=http_status)

    @classmethod
    def failed(cls, exc: BookingWorkflowError):
        details = {}
        if hasattr(exc, "remaining"):
            details["remaining"] = exc.remaining
        return cls(
            success=False,
            error=exc.message,
            error_code=exc.error_code,
            http_status=exc.http_status,
            details=details,
        )
