from __future__ import annotations


class AppError(Exception):
    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}


class NotFoundError(AppError):
    def __init__(self, message: str = "Resource not found", details: dict | None = None) -> None:
        super().__init__(code="not_found", message=message, details=details)


class ValidationAppError(AppError):
    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        super().__init__(code="validation_error", message=message, details=details)


class StoreError(AppError):
    """Read or write against the event store failed."""

    def __init__(self, message: str = "Event store operation failed", details: dict | None = None) -> None:
        super().__init__(code="store_error", message=message, details=details)


class DeliveryError(AppError):
    """A notification channel could not send."""

    def __init__(self, message: str = "Notification delivery failed", details: dict | None = None) -> None:
        super().__init__(code="delivery_error", message=message, details=details)


class RecurrenceComputeError(AppError):
    def __init__(self, message: str = "Cannot compute next occurrence", details: dict | None = None) -> None:
        super().__init__(code="recurrence_error", message=message, details=details)


class LifecycleError(AppError):
    """Double start/stop. Logged as a warning by the scheduler, never raised to callers."""

    def __init__(self, message: str = "Invalid scheduler lifecycle transition", details: dict | None = None) -> None:
        super().__init__(code="lifecycle_error", message=message, details=details)
