"""
Domain exceptions for the client delivery service.
File: app/core/exceptions.py

Every error raised by the lifecycle engine, the approval workflow and the
request handlers derives from DeliveryError. The exception handlers in
app/main.py render them as {"error": ..., "code": ...}.
"""


class DeliveryError(Exception):
    """Base exception for all delivery-domain errors."""

    code = "delivery_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(DeliveryError):
    """Raised when a referenced entity does not exist."""

    code = "not_found"
    status_code = 404


class InvalidTransition(DeliveryError):
    """Raised when a phase state machine rule is violated."""

    code = "invalid_transition"
    status_code = 409


class InvalidState(DeliveryError):
    """Raised when an operation is attempted while a dependent entity is in the wrong state."""

    code = "invalid_state"
    status_code = 409


class ValidationError(DeliveryError):
    """Raised for malformed input such as an out-of-range ordinal."""

    code = "validation_error"
    status_code = 422


class ConflictError(DeliveryError):
    """Raised when a concurrent update won the race for the same row."""

    code = "conflict"
    status_code = 409


class PersistenceError(DeliveryError):
    """Opaque infrastructure failure. The cause is logged, never returned."""

    code = "persistence_error"
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
