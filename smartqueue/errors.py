"""
Error taxonomy for the queue service.

Every failure carries a stable error_code and a category:
  validation      - bad input, rejected before the store is touched (400)
  not_found       - unknown customer (404)
  conflict        - duplicate or wrong-state transition (409)
  infrastructure  - store unreachable, safe to retry (503)
"""

from smartqueue.clock import isoformat


class QueueError(Exception):
    code = "QUEUE_ERROR"
    category = "conflict"
    status_code = 409
    default_message = "Queue operation failed"

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(f"{self.code}: {self.message}")

    def to_dict(self):
        payload = {
            "success": False,
            "error_code": self.code,
            "message": self.message,
        }
        payload.update(self.details)
        return payload


# --- Validation -----------------------------------------------------------

class ValidationFailed(QueueError):
    code = "VALIDATION_FAILED"
    category = "validation"
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, field, message):
        super().__init__(message, field=field)
        self.field = field


class CredentialError(QueueError):
    category = "validation"
    status_code = 400


class MalformedPayload(CredentialError):
    code = "MALFORMED_PAYLOAD"
    default_message = "Credential payload could not be parsed"


class InvalidIdentifierFormat(CredentialError):
    code = "INVALID_IDENTIFIER_FORMAT"
    default_message = "Customer ID has an invalid format"


class InvalidPosition(CredentialError):
    code = "INVALID_POSITION"
    default_message = "Position must be a positive integer"


# --- Not found ------------------------------------------------------------

class NotFound(QueueError):
    code = "CUSTOMER_NOT_FOUND"
    category = "not_found"
    status_code = 404
    default_message = "Customer not found"

    def __init__(self, customer_id=None):
        super().__init__()
        self.customer_id = customer_id


# --- Conflict -------------------------------------------------------------

class DuplicateIdentifier(QueueError):
    code = "DUPLICATE_IDENTIFIER"
    default_message = "Customer ID already exists"


class DuplicatePosition(QueueError):
    code = "DUPLICATE_POSITION"
    default_message = "Queue position already assigned"


class AlreadyVerified(QueueError):
    code = "ALREADY_VERIFIED"
    default_message = "Customer has already been verified and exited"

    def __init__(self, customer_id, verified_at=None):
        super().__init__(customer_id=customer_id, verified_at=isoformat(verified_at))
        self.customer_id = customer_id
        self.verified_at = verified_at


class NotYetBilled(QueueError):
    code = "NOT_YET_BILLED"
    default_message = "Customer has not been billed yet"


class InvalidStateForUndo(QueueError):
    code = "INVALID_STATE_FOR_UNDO"
    default_message = "Billing can only be undone for a BILLED customer"

    def __init__(self, current_status):
        super().__init__(
            f"Cannot undo billing for customer with status: {current_status}",
            current_status=current_status,
        )


class InvalidTransition(QueueError):
    code = "INVALID_TRANSITION"
    default_message = "Status transition not allowed"


# --- Infrastructure -------------------------------------------------------

class StoreUnavailable(QueueError):
    code = "STORE_UNAVAILABLE"
    category = "infrastructure"
    status_code = 503
    default_message = "Queue store is unavailable, please retry"
