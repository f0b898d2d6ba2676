"""Error kinds raised by the inventory ledger.

Every failure carries a ``retryable`` flag so callers can tell a lost race
or an unreachable database (retry) from a bad request (do not retry).
"""


class InventoryError(Exception):
    """Base exception for the inventory ledger service."""

    default_message = "An error occurred in the inventory service"
    error_code = "INVENTORY_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message=None, code=None, details=None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Machine-readable error code
            details: Additional error details
        """
        self.message = message or self.default_message
        self.code = code or self.error_code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to a response payload."""
        error_dict = {
            "success": False,
            "error": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }
        if self.details:
            error_dict["details"] = self.details
        return error_dict


class ValidationError(InventoryError):
    """Malformed or out-of-range input (non-positive quantity, bad limit...)."""

    default_message = "Validation error"
    error_code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(InventoryError):
    """Stock record, warehouse or product does not exist."""

    default_message = "Not found"
    error_code = "NOT_FOUND"
    status_code = 404


class InsufficientStockError(InventoryError):
    """Requested quantity exceeds what is available (or reserved, for releases)."""

    default_message = "Insufficient stock available"
    error_code = "INSUFFICIENT_STOCK"
    status_code = 400


class ConflictError(InventoryError):
    """A concurrent mutation won the optimistic version check."""

    default_message = "Stock record was modified concurrently, retry the request"
    error_code = "CONFLICT"
    status_code = 409
    retryable = True


class StorageUnavailable(InventoryError):
    """The database could not be reached or timed out."""

    default_message = "Storage unavailable"
    error_code = "STORAGE_UNAVAILABLE"
    status_code = 503
    retryable = True
