"""Custom exceptions for delivery dispatch."""


class DispatchError(Exception):
    """Base class for dispatch failures."""
    pass


class JobNotFoundError(DispatchError):
    """Raised when a delivery job cannot be found."""
    pass


class CourierNotFoundError(DispatchError):
    """Raised when a courier cannot be found in the directory."""
    pass


class InvalidStateError(DispatchError):
    """Raised when an operation is attempted from a state that forbids it."""

    def __init__(self, message: str, current_state: str = None):
        super().__init__(message)
        self.current_state = current_state


class AlreadyAcceptedError(DispatchError):
    """Raised when another courier has already been awarded the job."""
    pass


class BroadcastExpiredError(DispatchError):
    """Raised when the broadcast deadline has passed."""
    pass


class CourierNotEligibleError(DispatchError):
    """Raised when a courier is inactive, offline or suspended."""
    pass


class DispatchValidationError(DispatchError):
    """Raised when submitted job data fails validation."""

    def __init__(self, errors):
        super().__init__(f"Invalid job data: {errors}")
        self.errors = errors
