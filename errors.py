from typing import Optional


STORE_UNINITIALIZED = "store_uninitialized"


class TrainingError(Exception):
    """Base class for all application errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[list] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationError(TrainingError, ValueError):
    """Malformed or missing input."""

    status_code = 400


class NotFoundError(TrainingError):
    """A referenced record does not exist."""

    status_code = 404


class StoreUninitializedError(TrainingError):
    """The backing store has not been provisioned yet."""

    code = STORE_UNINITIALIZED


class UnknownStoreError(TrainingError):
    """Any other persistence or transport failure."""


class SessionStateError(TrainingError):
    """A workout session operation was called in the wrong state."""

    status_code = 409
