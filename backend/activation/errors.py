"""Exception types for the activation persistence layer.

None of these are fatal to a wizard session: the state container catches
remote and storage failures and degrades to the local copy (or to an empty
form). They exist so each failure mode can be logged and tested by type.
"""


class ActivationError(Exception):
    """Base exception for activation sync errors."""

    def __init__(self, message: str, error_code: str = "ACTIVATION_ERROR"):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class InvalidStepError(ActivationError):
    """Step index outside the six wizard steps."""

    def __init__(self, step: object):
        super().__init__(
            message=f"Invalid step number: {step!r} (expected 1-6)",
            error_code="INVALID_STEP",
        )
        self.step = step


class RemoteSyncError(ActivationError):
    """The activation service was unreachable or answered with a failure."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message=message, error_code="REMOTE_SYNC_FAILED")
        self.status_code = status_code


class StorageError(ActivationError):
    """The local key-value store rejected a read, write or delete."""

    def __init__(self, message: str, error_code: str = "STORAGE_ERROR"):
        super().__init__(message=message, error_code=error_code)


class StorageQuotaExceededError(StorageError):
    """The local key-value store is out of space."""

    def __init__(self, message: str = "Storage quota exceeded"):
        super().__init__(message=message, error_code="STORAGE_QUOTA_EXCEEDED")
