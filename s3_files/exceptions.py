"""Error taxonomy shared by the service, facade and HTTP layers."""


class FileManagerError(RuntimeError):
    """Base class for every failure surfaced to callers."""


class NotFoundError(FileManagerError):
    """Raised when the requested key does not exist in the bucket."""

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or f"Object not found: {key}")


class ListFailedError(FileManagerError):
    """Raised when a bucket listing fails."""


class ReadFailedError(FileManagerError):
    """Raised when an object exists but cannot be fetched."""


class WriteFailedError(FileManagerError):
    """Raised when an upload or folder marker write fails."""


class DeleteFailedError(FileManagerError):
    """Raised when a single or bulk delete fails.

    A failed folder delete leaves the prefix partially deleted. Retrying
    the same call is safe because deleting a key is idempotent.
    """

    def __init__(self, message: str, failed_keys: list[str] | None = None) -> None:
        self.failed_keys = list(failed_keys or [])
        super().__init__(message)


class UnauthorizedError(FileManagerError):
    """Raised when the shared-secret header does not match."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ValidationFailedError(FileManagerError):
    """Raised for missing keys, empty uploads and unknown modes."""
