# core/errors.py
"""
Error taxonomy shared by the repository, the orchestrators and the views.

Every failure raised by the asset layers is an ``AssetError`` carrying a
human-readable message and, where it applies, the key (name, id, keytag)
the failure is about. Driver exceptions never cross the Row Store; they
arrive here as ``ConflictError`` or ``InternalError`` with the original
database message preserved.
"""
from fastapi import status


class AssetError(Exception):
    """Base class for asset inventory failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.message = message
        self.key = key
        self.step: str | None = None

    def annotate(self, step: str) -> "AssetError":
        """Return a copy of this error whose message names the failed step."""
        err = type(self)(f"{step}: {self.message}", key=self.key)
        err.step = step
        return err

    def __str__(self) -> str:
        return self.message


class NotFoundError(AssetError):
    """Raised when a lookup by name, id or external name yields no row."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str | None = None, key: str | None = None):
        if message is None:
            message = f"Element '{key}' not found."
        super().__init__(message, key=key)


class BadRequestError(AssetError):
    """Raised on malformed names, unknown types or invalid values."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AssetError):
    """Raised when a write would break a dependency or a uniqueness rule."""

    status_code = status.HTTP_409_CONFLICT


class ActivationError(AssetError):
    """Raised when the activation collaborator refuses or fails."""

    status_code = status.HTTP_409_CONFLICT


class NotificationError(AssetError):
    """Raised when a committed change could not be announced."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class InternalError(AssetError):
    """Raised on unexpected database failures."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
