"""
Error types for Drive River.

All errors raised by the core inherit from DriveRiverError.
"""


class DriveRiverError(Exception):
    """Base exception for Drive River."""

    pass


class AuthError(DriveRiverError):
    """Raised when Google Drive rejects our authorization (HTTP 401)."""

    pass


class NotFoundError(DriveRiverError):
    """Raised when the root folder name does not match exactly one top-level folder."""

    def __init__(self, folder_name: str, matches: int):
        self.folder_name = folder_name
        self.matches = matches
        super().__init__(
            f"'{folder_name}' does not seem to be a valid folder in the drive root "
            f"({matches} matches)"
        )


class TransportError(DriveRiverError):
    """Raised on network/HTTP failures other than authorization."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class IntegrityError(DriveRiverError):
    """Raised when folder ancestry data is malformed (e.g. a parent cycle)."""

    pass
