"""Error taxonomy for storage and hub communication.

These exceptions never escape the sync engine. The store and remote client
raise them internally and the engine turns them into booleans or ``None``.
"""

from enum import Enum


class FailureKind(Enum):
    """Why a remote call failed."""

    UNREACHABLE = "unreachable"  # Timeout or connection refused
    REJECTED = "rejected"  # Hub answered with a failure
    MALFORMED = "malformed"  # Unexpected payload shape


class CrossDeviceError(Exception):
    """Base class for crossdevice errors."""


class StorageIOError(CrossDeviceError):
    """The backing document could not be read or written."""


class RemoteError(CrossDeviceError):
    """Base class for failures talking to a hub."""

    kind: FailureKind


class RemoteUnreachableError(RemoteError):
    """The hub timed out or refused the connection."""

    kind = FailureKind.UNREACHABLE


class RemoteRejectedError(RemoteError):
    """The hub responded with a failure status."""

    kind = FailureKind.REJECTED

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(RemoteError):
    """The hub responded with a payload we could not interpret."""

    kind = FailureKind.MALFORMED
