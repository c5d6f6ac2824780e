"""Exceptions raised by the synchronizer.

Configuration problems are reported as plain RuntimeError (see config.py);
the classes here cover the run itself.
"""
from typing import Optional

WRONG_SESSION_ID = "generic_err_wrong_session_id"


class SyncError(Exception):
    """Base class for synchronization errors."""


class EmptyResultError(SyncError):
    """No endpoints survived filtering; there is nothing to synchronize."""


class AuthError(SyncError):
    """Login was rejected or the management server could not be reached."""


class NamingCollisionError(SyncError):
    """Two different endpoint records map to the same member name."""


class RemoteError(SyncError):
    """A management API call (other than login) failed."""

    def __init__(
        self,
        command: str,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        self.command = command
        self.status_code = status_code
        self.code = code
        self.message = message
        detail = f"{command} failed"
        if status_code is not None:
            detail += f" (HTTP {status_code})"
        if code:
            detail += f" [{code}]"
        super().__init__(f"{detail}: {message}")

    @property
    def session_invalid(self) -> bool:
        """True when the server rejected the session id itself (expired or unknown)."""
        return self.status_code == 401 or self.code == WRONG_SESSION_ID
