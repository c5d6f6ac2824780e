import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .checkpoint_client import CheckPointClient
from .errors import RemoteError

logger = logging.getLogger(__name__)

LOGGED_OUT = "LoggedOut"
AUTHENTICATED = "Authenticated"
PUBLISHED = "Published"
DISCARDED = "Discarded"


@dataclass
class Credentials:
    """Login credentials for one run: username/password or an API key."""

    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    api_key: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.api_key and not (self.username and self.password):
            raise RuntimeError("Credentials need either api_key or username + password")

    def to_payload(self) -> Dict[str, Any]:
        if self.api_key:
            return {"api-key": self.api_key}
        return {"user": self.username, "password": self.password}


class ManagementSession:
    """
    Scope of one authenticated management session.

    Entering logs in (AuthError propagates and nothing else happens). Inside
    the block, call finish(publish=...) exactly once; if the block ends
    without it, the changes are discarded. Leaving the block always logs out
    once. Publish, discard and logout failures are recorded, not raised.
    """

    def __init__(self, client: CheckPointClient, credentials: Credentials):
        self.client = client
        self._credentials: Optional[Credentials] = credentials
        self.state = LOGGED_OUT
        self.outcome: Optional[str] = None
        self.publish_error: Optional[str] = None
        self.logout_error: Optional[str] = None

    def __enter__(self) -> "ManagementSession":
        credentials = self._credentials
        self._credentials = None
        if credentials is None:
            raise RuntimeError("ManagementSession cannot be reused")
        self.client.login(credentials)
        self.state = AUTHENTICATED
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self.state == AUTHENTICATED:
                logger.warning("Session ended without a publish decision; discarding changes")
                self.finish(publish=False)
        finally:
            self._logout()

    @property
    def published(self) -> bool:
        return self.outcome == PUBLISHED and self.publish_error is None

    @property
    def discarded(self) -> bool:
        return self.outcome == DISCARDED and self.publish_error is None

    def finish(self, publish: bool) -> None:
        """Publish or discard everything changed since login (once per session)."""
        if self.state != AUTHENTICATED:
            raise RuntimeError(f"Cannot finish session in state {self.state}")

        if publish:
            self.state = self.outcome = PUBLISHED
            action = self.client.publish
        else:
            self.state = self.outcome = DISCARDED
            action = self.client.discard

        try:
            action()
        except RemoteError as exc:
            self.publish_error = str(exc)
            logger.error(
                "%s failed: %s. Changes may still be staged on the management server.",
                "Publish" if publish else "Discard",
                exc,
            )

    def _logout(self) -> None:
        try:
            self.client.logout()
        except RemoteError as exc:
            self.logout_error = str(exc)
            logger.error("Logout failed: %s", exc)
        finally:
            self.state = LOGGED_OUT
