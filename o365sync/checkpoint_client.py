import logging
import time
from typing import Any, Dict, List, Optional, Union

import requests
import urllib3

from .errors import AuthError, RemoteError
from .models import EndpointKind, RemoteGroupObject

logger = logging.getLogger(__name__)

OBJECT_NOT_FOUND = "generic_err_object_not_found"


def _member_names(raw_members: List[Any]) -> List[str]:
    """Normalize group members (full objects or plain names) to names."""
    names: List[str] = []
    for m in raw_members or []:
        if isinstance(m, dict):
            name = m.get("name")
        else:
            name = m
        if isinstance(name, str) and name:
            names.append(name)
    return names


def _error_message(body: Dict[str, Any], fallback: str) -> str:
    """Combine the top-level message with the per-field validation errors."""
    message = str(body.get("message") or fallback)
    details = [
        str(err.get("message"))
        for err in body.get("errors") or []
        if isinstance(err, dict) and err.get("message")
    ]
    if details:
        message = f"{message}: {'; '.join(details)}"
    return message


def _already_exists(exc: RemoteError) -> bool:
    """True if a validation failure only says the object name is taken."""
    if exc.code != "err_validation_failed":
        return False
    text = exc.message.lower()
    return "already exists" in text or "more than one object named" in text


class CheckPointClient:
    """Minimal Check Point Management API (web_api) client.

    Every call is a POST of a JSON body to /web_api/<command>; once logged in
    the session id travels in the X-chkp-sid header.
    """

    def __init__(
        self,
        host: str,
        port: int = 443,
        verify_ssl: bool = True,
        ca_bundle: Optional[str] = None,
        timeout: int = 30,
        domain: Optional[str] = None,
        publish_poll_interval: float = 2.0,
        publish_max_polls: int = 90,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.domain = domain
        self.publish_poll_interval = publish_poll_interval
        self.publish_max_polls = publish_max_polls
        self.base_url = f"https://{host}:{port}/web_api"
        self.sid: Optional[str] = None

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

        self.logger = logging.getLogger(f"{__name__}.{host}")

        # Certificate validation stays on unless explicitly disabled.
        self.verify: Union[bool, str] = True
        if not verify_ssl:
            self.logger.warning(
                "TLS certificate verification DISABLED for %s (verify_ssl=false in configuration)", host
            )
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            self.verify = False
        elif ca_bundle:
            self.verify = ca_bundle

    def call(self, command: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST a web_api command and return the decoded JSON body.

        Raises RemoteError on transport failures and non-2xx responses.
        """
        url = f"{self.base_url}/{command}"
        try:
            resp = self.session.post(url, json=payload or {}, verify=self.verify, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RemoteError(command, str(exc)) from exc

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if not resp.ok:
            raise RemoteError(
                command,
                _error_message(body, resp.reason or "request failed"),
                status_code=resp.status_code,
                code=body.get("code"),
            )
        return body

    # Session lifecycle

    def login(self, credentials: Any) -> str:
        """Log in and remember the session id. Raises AuthError on any failure."""
        payload: Dict[str, Any] = credentials.to_payload()
        if self.domain:
            payload["domain"] = self.domain

        try:
            body = self.call("login", payload)
        except RemoteError as exc:
            raise AuthError(f"Login to {self.host} failed: {exc}") from exc

        sid = body.get("sid")
        if not isinstance(sid, str) or not sid:
            raise AuthError(f"Login to {self.host} returned no session id")

        self.sid = sid
        self.session.headers["X-chkp-sid"] = sid
        self.logger.info("Logged in to %s (api-server-version=%s)", self.host, body.get("api-server-version"))
        return sid

    def logout(self) -> None:
        try:
            self.call("logout")
        finally:
            self.sid = None
            self.session.headers.pop("X-chkp-sid", None)
        self.logger.info("Logged out from %s", self.host)

    def publish(self) -> None:
        """Publish the session and wait for the publish task to finish."""
        self.logger.warning("Publishing session changes on %s", self.host)
        body = self.call("publish")
        task_id = body.get("task-id")
        if not task_id:
            return

        status = "in progress"
        for _ in range(self.publish_max_polls):
            task = self.call("show-task", {"task-id": task_id})
            tasks = task.get("tasks") or [{}]
            status = str(tasks[0].get("status", "")).lower()
            if status != "in progress":
                break
            time.sleep(self.publish_poll_interval)

        if status != "succeeded":
            raise RemoteError("publish", f"publish task {task_id} ended with status {status!r}")
        self.logger.info("Publish task %s succeeded", task_id)

    def discard(self) -> None:
        body = self.call("discard")
        self.logger.warning(
            "Discarded session changes on %s (%s change(s))",
            self.host,
            body.get("number-of-discarded-changes", "?"),
        )

    # Remote state

    def _show(self, command: str, name: str) -> Optional[Dict[str, Any]]:
        try:
            return self.call(command, {"name": name})
        except RemoteError as exc:
            if exc.code == OBJECT_NOT_FOUND or exc.status_code == 404:
                return None
            raise

    def fetch_group(self, name: str) -> RemoteGroupObject:
        body = self._show("show-group", name)
        if body is None:
            self.logger.info("Group %s not found", name)
            return RemoteGroupObject.absent(name)
        return RemoteGroupObject(name=name, exists=True, members=_member_names(body.get("members", [])))

    def fetch_application_site(self, name: str) -> RemoteGroupObject:
        body = self._show("show-application-site", name)
        if body is None:
            self.logger.info("Application site %s not found", name)
            return RemoteGroupObject.absent(name)
        urls = [u for u in body.get("url-list") or [] if isinstance(u, str)]
        return RemoteGroupObject(name=name, exists=True, members=urls)

    # Mutations

    def add_network(self, name: str, address: str, prefix_length: int, kind: EndpointKind) -> None:
        """Create a network object; an existing object with that name counts as success."""
        suffix = "4" if kind is EndpointKind.IPV4 else "6"
        payload = {
            "name": name,
            f"subnet{suffix}": address,
            f"mask-length{suffix}": prefix_length,
            "ignore-warnings": True,
        }
        try:
            self.call("add-network", payload)
        except RemoteError as exc:
            if _already_exists(exc):
                self.logger.debug("Network %s already exists", name)
                return
            raise
        self.logger.warning("Created network %s (%s/%s)", name, address, prefix_length)

    def add_group(self, name: str, members: List[str], color: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {"name": name, "members": list(members)}
        if color:
            payload["color"] = color
        self.call("add-group", payload)
        self.logger.warning("Created group %s with %s member(s)", name, len(members))

    def set_group(self, name: str, members: List[str]) -> None:
        self.call("set-group", {"name": name, "members": list(members)})
        self.logger.warning("Replaced members of group %s (%s member(s))", name, len(members))

    def add_application_site(
        self,
        name: str,
        url_list: List[str],
        primary_category: str,
        color: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        payload: Dict[str, Any] = {
            "name": name,
            "url-list": list(url_list),
            "primary-category": primary_category,
            "urls-defined-as-regular-expression": True,
        }
        if color:
            payload["color"] = color
        if description:
            payload["description"] = description
        self.call("add-application-site", payload)
        self.logger.warning("Created application site %s with %s URL(s)", name, len(url_list))

    def set_application_site(self, name: str, url_list: List[str], primary_category: str) -> None:
        self.call(
            "set-application-site",
            {
                "name": name,
                "url-list": list(url_list),
                "primary-category": primary_category,
                "urls-defined-as-regular-expression": True,
            },
        )
        self.logger.warning("Replaced URL list of application site %s (%s URL(s))", name, len(url_list))
