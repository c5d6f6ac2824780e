"""Pytest configuration and shared fixtures."""

from typing import Dict, List, Optional

import pytest

from o365sync.errors import AuthError, RemoteError
from o365sync.models import EndpointKind, EndpointRecord, RemoteGroupObject
from o365sync.session import Credentials


class FakeManagementServer:
    """In-memory stand-in for CheckPointClient that records every call.

    fail_on holds either a command ("set-group") or "command:name"
    ("add-network:O365_IPv4_1.1.1.0") that should raise RemoteError.
    """

    def __init__(
        self,
        groups: Optional[Dict[str, List[str]]] = None,
        sites: Optional[Dict[str, List[str]]] = None,
        fail_on: Optional[set] = None,
        reject_login: bool = False,
        fail_status: int = 500,
        fail_code: str = "generic_error",
    ):
        self.groups = {k: list(v) for k, v in (groups or {}).items()}
        self.sites = {k: list(v) for k, v in (sites or {}).items()}
        self.networks: Dict[str, tuple] = {}
        self.fail_on = set(fail_on or ())
        self.reject_login = reject_login
        self.fail_status = fail_status
        self.fail_code = fail_code
        self.calls: List[tuple] = []

    def _record(self, command: str, name: Optional[str] = None, *args) -> None:
        self.calls.append((command, name) + args)
        if command in self.fail_on or f"{command}:{name}" in self.fail_on:
            raise RemoteError(command, "simulated failure", status_code=self.fail_status, code=self.fail_code)

    def commands(self) -> List[str]:
        return [c[0] for c in self.calls]

    def mutating_commands(self) -> List[str]:
        return [c for c in self.commands() if c.startswith(("add-", "set-"))]

    def login(self, credentials):
        self.calls.append(("login", None))
        if self.reject_login:
            raise AuthError("Login to fake failed: wrong password")
        return "fake-sid"

    def logout(self):
        self._record("logout")

    def publish(self):
        self._record("publish")

    def discard(self):
        self._record("discard")

    def fetch_group(self, name):
        self._record("show-group", name)
        if name not in self.groups:
            return RemoteGroupObject.absent(name)
        return RemoteGroupObject(name=name, exists=True, members=list(self.groups[name]))

    def add_network(self, name, address, prefix_length, kind):
        self._record("add-network", name, address, prefix_length, kind)
        self.networks[name] = (address, prefix_length)

    def add_group(self, name, members, color=None):
        self._record("add-group", name, list(members), color)
        self.groups[name] = list(members)

    def set_group(self, name, members):
        self._record("set-group", name, list(members))
        self.groups[name] = list(members)

    def fetch_application_site(self, name):
        self._record("show-application-site", name)
        if name not in self.sites:
            return RemoteGroupObject.absent(name)
        return RemoteGroupObject(name=name, exists=True, members=list(self.sites[name]))

    def add_application_site(self, name, url_list, primary_category, color=None, description=None):
        self._record("add-application-site", name, list(url_list), primary_category, color)
        self.sites[name] = list(url_list)

    def set_application_site(self, name, url_list, primary_category):
        self._record("set-application-site", name, list(url_list), primary_category)
        self.sites[name] = list(url_list)


def ipv4(service: str, address: str, prefix: int = 24) -> EndpointRecord:
    return EndpointRecord(service=service, kind=EndpointKind.IPV4, address=address, prefix_length=prefix)


def url(service: str, pattern: str) -> EndpointRecord:
    return EndpointRecord(service=service, kind=EndpointKind.URL, pattern=pattern)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(username="admin", password="secret")


@pytest.fixture
def fake_server() -> FakeManagementServer:
    return FakeManagementServer()


@pytest.fixture
def sample_records() -> List[EndpointRecord]:
    return [
        ipv4("EXO", "40.92.0.0", 15),
        ipv4("EXO", "40.107.0.0", 16),
        ipv4("SPO", "13.107.136.0", 22),
        EndpointRecord(service="EXO", kind=EndpointKind.IPV6, address="2a01:111:f400::", prefix_length=48),
        url("EXO", "*.outlook.com"),
        url("SPO", "*.sharepoint.com"),
        url("Yammer", "*.facebook.com"),
    ]
