"""Unit tests for the management session lifecycle."""

import pytest

from conftest import FakeManagementServer
from o365sync.errors import AuthError
from o365sync.session import (
    AUTHENTICATED,
    DISCARDED,
    LOGGED_OUT,
    PUBLISHED,
    Credentials,
    ManagementSession,
)


def test_credentials_require_key_or_user_password():
    with pytest.raises(RuntimeError):
        Credentials(username="admin")
    assert Credentials(api_key="k").to_payload() == {"api-key": "k"}


def test_credentials_repr_hides_secrets():
    text = repr(Credentials(username="admin", password="hunter2"))
    assert "hunter2" not in text


def test_publish_path(credentials):
    server = FakeManagementServer()
    with ManagementSession(server, credentials) as session:
        assert session.state == AUTHENTICATED
        session.finish(publish=True)
        assert session.state == PUBLISHED

    assert session.state == LOGGED_OUT
    assert session.published and not session.discarded
    assert server.commands() == ["login", "publish", "logout"]


def test_unfinished_session_discards(credentials):
    server = FakeManagementServer()
    with ManagementSession(server, credentials):
        pass
    assert server.commands() == ["login", "discard", "logout"]


def test_exception_in_block_discards_and_logs_out(credentials):
    server = FakeManagementServer()
    with pytest.raises(KeyError):
        with ManagementSession(server, credentials):
            raise KeyError("boom")
    assert server.commands() == ["login", "discard", "logout"]


def test_finish_only_once(credentials):
    server = FakeManagementServer()
    with ManagementSession(server, credentials) as session:
        session.finish(publish=False)
        assert session.state == DISCARDED
        with pytest.raises(RuntimeError):
            session.finish(publish=True)
    assert server.commands().count("discard") == 1
    assert "publish" not in server.commands()


def test_failed_publish_still_logs_out(credentials):
    server = FakeManagementServer(fail_on={"publish"})
    with ManagementSession(server, credentials) as session:
        session.finish(publish=True)
    assert session.publish_error is not None
    assert not session.published
    assert server.commands() == ["login", "publish", "logout"]


def test_failed_logout_recorded(credentials):
    server = FakeManagementServer(fail_on={"logout"})
    with ManagementSession(server, credentials) as session:
        session.finish(publish=False)
    assert session.logout_error is not None
    assert session.state == LOGGED_OUT


def test_rejected_login_skips_logout(credentials):
    server = FakeManagementServer(reject_login=True)
    with pytest.raises(AuthError):
        with ManagementSession(server, credentials):
            pass
    assert server.commands() == ["login"]


def test_session_not_reusable(credentials):
    server = FakeManagementServer()
    session = ManagementSession(server, credentials)
    with session:
        session.finish(publish=False)
    with pytest.raises(RuntimeError):
        with session:
            pass
