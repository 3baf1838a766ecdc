"""Shared pytest fixtures for all tests."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

import httpx
import pytest

from hanko.core.domain.models import Entry, PublicKey

KEY_JSNOW = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIGtQUDZWhs8k/cZcykMkaoX7ZE7DXld8TP79HyddMVTS"
KEY_IMALCOM = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAILWtK6WxXw7NVhbn6fTQ0dECF8y98fahSIsqKMh+sSo9"
KEY_CWOODS = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIJHDGMF+tZQL3dcr1arPst+YP8v33Is0kAJVvyTKrxMw"
KEY_EBERT = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIE6h5pPnCWurUHIiHuVp4Hd4mQbEf0bE3EFpETQ2OJt4"


@pytest.fixture(autouse=True)
def reset_hanko_logger():
    """Undo the CLI logging setup so caplog sees every record."""
    yield
    for name in ("hanko", "httpx", "httpcore"):
        logger = logging.getLogger(name)
        logger.handlers = []
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep user environment and Git configuration out of the tests."""
    for var in ("HANKO_CONFIG", "HANKO_ALLOWED_SIGNERS", "HANKO_USER_AGENT"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("hanko.core.config.git_allowed_signers_path", lambda: None)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def entry_jsnow():
    return Entry(principals=("j.snow@wall.com",), key=PublicKey(blob=KEY_JSNOW))


@pytest.fixture
def entry_imalcom():
    return Entry(
        principals=("ian.malcom@acme.corp",),
        key=PublicKey(
            blob=KEY_IMALCOM,
            valid_after=datetime(2024, 4, 11, 22, 0, 0, tzinfo=timezone.utc),
        ),
    )


@pytest.fixture
def entry_cwoods():
    return Entry(
        principals=("cwoods@universal.exports",),
        key=PublicKey(
            blob=KEY_CWOODS,
            valid_before=datetime(2030, 1, 1, 0, 0, 0, tzinfo=timezone.utc),
        ),
    )


@pytest.fixture
def entry_ebert():
    return Entry(
        principals=("ernie@muppets.com", "bert@muppets.com"),
        key=PublicKey(blob=KEY_EBERT),
    )


@pytest.fixture
def example_entries(entry_jsnow, entry_imalcom, entry_cwoods, entry_ebert):
    return [entry_jsnow, entry_imalcom, entry_cwoods, entry_ebert]


@pytest.fixture
def mock_transport() -> Callable[..., httpx.MockTransport]:
    """Build a MockTransport recording every request it serves."""

    def factory(handler, requests: list | None = None) -> httpx.MockTransport:
        def record(request: httpx.Request) -> httpx.Response:
            if requests is not None:
                requests.append(request)
            return handler(request)

        return httpx.MockTransport(record)

    return factory


class FakeSource:
    """In-memory key source."""

    def __init__(self, name, keys=None, error=None, delay=0.0):
        self.name = name
        self.keys = keys or {}
        self.error = error
        self.delay = delay
        self.calls = []
        self.cancelled = False

    async def get_keys_by_username(self, username):
        self.calls.append(username)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return [PublicKey(blob=blob) for blob in self.keys.get(username, [])]
