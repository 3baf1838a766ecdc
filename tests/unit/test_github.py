"""Tests for the GitHub key source."""

import asyncio
import logging

import httpx
import pytest

from hanko.adapters.sources.github import GitHubSource
from hanko.core.domain.models import Provider, PublicKey, SourceConfig
from hanko.core.errors import (
    BadCredentials,
    ClientError,
    RatelimitExceeded,
    ServerError,
    SourceConnectionError,
    UserNotFound,
)
from tests.conftest import KEY_CWOODS, KEY_JSNOW

KEYS_URL = "https://api.github.com/users/octocat/ssh_signing_keys"


def key_item(key: str, key_id: int = 1) -> dict:
    return {
        "id": key_id,
        "key": key,
        "title": "laptop",
        "created_at": "2024-04-11T22:00:00Z",
    }


@pytest.fixture
def make_source(mock_transport):
    def factory(handler, requests=None, url="https://api.github.com"):
        config = SourceConfig(name="github", provider=Provider.GITHUB, url=url)
        return GitHubSource(config, transport=mock_transport(handler, requests))

    return factory


def fetch(source, username="octocat"):
    return asyncio.run(source.get_keys_by_username(username))


class TestGitHubKeys:
    """Test successful key retrieval."""

    def test_returns_signing_keys(self, make_source):
        requests = []
        source = make_source(
            lambda request: httpx.Response(200, json=[key_item(KEY_JSNOW), key_item(KEY_CWOODS, 2)]),
            requests,
        )

        keys = fetch(source)

        assert keys == [PublicKey(blob=KEY_JSNOW), PublicKey(blob=KEY_CWOODS)]
        assert all(key.valid_after is None and key.valid_before is None for key in keys)
        assert len(requests) == 1
        assert str(requests[0].url) == KEYS_URL

    def test_sends_api_headers(self, make_source):
        requests = []
        source = make_source(lambda request: httpx.Response(200, json=[]), requests)

        fetch(source)

        headers = requests[0].headers
        assert headers["Accept"] == "application/vnd.github+json"
        assert headers["X-GitHub-Api-Version"] == "2022-11-28"
        assert headers["User-Agent"].startswith("hanko/")

    def test_no_keys(self, make_source):
        source = make_source(lambda request: httpx.Response(200, json=[]))
        assert fetch(source) == []

    def test_enterprise_base_url(self, make_source):
        requests = []
        source = make_source(
            lambda request: httpx.Response(200, json=[]),
            requests,
            url="https://github.acme.corp/api/v3/",
        )

        fetch(source)

        assert str(requests[0].url) == "https://github.acme.corp/api/v3/users/octocat/ssh_signing_keys"

    def test_username_is_escaped(self, make_source):
        requests = []
        source = make_source(lambda request: httpx.Response(200, json=[]), requests)

        fetch(source, username="../admin")

        assert requests[0].url.raw_path == b"/users/..%2Fadmin/ssh_signing_keys"


class TestGitHubPagination:
    """Test `Link` header pagination."""

    def test_follows_next_links(self, make_source):
        def handler(request):
            page = request.url.params.get("page", "1")
            if page == "1":
                return httpx.Response(
                    200,
                    json=[key_item(KEY_JSNOW)],
                    headers={"Link": f'<{KEYS_URL}?page=2>; rel="next", <{KEYS_URL}?page=2>; rel="last"'},
                )
            return httpx.Response(
                200,
                json=[key_item(KEY_CWOODS, 2)],
                headers={"Link": f'<{KEYS_URL}?page=1>; rel="prev", <{KEYS_URL}?page=1>; rel="first"'},
            )

        requests = []
        keys = fetch(make_source(handler, requests))

        assert [key.blob for key in keys] == [KEY_JSNOW, KEY_CWOODS]
        assert len(requests) == 2

    def test_self_referencing_link_stops(self, make_source):
        requests = []
        source = make_source(
            lambda request: httpx.Response(
                200,
                json=[key_item(KEY_JSNOW)],
                headers={"Link": f'<{KEYS_URL}>; rel="next"'},
            ),
            requests,
        )

        assert fetch(source) == [PublicKey(blob=KEY_JSNOW)]
        assert len(requests) == 1

    def test_malformed_link_keeps_first_page(self, make_source, caplog):
        source = make_source(
            lambda request: httpx.Response(
                200,
                json=[key_item(KEY_JSNOW)],
                headers={"Link": f'{KEYS_URL}?page=2; rel="next"'},
            )
        )

        with caplog.at_level(logging.WARNING, logger="hanko"):
            keys = fetch(source)

        assert keys == [PublicKey(blob=KEY_JSNOW)]
        assert "Pagination skipped" in caplog.text
        assert "Keys may be incomplete" in caplog.text

    def test_error_on_later_page(self, make_source):
        def handler(request):
            if request.url.params.get("page") == "2":
                return httpx.Response(500)
            return httpx.Response(
                200,
                json=[key_item(KEY_JSNOW)],
                headers={"Link": f'<{KEYS_URL}?page=2>; rel="next"'},
            )

        with pytest.raises(ServerError):
            fetch(make_source(handler))


class TestGitHubErrors:
    """Test mapping of GitHub failures."""

    def test_user_not_found(self, make_source):
        source = make_source(lambda request: httpx.Response(404, json={"message": "Not Found"}))
        with pytest.raises(UserNotFound):
            fetch(source)

    def test_rate_limit(self, make_source):
        source = make_source(
            lambda request: httpx.Response(
                403,
                json={"message": "API rate limit exceeded for 203.0.113.7."},
                headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1712873000"},
            )
        )
        with pytest.raises(RatelimitExceeded):
            fetch(source)

    def test_forbidden_without_rate_limit_message(self, make_source):
        source = make_source(lambda request: httpx.Response(403, json={"message": "Forbidden"}))
        with pytest.raises(ClientError):
            fetch(source)

    def test_bad_credentials(self, make_source):
        source = make_source(lambda request: httpx.Response(401, json={"message": "Bad credentials"}))
        with pytest.raises(BadCredentials):
            fetch(source)

    def test_unauthorized_without_message(self, make_source):
        source = make_source(lambda request: httpx.Response(401, text="nope"))
        with pytest.raises(ClientError):
            fetch(source)

    def test_server_error(self, make_source):
        source = make_source(lambda request: httpx.Response(503))
        with pytest.raises(ServerError) as info:
            fetch(source)
        assert info.value.status_code == 503

    @pytest.mark.parametrize(
        "body",
        [b"not json", b'{"message": "unexpected"}', b'[{"id": 1}]', b'[{"key": ""}]'],
    )
    def test_invalid_body(self, make_source, body):
        source = make_source(lambda request: httpx.Response(200, content=body))
        with pytest.raises(ServerError, match="body is invalid"):
            fetch(source)

    def test_connection_refused(self, make_source):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SourceConnectionError):
            fetch(make_source(handler))

    def test_read_timeout(self, make_source):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(SourceConnectionError):
            fetch(make_source(handler))


class TestGitHubRateLimit:
    """Test logging of the rate limit headers."""

    def test_logs_remaining_budget(self, make_source, caplog):
        source = make_source(
            lambda request: httpx.Response(
                200,
                json=[key_item(KEY_JSNOW)],
                headers={"X-RateLimit-Remaining": "59", "X-RateLimit-Reset": "1712873000"},
            )
        )

        with caplog.at_level(logging.DEBUG, logger="hanko"):
            fetch(source)

        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.DEBUG]
        assert "GitHub rate limit: 59 requests remaining, reset at 2024-04-11 22:03:20+00:00" in messages

    def test_malformed_headers_are_ignored(self, make_source, caplog):
        source = make_source(
            lambda request: httpx.Response(
                200,
                json=[key_item(KEY_JSNOW)],
                headers={"X-RateLimit-Remaining": "abc", "X-RateLimit-Reset": "soon"},
            )
        )

        with caplog.at_level(logging.DEBUG, logger="hanko"):
            keys = fetch(source)

        assert keys == [PublicKey(blob=KEY_JSNOW)]
        assert not any("GitHub rate limit:" in r.getMessage() for r in caplog.records)
        assert any("Ignoring rate limit headers" in r.getMessage() for r in caplog.records)

    def test_missing_headers_log_nothing(self, make_source, caplog):
        source = make_source(lambda request: httpx.Response(200, json=[key_item(KEY_JSNOW)]))

        with caplog.at_level(logging.DEBUG, logger="hanko"):
            keys = fetch(source)

        assert keys == [PublicKey(blob=KEY_JSNOW)]
        assert not any("rate limit" in r.getMessage() for r in caplog.records)
