"""Key source: GitHub.

Uses the official REST API:
- `GET /users/{username}/ssh_signing_keys`
  (https://docs.github.com/en/rest/users/ssh-signing-keys)

GitHub does not expose an expiry for signing keys, so keys never carry a
validity window.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from pydantic.config import ConfigDict

from hanko.adapters.http_client import (
    build_async_client,
    classify_error,
    iter_pages,
    parse_header_value,
)
from hanko.core.config import AppSettings
from hanko.core.domain.models import PublicKey, SourceConfig
from hanko.core.errors import (
    BadCredentials,
    MalformedHeader,
    RatelimitExceeded,
    UserNotFound,
)

logger = logging.getLogger(__name__)


class GitHubKey(BaseModel):
    """A signing key as returned by the GitHub API (only `key` is used)."""

    model_config = ConfigDict(extra="ignore")

    key: str = Field(..., min_length=1)


_KEYS = TypeAdapter(list[GitHubKey])


def error_message(response: httpx.Response) -> str:
    """Lower-cased `message` of a GitHub error body, or an empty string."""

    try:
        data = response.json()
    except ValueError:
        return ""
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"].lower()
    return ""


def raise_for_github_status(response: httpx.Response) -> None:
    """Raise the source error matching a failed GitHub response."""

    if response.is_success:
        return

    status = response.status_code
    if status == 404:
        raise UserNotFound()
    if status == 403 and "rate limit exceeded" in error_message(response):
        raise RatelimitExceeded()
    if status == 401 and "bad credentials" in error_message(response):
        raise BadCredentials()
    raise classify_error(response)


def _parse_reset(value: str) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def log_rate_limit(headers: httpx.Headers) -> None:
    """Log the remaining rate limit budget, ignoring absent or broken headers."""

    try:
        remaining = parse_header_value(headers, "x-ratelimit-remaining", int)
        reset = parse_header_value(headers, "x-ratelimit-reset", _parse_reset)
    except MalformedHeader as exc:
        logger.debug("Ignoring rate limit headers: %s", exc)
        return
    if remaining is not None:
        logger.debug("GitHub rate limit: %s requests remaining, reset at %s", remaining, reset)


class GitHubSource:
    """Gets a user's SSH signing keys from GitHub (or GitHub Enterprise)."""

    api_version = "2022-11-28"
    accept = "application/vnd.github+json"

    def __init__(
        self,
        config: SourceConfig,
        settings: AppSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._settings = settings or AppSettings()
        self._transport = transport

    @property
    def name(self) -> str:
        return self._config.name

    def __repr__(self) -> str:
        return f"GitHubSource(name={self.name!r}, url={self._config.base_url!r})"

    async def get_keys_by_username(self, username: str) -> list[PublicKey]:
        url = f"{self._config.base_url}/users/{quote(username, safe='')}/ssh_signing_keys"
        headers = {
            "Accept": self.accept,
            "X-GitHub-Api-Version": self.api_version,
        }

        keys: list[PublicKey] = []
        async with build_async_client(
            self._settings, extra_headers=headers, transport=self._transport
        ) as client:
            async for response in iter_pages(
                client,
                url,
                raise_for_status=raise_for_github_status,
                total_timeout=self._settings.http_timeout_seconds,
            ):
                log_rate_limit(response.headers)
                try:
                    page = _KEYS.validate_json(response.content)
                except ValidationError as exc:
                    raise classify_error(exc) from exc
                keys.extend(PublicKey(blob=item.key) for item in page)

        return keys
