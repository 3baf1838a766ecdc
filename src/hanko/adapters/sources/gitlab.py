"""Key source: GitLab.

Uses the REST API (v4):
- `GET /api/v4/users/{username}/keys`
  (https://docs.gitlab.com/ee/api/user_keys.html)

GitLab returns every SSH key of a user; only keys usable for signing are
kept. `expires_at` becomes the entry's `valid-before`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from pydantic.config import ConfigDict

from hanko.adapters.http_client import build_async_client, classify_error, iter_pages
from hanko.core.config import AppSettings
from hanko.core.domain.models import PublicKey, SourceConfig
from hanko.core.errors import BadCredentials, UserNotFound

logger = logging.getLogger(__name__)


class KeyUsage(str, Enum):
    AUTH = "auth"
    SIGNING = "signing"
    AUTH_AND_SIGNING = "auth_and_signing"

    @property
    def is_signing(self) -> bool:
        return self in (KeyUsage.SIGNING, KeyUsage.AUTH_AND_SIGNING)


class GitLabKey(BaseModel):
    """An SSH key as returned by the GitLab API."""

    model_config = ConfigDict(extra="ignore")

    key: str = Field(..., min_length=1)
    usage_type: str
    expires_at: datetime | None = None

    def is_signing(self) -> bool:
        try:
            return KeyUsage(self.usage_type).is_signing
        except ValueError:
            logger.debug("Unknown key usage type %r, skipping key", self.usage_type)
            return False

    def to_public_key(self) -> PublicKey:
        expires_at = self.expires_at
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return PublicKey(blob=self.key, valid_before=expires_at)


_KEYS = TypeAdapter(list[GitLabKey])


def raise_for_gitlab_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    if response.status_code == 404:
        raise UserNotFound()
    if response.status_code == 401:
        raise BadCredentials()
    raise classify_error(response)


class GitLabSource:
    """Gets a user's SSH signing keys from gitlab.com or a self-managed instance."""

    api_version = "v4"
    accept = "application/json"

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
        return f"GitLabSource(name={self.name!r}, url={self._config.base_url!r})"

    async def get_keys_by_username(self, username: str) -> list[PublicKey]:
        url = (
            f"{self._config.base_url}/api/{self.api_version}"
            f"/users/{quote(username, safe='')}/keys"
        )

        keys: list[PublicKey] = []
        async with build_async_client(
            self._settings,
            extra_headers={"Accept": self.accept},
            transport=self._transport,
        ) as client:
            async for response in iter_pages(
                client,
                url,
                raise_for_status=raise_for_gitlab_status,
                total_timeout=self._settings.http_timeout_seconds,
            ):
                try:
                    page = _KEYS.validate_json(response.content)
                except ValidationError as exc:
                    raise classify_error(exc) from exc
                # Authentication-only keys are never trusted for signing.
                keys.extend(item.to_public_key() for item in page if item.is_signing())

        return keys
