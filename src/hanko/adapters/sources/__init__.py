"""Key sources (concrete Git providers).

Each module implements `hanko.core.interfaces.source.KeySource`. Providers
form a closed set: `build_source` maps every `Provider` to its adapter.
"""

from __future__ import annotations

from typing import Mapping

import httpx

from hanko.adapters.sources.github import GitHubSource
from hanko.adapters.sources.gitlab import GitLabSource
from hanko.core.config import AppSettings
from hanko.core.domain.models import Provider, SourceConfig
from hanko.core.interfaces.source import KeySource

_ADAPTERS: dict[Provider, type[GitHubSource] | type[GitLabSource]] = {
    Provider.GITHUB: GitHubSource,
    Provider.GITLAB: GitLabSource,
}


def build_source(
    config: SourceConfig,
    settings: AppSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> KeySource:
    adapter = _ADAPTERS[config.provider]
    return adapter(config, settings, transport=transport)


def build_sources(
    configs: Mapping[str, SourceConfig],
    settings: AppSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, KeySource]:
    """Build every configured source once; the map is shared read-only afterwards."""

    settings = settings or AppSettings()
    return {
        name: build_source(config, settings, transport=transport)
        for name, config in configs.items()
    }


__all__ = [
    "GitHubSource",
    "GitLabSource",
    "build_source",
    "build_sources",
]
