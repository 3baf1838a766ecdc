"""Signer resolution orchestration.

This module turns `(signers, sources)` into the entries of the allowed signers
file. Every source of every signer is queried concurrently inside one
`asyncio.TaskGroup`:

- keys found -> one entry per key with the signer's principals;
- `UserNotFound` -> warning, no entries, the run continues;
- any other source error -> the group is cancelled and the run fails.

Side effects (printing warnings, progress) are delegated to `ResolutionHooks`,
which keeps the pipeline reusable from the CLI and from tests.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Mapping

from hanko.adapters.allowed_signers_writer import write_allowed_signers
from hanko.core.configuration import Configuration
from hanko.core.domain.models import AllowedSignersFile, Entry
from hanko.core.errors import ResolutionError, SourceError, UserNotFound
from hanko.core.interfaces.source import KeySource, Signer

logger = logging.getLogger(__name__)


@dataclass
class ResolutionHooks:
    """Optional callbacks for UI layers (warnings, progress)."""

    warning: Callable[[str], None] | None = None
    source_resolved: Callable[[str, str, int], None] | None = None


@dataclass
class ResolutionResult:
    """Output of a resolution run."""

    entries: set[Entry] = field(default_factory=set)
    warnings: list[str] = field(default_factory=list)


def build_signers(
    configuration: Configuration,
    sources: Mapping[str, KeySource],
) -> list[Signer]:
    """Create the run's signers, sharing the already built sources.

    The configuration is validated, so every referenced source exists.
    """

    return [
        Signer(
            name=config.name,
            principals=tuple(config.principals),
            sources=tuple(sources[name] for name in config.source_names),
        )
        for config in configuration.signers
    ]


def _first_error(group: BaseExceptionGroup) -> BaseException:
    first = group.exceptions[0]
    if isinstance(first, BaseExceptionGroup):
        return _first_error(first)
    return first


async def resolve_entries(
    signers: Iterable[Signer],
    *,
    hooks: ResolutionHooks | None = None,
) -> ResolutionResult:
    """Resolve the entries of all signers concurrently.

    Raises `ResolutionError` (naming the signer and the source) on the first
    hard failure; requests still in flight are cancelled.
    """

    hooks = hooks or ResolutionHooks()
    result = ResolutionResult()

    def warn(message: str) -> None:
        logger.warning(message)
        result.warnings.append(message)
        if hooks.warning:
            hooks.warning(message)

    async def resolve_source(signer: Signer, source: KeySource) -> None:
        logger.debug("Getting keys of %s from %s", signer.name, source.name)
        try:
            keys = await source.get_keys_by_username(signer.name)
        except UserNotFound:
            warn(f"User {signer.name} not found on source {source.name}, skipping.")
            return
        except SourceError as exc:
            raise ResolutionError(signer.name, source.name, exc) from exc

        if not keys:
            warn(f"No signing keys found for {signer.name} on source {source.name}.")
        for key in keys:
            result.entries.add(Entry(principals=signer.principals, key=key))
        if hooks.source_resolved:
            hooks.source_resolved(signer.name, source.name, len(keys))

    try:
        async with asyncio.TaskGroup() as group:
            for signer in signers:
                for source in signer.sources:
                    group.create_task(resolve_source(signer, source))
    except BaseExceptionGroup as exc_group:
        error = _first_error(exc_group)
        raise error from error.__cause__

    logger.debug("Resolved %d entries", len(result.entries))
    return result


async def update_allowed_signers(
    path: Path,
    signers: Iterable[Signer],
    *,
    hooks: ResolutionHooks | None = None,
) -> ResolutionResult:
    """Resolve all signers and rewrite the allowed signers file at `path`.

    The file is only opened once resolution succeeded: a failed run leaves it
    untouched.
    """

    result = await resolve_entries(signers, hooks=hooks)
    write_allowed_signers(AllowedSignersFile.from_entries(path, result.entries))
    logger.info("Wrote %d entries to %s", len(result.entries), path)
    return result
