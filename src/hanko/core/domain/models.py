"""Domain models (Pydantic v2).

Why Pydantic in the domain:
- Strict validation at construction time (an entry without principals cannot
  exist) and self-documenting fields (`Field`).
- Frozen models are hashable, so entries deduplicate naturally inside a set.

Note:
- These models describe *what* an allowed signer is, not *how* it is fetched
  or written to disk.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from functools import total_ordering
from pathlib import Path
from typing import Any, Iterable

from pydantic import AwareDatetime, BaseModel, Field, HttpUrl
from pydantic.config import ConfigDict

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


class Provider(str, Enum):
    """Supported Git hosting providers (closed set)."""

    GITHUB = "github"
    GITLAB = "gitlab"


class SourceConfig(BaseModel):
    """A configured Git provider endpoint.

    Built once per run and shared read-only by every resolution task.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(
        ...,
        min_length=1,
        description="Name used by signers to reference the source.",
    )
    provider: Provider = Field(
        ...,
        description="Provider API spoken by the source.",
    )
    url: HttpUrl = Field(
        ...,
        description="Base URL of the provider API (e.g. https://api.github.com).",
    )

    @property
    def base_url(self) -> str:
        return str(self.url).rstrip("/")


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT) + "Z"


def _optional_key(value: datetime | None) -> tuple[bool, datetime]:
    # A missing timestamp sorts before any present one.
    if value is None:
        return (False, datetime.min.replace(tzinfo=timezone.utc))
    return (True, value)


@total_ordering
class PublicKey(BaseModel):
    """An SSH public key with an optional validity window."""

    model_config = ConfigDict(frozen=True)

    blob: str = Field(
        ...,
        min_length=1,
        description="Key material: `algorithm base64 [comment]`.",
    )
    valid_after: AwareDatetime | None = Field(
        default=None,
        description="Instant from which the key is valid.",
    )
    valid_before: AwareDatetime | None = Field(
        default=None,
        description="Instant at which the key stops being valid.",
    )

    def sort_key(self) -> tuple[Any, ...]:
        return (
            self.blob,
            _optional_key(self.valid_after),
            _optional_key(self.valid_before),
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.sort_key() < other.sort_key()


@total_ordering
class Entry(BaseModel):
    """An entry (one line) of the allowed signers file.

    Equality, hashing and ordering are structural over `(principals, key)`.
    Principal order is significant: `("a", "b")` and `("b", "a")` are distinct.
    """

    model_config = ConfigDict(frozen=True)

    principals: tuple[str, ...] = Field(
        ...,
        min_length=1,
        description="Identities (usually emails) allowed to sign with the key.",
    )
    key: PublicKey

    def sort_key(self) -> tuple[Any, ...]:
        return (self.principals, self.key.sort_key())

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Entry):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def to_line(self) -> str:
        """Render the entry in the `allowed_signers(5)` format.

        Timestamps are always converted to UTC and suffixed with `Z`:

            cwoods@universal.exports valid-before=20300101000000Z ssh-ed25519 AAAA...
        """

        parts = [",".join(self.principals)]
        if self.key.valid_after is not None:
            parts.append(f"valid-after={_format_timestamp(self.key.valid_after)}")
        if self.key.valid_before is not None:
            parts.append(f"valid-before={_format_timestamp(self.key.valid_before)}")
        parts.append(self.key.blob)
        return " ".join(parts)

    def __str__(self) -> str:
        return self.to_line()


class AllowedSignersFile(BaseModel):
    """The allowed signers file produced by one run.

    Never read back: it is always rebuilt from the resolved entries and written
    once, replacing whatever the path contained.
    """

    path: Path = Field(
        ...,
        description="Target path of the allowed signers file.",
    )
    entries: frozenset[Entry] = Field(
        default_factory=frozenset,
        description="Deduplicated entries; ordering is applied when writing.",
    )

    @classmethod
    def from_entries(cls, path: Path, entries: Iterable[Entry]) -> "AllowedSignersFile":
        return cls(path=path, entries=frozenset(entries))

    def sorted_entries(self) -> list[Entry]:
        return sorted(self.entries)

    def render(self) -> str:
        """Full file content: one line per sorted entry plus a trailing blank line."""

        lines = [entry.to_line() for entry in self.sorted_entries()]
        return "".join(f"{line}\n" for line in lines) + "\n"
