"""Contract of a key source.

Why Protocol:
- Defines a structural contract (duck typing) without rigid inheritance.
- GitHub, GitLab and test doubles are interchangeable: the orchestrator never
  branches on the provider.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence, runtime_checkable

from hanko.core.domain.models import PublicKey


@runtime_checkable
class KeySource(Protocol):
    """Minimal contract for a Git provider.

    Design rules:
    - `get_keys_by_username` is async because it performs HTTP I/O.
    - Failures are raised as `hanko.core.errors.SourceError` subclasses.
    """

    name: str

    async def get_keys_by_username(self, username: str) -> list[PublicKey]:
        """Return the public signing keys registered by `username`."""

        ...


@dataclass(frozen=True)
class Signer:
    """An allowed signer: a username looked up on one or more sources."""

    name: str
    principals: tuple[str, ...]
    sources: Sequence[KeySource] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.principals:
            raise ValueError(f"Signer {self.name} missing principals")
