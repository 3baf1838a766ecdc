"""Signers and sources configuration (TOML).

Supported format:

    signers = [
        { name = "jsnow", principals = ["j.snow@wall.com"], sources = ["github"] },
    ]

    [[sources]]
    name = "acme-corp"
    provider = "gitlab"
    url = "https://git.acme.corp"

Notes:
- The default `github` and `gitlab` sources are always available.
- Signers without an explicit `sources` list use `github`.
- The file is only read here; nothing in hanko writes it back.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel, Field, ValidationError
from pydantic.config import ConfigDict

from hanko.core.domain.models import Provider, SourceConfig
from hanko.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def default_signer_sources() -> list[str]:
    return ["github"]


def default_sources() -> list[SourceConfig]:
    return [
        SourceConfig(name="github", provider=Provider.GITHUB, url="https://api.github.com"),
        SourceConfig(name="gitlab", provider=Provider.GITLAB, url="https://gitlab.com"),
    ]


class SignerConfiguration(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1, description="Username on the sources.")
    principals: list[str] = Field(
        default_factory=list,
        description="Principals written for every key of the signer.",
    )
    source_names: list[str] = Field(
        default_factory=default_signer_sources,
        alias="sources",
        description="Names of the sources the signer is looked up on.",
    )


class Configuration(BaseModel):
    """Validated configuration.

    Instances returned by `load`/`load_or_default` are guaranteed to reference
    only existing sources and to give every signer at least one principal.
    """

    model_config = ConfigDict(extra="forbid")

    signers: list[SignerConfiguration] = Field(default_factory=list)
    sources: list[SourceConfig] = Field(default_factory=list)

    @classmethod
    def from_toml(cls, text: str) -> "Configuration":
        """Parse and validate TOML content, adding the default sources."""

        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML: {exc}") from exc

        try:
            config = cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(_describe_validation_error(exc)) from exc

        config.sources.extend(default_sources())
        config.validate_semantics()
        return config

    @classmethod
    def load(cls, path: Path) -> "Configuration":
        """Load the configuration from a TOML file.

        Raises:
        - FileNotFoundError if the file does not exist.
        - ConfigurationError if its content is invalid.
        """

        logger.info("Loading configuration file %s", path)
        return cls.from_toml(path.read_text(encoding="utf-8"))

    @classmethod
    def load_or_default(cls, path: Path) -> "Configuration":
        try:
            return cls.load(path)
        except FileNotFoundError:
            logger.info("Configuration file %s does not exist, using defaults", path)
            return cls(sources=default_sources())

    def validate_semantics(self) -> None:
        self.check_sources_exist(
            name for signer in self.signers for name in signer.source_names
        )
        for signer in self.signers:
            if not signer.principals:
                raise ConfigurationError(f"Signer {signer.name} missing principals")

    def check_sources_exist(self, source_names: Iterable[str]) -> None:
        existing = {source.name for source in self.sources}
        missing = sorted(set(source_names) - existing)
        if missing:
            raise ConfigurationError(f"Missing sources: {', '.join(missing)}")

    def source_map(self) -> dict[str, SourceConfig]:
        # First definition wins; user sources precede the defaults.
        out: dict[str, SourceConfig] = {}
        for source in self.sources:
            out.setdefault(source.name, source)
        return out


def _describe_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        if error.get("type") == "extra_forbidden":
            parts.append(f"unknown field `{location.rsplit('.', 1)[-1]}` ({location})")
        else:
            parts.append(f"{location}: {error.get('msg')}")
    return "Invalid configuration: " + "; ".join(parts)
