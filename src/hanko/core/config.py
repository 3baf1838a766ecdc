"""Application settings.

Why here:
- Centralizes environment variables (pydantic-settings) without polluting the
  CLI.
- Lets the HTTP adapters read timeouts and the user agent consistently.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from hanko import USER_AGENT

GIT_ALLOWED_SIGNERS_KEY = "gpg.ssh.allowedSignersFile"


def get_user_config_dir() -> Path:
    """Per-user configuration directory (XDG on Unix, APPDATA on Windows)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "hanko"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "hanko"
    return Path.home() / ".config" / "hanko"


def default_config_path() -> Path:
    return get_user_config_dir() / "config.toml"


def git_allowed_signers_path() -> Path | None:
    """Allowed signers file as configured within Git, if any.

    Reads `gpg.ssh.allowedSignersFile` through `git config`, honoring the usual
    `GIT_CONFIG_*` environment variables. Returns None when Git is missing or
    the key is unset.
    """

    git = shutil.which("git")
    if git is None:
        return None
    try:
        proc = subprocess.run(
            [git, "config", "--get", GIT_ALLOWED_SIGNERS_KEY],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except (OSError, subprocess.SubprocessError):
        return None

    value = proc.stdout.strip()
    if proc.returncode != 0 or not value:
        return None
    return Path(value).expanduser()


class AppSettings(BaseSettings):
    """Central application configuration.

    Why pydantic-settings:
    - Typing + validation at the edge (env vars) without leaking into the core.
    - A single configuration contract for the CLI and the adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="HANKO_",
        extra="ignore",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    config: Path = Field(
        default_factory=default_config_path,
        description="Path of the TOML configuration (signers and sources).",
    )
    allowed_signers: Path | None = Field(
        default=None,
        description="Path of the allowed signers file. Falls back to Git's configuration.",
    )

    http_connect_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Connect timeout per request (seconds).",
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Total timeout per request (seconds).",
    )
    user_agent: str = Field(
        default=USER_AGENT,
        min_length=1,
        description="User-Agent sent to the provider APIs.",
    )

    def resolve_allowed_signers(self) -> Path | None:
        """Explicit path first, then the one configured within Git."""

        if self.allowed_signers is not None:
            return self.allowed_signers.expanduser()
        return git_allowed_signers_path()
