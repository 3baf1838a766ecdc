"""hanko CLI.

Commands:
- `hanko update`: resolve every signer and rewrite the allowed signers file.
- `hanko show`: print the effective configuration.

Exit codes: 0 on success (skipped users included), 1 when resolution or the
write fails, 2 for configuration errors.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from hanko import __version__
from hanko.adapters.sources import build_sources
from hanko.cli.ui_components import (
    build_signers_table,
    build_sources_table,
    print_error,
    print_summary,
)
from hanko.core.config import AppSettings
from hanko.core.configuration import Configuration
from hanko.core.errors import ConfigurationError, ResolutionError, UnclassifiedOutcome
from hanko.core.services.resolver import build_signers, update_allowed_signers

app = typer.Typer(
    no_args_is_help=True,
    help="Keep an OpenSSH allowed signers file in sync with GitHub and GitLab.",
)

_console = Console()
_err_console = Console(stderr=True, soft_wrap=True)

_THIRD_PARTY_LOGGERS = ("httpx", "httpcore")


@dataclass
class CliState:
    settings: AppSettings
    config_path: Path
    allowed_signers: Path | None


def setup_logging(verbosity: int) -> None:
    """Route `hanko` logs to stderr through Rich.

    0 -> WARNING, 1 -> INFO, 2+ -> DEBUG; httpx/httpcore only from 3.
    """

    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    handler = RichHandler(console=_err_console, show_time=False, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("hanko")
    logger.handlers = [handler]
    logger.setLevel(level)
    logger.propagate = False

    for name in _THIRD_PARTY_LOGGERS:
        third_party = logging.getLogger(name)
        third_party.handlers = [handler]
        third_party.setLevel(logging.DEBUG if verbosity >= 3 else logging.WARNING)
        third_party.propagate = False


def _version_callback(value: bool) -> None:
    if value:
        _console.print(f"hanko {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="HANKO_CONFIG",
        help="Configuration file (default: ~/.config/hanko/config.toml).",
    ),
    file: Path | None = typer.Option(
        None,
        "--file",
        envvar="HANKO_ALLOWED_SIGNERS",
        help="Allowed signers file (default: Git's gpg.ssh.allowedSignersFile).",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase log verbosity (repeatable).",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    setup_logging(verbose)
    settings = AppSettings()
    ctx.obj = CliState(
        settings=settings,
        config_path=(config or settings.config).expanduser(),
        allowed_signers=file.expanduser() if file else settings.resolve_allowed_signers(),
    )


def _load_configuration(state: CliState) -> Configuration:
    try:
        return Configuration.load_or_default(state.config_path)
    except (ConfigurationError, OSError) as exc:
        print_error(_err_console, f"Failed to load {state.config_path}: {exc}")
        raise typer.Exit(code=2) from exc


@app.command()
def update(ctx: typer.Context) -> None:
    """Fetch signing keys and rewrite the allowed signers file."""

    state: CliState = ctx.obj
    configuration = _load_configuration(state)

    path = state.allowed_signers
    if path is None:
        print_error(
            _err_console,
            "No allowed signers file: pass --file or set gpg.ssh.allowedSignersFile in Git.",
        )
        raise typer.Exit(code=2)

    sources = build_sources(configuration.source_map(), state.settings)
    signers = build_signers(configuration, sources)

    start = time.perf_counter()
    try:
        result = asyncio.run(update_allowed_signers(path, signers))
    except ResolutionError as exc:
        print_error(_err_console, str(exc))
        raise typer.Exit(code=1) from exc
    except UnclassifiedOutcome as exc:
        print_error(_err_console, f"Unexpected response from a source: {exc}")
        raise typer.Exit(code=1) from exc
    except OSError as exc:
        print_error(
            _err_console,
            f"Failed to write {path}: {exc}. The file may be partially written.",
        )
        raise typer.Exit(code=1) from exc

    print_summary(_console, path, len(result.entries), time.perf_counter() - start)


@app.command()
def show(ctx: typer.Context) -> None:
    """Print the configured signers and sources."""

    state: CliState = ctx.obj
    configuration = _load_configuration(state)

    _console.print(f"Configuration: {state.config_path}", markup=False)
    target = state.allowed_signers or "(not configured)"
    _console.print(f"Allowed signers file: {target}", markup=False)
    _console.print(build_signers_table(configuration))
    _console.print(build_sources_table(configuration))


def run() -> None:
    app(prog_name="hanko")


if __name__ == "__main__":
    run()
