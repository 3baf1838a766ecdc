"""UI components for the CLI (Rich).

Why separate components:
- Keeps command logic apart from presentation details.
- Tables can be reused by several commands.
"""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from hanko.core.configuration import Configuration


def build_signers_table(configuration: Configuration) -> Table:
    table = Table(title="Signers")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Principals", style="white")
    table.add_column("Sources", style="magenta")
    for signer in configuration.signers:
        table.add_row(
            escape(signer.name),
            escape(", ".join(signer.principals)),
            escape(", ".join(signer.source_names)),
        )
    return table


def build_sources_table(configuration: Configuration) -> Table:
    """Only the effective sources are listed (first definition of each name)."""

    table = Table(title="Sources")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Provider", style="white")
    table.add_column("URL", style="magenta")
    for name, source in configuration.source_map().items():
        table.add_row(escape(name), source.provider.value, escape(source.base_url))
    return table


def print_error(console: Console, message: str) -> None:
    console.print(f"[bold red]error:[/bold red] {escape(message)}")


def print_summary(console: Console, path: Path, entries: int, elapsed: float) -> None:
    console.print(
        f"[green]Updated[/green] {escape(str(path))} "
        f"[dim]({entries} entries in {elapsed:.2f}s)[/dim]"
    )
