"""Run the CLI with `python -m hanko`."""

from __future__ import annotations

from hanko.cli.main import run

if __name__ == "__main__":
    run()
