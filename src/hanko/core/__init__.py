"""Core of hanko: domain, contracts and services.

Why a separate layer:
- The resolution pipeline does not know about the CLI or about httpx.
- Adapters (HTTP sources, file writer) plug in through `core.interfaces`.
"""
