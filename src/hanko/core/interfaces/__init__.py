"""Core interfaces/abstractions.

Why:
- Defines the contracts (Protocol) implemented by concrete adapters.
- Inverts dependencies: the orchestrator depends on `KeySource`, not on GitHub.
"""
