"""Domain models and entities.

Why:
- Pure, strict data structures (Pydantic v2) for keys and file entries.
- The domain knows nothing about HTTP, the CLI or the filesystem.
"""
