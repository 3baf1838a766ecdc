"""Adapters: everything that performs I/O (provider APIs, the signers file)."""
