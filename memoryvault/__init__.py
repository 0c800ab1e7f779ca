"""Memory Vault: offline memory journaling with an on-device assistant."""

__version__ = "0.1.0"
