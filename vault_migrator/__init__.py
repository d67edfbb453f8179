"""Vault Migrator: move Key Vault resources between Azure subscriptions."""

__version__ = "0.1.0"
