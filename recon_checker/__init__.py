"""Horizon export vs. Davanu serviss act reconciliation."""

__version__ = "0.1.0"
