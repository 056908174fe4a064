"""Tenant cluster operator reconciliation core."""

__version__ = "0.1.0"
