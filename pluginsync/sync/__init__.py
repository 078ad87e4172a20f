"""Reconciliation of an extracted registration model against the registry."""
