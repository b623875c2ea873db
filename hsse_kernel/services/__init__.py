"""Kernel services: flush within the caller's transaction, never commit."""
