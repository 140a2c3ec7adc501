"""Shared logging and tracking utilities."""
