"""Shared tile model, logging and small utilities."""
