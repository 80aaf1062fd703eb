"""Operator CLI for the relation sync service."""

__version__ = "0.1.0"
