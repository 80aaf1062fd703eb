"""
Repository layer for the relation sync service.

All SQL lives here and ONLY here. No database access outside this module.
"""

from backend.repos.document_store import PostgresEntityStore, list_couples

__all__ = [
    "PostgresEntityStore",
    "list_couples",
]
