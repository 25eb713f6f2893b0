"""
Repository layer for data access.

Provides generic data access abstractions following the Repository pattern,
isolating database access from business logic.
"""

from datarepo.repositories.base import AsyncRepository, Repository
from datarepo.repositories.query import AsyncQuery, Query

__all__ = [
    "Repository",
    "AsyncRepository",
    "Query",
    "AsyncQuery",
]
