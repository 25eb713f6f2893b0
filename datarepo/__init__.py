"""
datarepo: generic SQLAlchemy repositories.

Exposes Repository (blocking, over Session) and AsyncRepository
(non-blocking, over AsyncSession) for any mapped entity class.
"""

from datarepo.repositories import AsyncQuery, AsyncRepository, Query, Repository

__version__ = "0.1.0"

__all__ = [
    "Repository",
    "AsyncRepository",
    "Query",
    "AsyncQuery",
]
