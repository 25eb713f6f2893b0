"""
Base models and mixins for SQLAlchemy ORM.

Provides a declarative base and reusable mixins for entity classes
managed through the generic repositories. Entities are not required to
use them: any mapped class works with Repository and AsyncRepository.
"""

from typing import Any
import uuid

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.orm import declarative_base


# SQLAlchemy declarative base for entity models
Base = declarative_base()


class TimestampMixin:
    """
    Mixin that adds created_at and updated_at timestamp columns.

    Both are filled by the database; updated_at is bumped on every UPDATE.

    Attributes:
        created_at: Timestamp when record was created
        updated_at: Timestamp when record was last updated
    """

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        doc="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        doc="Timestamp when record was last updated"
    )


class UUIDMixin:
    """
    Mixin that adds a client-generated UUID primary key column.

    UUIDs are stored as strings for portability across SQLite and PostgreSQL.

    Attributes:
        id: UUID primary key as TEXT
    """

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        doc="UUID primary key"
    )


class ModelMixin:
    """
    Mixin providing common model utilities.

    Adds helpers for serialization and representation.
    """

    def to_dict(self) -> dict[str, Any]:
        """
        Convert model instance to dictionary.

        Note:
            Only includes columns, not relationships.
        """
        return {
            column.key: getattr(self, column.key)
            for column in self.__table__.columns
        }

    def __repr__(self) -> str:
        """
        String representation of model instance.

        Returns:
            String like "ModelName(id=1, name='Ada')"
        """
        attrs = ", ".join(
            f"{key}={value!r}"
            for key, value in self.to_dict().items()
            if key in ["id", "name", "title", "username"]  # Key identifying fields
        )
        return f"{self.__class__.__name__}({attrs})"
