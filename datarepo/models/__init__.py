"""
Declarative base and mixins for entity models.

Import Base from here so every entity registers with the same metadata.
"""

from datarepo.models.base import Base, ModelMixin, TimestampMixin, UUIDMixin

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "ModelMixin",
]
