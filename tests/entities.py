"""
Entity models used across the test suite.

Person has an autoincrement integer key, database-filled timestamps and a
unique email for constraint tests. Tag has a client-generated UUID key.
"""

from sqlalchemy import Column, Integer, String

from datarepo.models import Base, ModelMixin, TimestampMixin, UUIDMixin


class Person(Base, TimestampMixin, ModelMixin):
    __tablename__ = "people"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    age = Column(Integer, nullable=True)


class Tag(Base, UUIDMixin, ModelMixin):
    __tablename__ = "tags"

    label = Column(String(50), nullable=False, unique=True)
