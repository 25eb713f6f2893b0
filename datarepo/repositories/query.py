"""
Lazy, composable result sets returned by repository list operations.

A query wraps a session and a SQLAlchemy ``Select``. Refining it
(``where``, ``order_by``, ``limit``...) builds a new query and performs
no I/O; only enumeration and the terminal methods hit the database.
"""

from typing import Any, AsyncIterator, Generic, Iterator, List, Optional, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

T = TypeVar("T")


class _QueryBase(Generic[T]):
    """
    Statement-building half shared by Query and AsyncQuery.

    Attributes:
        session: Session the query executes against (not owned)
        statement: Underlying SELECT statement
    """

    def __init__(self, session: Any, statement: Select):
        self._session = session
        self._statement = statement

    @property
    def session(self) -> Any:
        return self._session

    @property
    def statement(self) -> Select:
        """The underlying SELECT, for callers that need SQLAlchemy directly."""
        return self._statement

    def _derive(self, statement: Select):
        return self.__class__(self._session, statement)

    def where(self, *criteria: Any):
        """
        Narrow the query with SQLAlchemy column expressions.

        Example:
            >>> adults = repo.get_all().where(Person.age >= 18)
        """
        return self._derive(self._statement.where(*criteria))

    def filter_by(self, **filters: Any):
        """Narrow the query with keyword equality filters."""
        return self._derive(self._statement.filter_by(**filters))

    def order_by(self, *clauses: Any):
        return self._derive(self._statement.order_by(*clauses))

    def limit(self, limit: Optional[int]):
        return self._derive(self._statement.limit(limit))

    def offset(self, offset: Optional[int]):
        return self._derive(self._statement.offset(offset))

    def _first_statement(self) -> Select:
        # A limit the caller already set, including limit(0), is kept.
        if self._statement._limit_clause is not None:
            return self._statement
        return self._statement.limit(1)

    def _count_statement(self) -> Select:
        # Ordering is irrelevant to a row count and some backends reject it
        # inside a subquery.
        inner = self._statement.order_by(None).subquery()
        return select(func.count()).select_from(inner)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._statement})"


class Query(_QueryBase[T]):
    """
    Blocking lazy query over a ``Session``.

    Iterating the query runs it:

        for person in repo.find_all(Person.name.startswith("A")):
            ...
    """

    def __init__(self, session: Session, statement: Select):
        super().__init__(session, statement)

    def __iter__(self) -> Iterator[T]:
        return iter(self._session.scalars(self._statement))

    def all(self) -> List[T]:
        """Run the query and return every row as a list."""
        return list(self._session.scalars(self._statement).all())

    def first(self) -> Optional[T]:
        """Return the first row or None when the query is empty."""
        return self._session.scalars(self._first_statement()).first()

    def one_or_none(self) -> Optional[T]:
        """
        Return the single matching row, or None.

        Raises:
            MultipleResultsFound: If more than one row matches
        """
        return self._session.scalars(self._statement).one_or_none()

    def count(self) -> int:
        """Return the number of rows the query would yield."""
        return self._session.scalar(self._count_statement())


class AsyncQuery(_QueryBase[T]):
    """
    Non-blocking lazy query over an ``AsyncSession``.

    Example:
        >>> async for person in repo.get_all().order_by(Person.id):
        ...     print(person.name)
        >>> people = await repo.find_all(name="Ada").all()
    """

    def __init__(self, session: AsyncSession, statement: Select):
        super().__init__(session, statement)

    async def __aiter__(self) -> AsyncIterator[T]:
        result = await self._session.stream_scalars(self._statement)
        try:
            async for item in result:
                yield item
        finally:
            await result.close()

    async def all(self) -> List[T]:
        result = await self._session.scalars(self._statement)
        return list(result.all())

    async def first(self) -> Optional[T]:
        result = await self._session.scalars(self._first_statement())
        return result.first()

    async def one_or_none(self) -> Optional[T]:
        """
        Return the single matching row, or None.

        Raises:
            MultipleResultsFound: If more than one row matches
        """
        result = await self._session.scalars(self._statement)
        return result.one_or_none()

    async def count(self) -> int:
        return await self._session.scalar(self._count_statement())
