"""
Generic repository over a SQLAlchemy session.

Provides CRUD and count operations for any mapped entity class, in a
blocking form (Repository over Session) and a non-blocking form
(AsyncRepository over AsyncSession). Both forms build identical
statements and differ only in how they reach the database.

The session is injected and never opened, closed or disposed here.
Every mutating operation commits immediately.
"""

import logging
from typing import Any, Generic, Iterable, List, Optional, Type, TypeVar

from sqlalchemy import Select, func, inspect, select
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, make_transient_to_detached
from sqlalchemy.orm.attributes import flag_modified

from datarepo.repositories.query import AsyncQuery, Query

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _RepositoryBase(Generic[T]):
    """
    Statement building and change marking shared by both repository forms.

    Attributes:
        session: Session the repository works against (not owned)
        model: Mapped entity class the repository is bound to
    """

    def __init__(self, session: Any, model: Type[T]):
        self.session = session
        self.model = model

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    def _select(self, criteria: tuple = (), filters: Optional[dict] = None) -> Select:
        stmt = select(self.model)
        if criteria:
            stmt = stmt.where(*criteria)
        if filters:
            stmt = stmt.filter_by(**filters)
        return stmt

    def _count_statement(self) -> Select:
        return select(func.count()).select_from(self.model)

    def _mark_modified(self, entity: T) -> None:
        """
        Flag every loaded, non-key column of entity as modified.

        The resulting UPDATE writes the whole row as held in memory,
        whether or not a given value actually changed. Unchanged columns
        with an onupdate default are left out so the default still fires.
        """
        state = inspect(entity)
        mapper = state.mapper
        key_names = {
            mapper.get_property_by_column(column).key
            for column in mapper.primary_key
        }
        for attr in mapper.column_attrs:
            if attr.key in key_names or attr.key not in state.dict:
                continue
            column = attr.columns[0]
            has_onupdate = column.onupdate is not None or column.server_onupdate is not None
            if has_onupdate and not state.attrs[attr.key].history.has_changes():
                continue
            flag_modified(entity, attr.key)

    def _attach_for_update(self, session: Session, entity: T) -> bool:
        """
        Attach an untracked entity so the next flush issues an UPDATE for it.

        A transient instance carrying a key is turned into a detached one
        first. No row is ever inserted: if none matches the key, the flush
        raises StaleDataError.

        Returns:
            False if the session already tracks another instance with the
            same key; the caller merges the state onto that instance.

        Raises:
            InvalidRequestError: If entity has no primary key value
        """
        state = inspect(entity)
        key = state.key
        if key is None:
            values = state.mapper.primary_key_from_instance(entity)
            if any(value is None for value in values):
                raise InvalidRequestError(
                    f"Cannot update {self.entity_name} without a primary key value"
                )
            key = state.mapper.identity_key_from_primary_key(values)

        if key in session.identity_map:
            return False

        if state.transient:
            make_transient_to_detached(entity)
        session.add(entity)
        return True

    def _log_commit_failure(self, operation: str) -> None:
        logger.warning(
            "Commit failed, rolling back",
            extra={"entity": self.entity_name, "operation": operation},
            exc_info=True,
        )

    def _log_operation(self, operation: str, count: int = 1) -> None:
        logger.debug(
            f"{operation} {self.entity_name}",
            extra={"entity": self.entity_name, "operation": operation, "count": count},
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.entity_name})"


class Repository(_RepositoryBase[T]):
    """
    Blocking repository for a single entity type.

    Example:
        >>> with session_factory() as session:
        ...     people = Repository(session, Person)
        ...     ada = people.add(Person(name="Ada"))
        ...     people.get(ada.id)
        Person(id=1, name='Ada')
    """

    def __init__(self, session: Session, model: Type[T]):
        """
        Initialize repository with an open session.

        Args:
            session: Open SQLAlchemy session, owned by the caller
            model: Mapped entity class
        """
        super().__init__(session, model)

    def get(self, id: Any) -> Optional[T]:
        """
        Return the entity with the given primary key, or None.

        The session identity map is consulted before the database.
        """
        return self.session.get(self.model, id)

    def get_all(self) -> Query[T]:
        """Return a lazy query over every row of the entity."""
        return Query(self.session, self._select())

    def find(self, *criteria: Any, **filters: Any) -> Optional[T]:
        """
        Return the single entity matching the filters, or None.

        Args:
            *criteria: SQLAlchemy column expressions, e.g. Person.name == "Ada"
            **filters: Keyword equality filters, e.g. name="Ada"

        Raises:
            MultipleResultsFound: If more than one row matches
        """
        return self.session.scalars(self._select(criteria, filters)).one_or_none()

    def find_all(self, *criteria: Any, **filters: Any) -> Query[T]:
        """Return a lazy query of entities matching the filters."""
        return Query(self.session, self._select(criteria, filters))

    def add(self, entity: T) -> T:
        """
        Insert entity and commit.

        Returns:
            The same instance, refreshed so generated keys are populated
        """
        self.session.add(entity)
        self._commit("add")
        self.session.refresh(entity)
        self._log_operation("add")
        return entity

    def add_all(self, entities: Iterable[T]) -> List[T]:
        """
        Insert every entity and commit once for the whole batch.

        Either the whole batch is committed or, on error, none of it is.
        """
        items = list(entities)
        self.session.add_all(items)
        self._commit("add_all")
        for item in items:
            self.session.refresh(item)
        self._log_operation("add_all", len(items))
        return items

    def update(self, entity: Optional[T]) -> Optional[T]:
        """
        Overwrite the stored row with the in-memory state of entity.

        Args:
            entity: Entity holding the desired state. A detached instance,
                or a transient one carrying a key, is attached as is.

        Returns:
            The tracked, updated instance, or None if entity is None

        Raises:
            StaleDataError: If no stored row has the entity's key
            InvalidRequestError: If the entity has no key
        """
        if entity is None:
            return None

        if entity in self.session or self._attach_for_update(self.session, entity):
            tracked = entity
        else:
            tracked = self.session.merge(entity)
        self._mark_modified(tracked)
        self._commit("update")
        self.session.refresh(tracked)
        self._log_operation("update")
        return tracked

    def delete(self, entity: T) -> None:
        """Delete an entity attached to the session and commit."""
        self.session.delete(entity)
        self._commit("delete")
        self._log_operation("delete")

    def count(self) -> int:
        return self.session.scalar(self._count_statement())

    def _commit(self, operation: str) -> None:
        try:
            self.session.commit()
        except Exception:
            self._log_commit_failure(operation)
            self.session.rollback()
            raise


class AsyncRepository(_RepositoryBase[T]):
    """
    Non-blocking repository for a single entity type.

    Same operations and semantics as Repository; each one that touches
    the database is a coroutine. get_all and find_all only build a query
    and are plain methods.

    Example:
        >>> async with session_factory() as session:
        ...     people = AsyncRepository(session, Person)
        ...     ada = await people.add(Person(name="Ada"))
        ...     adas = await people.find_all(name="Ada").all()
    """

    def __init__(self, session: AsyncSession, model: Type[T]):
        """
        Initialize repository with an open async session.

        Args:
            session: Open SQLAlchemy async session, owned by the caller
            model: Mapped entity class
        """
        super().__init__(session, model)

    async def get(self, id: Any) -> Optional[T]:
        return await self.session.get(self.model, id)

    def get_all(self) -> AsyncQuery[T]:
        return AsyncQuery(self.session, self._select())

    async def find(self, *criteria: Any, **filters: Any) -> Optional[T]:
        """
        Return the single entity matching the filters, or None.

        Raises:
            MultipleResultsFound: If more than one row matches
        """
        result = await self.session.scalars(self._select(criteria, filters))
        return result.one_or_none()

    def find_all(self, *criteria: Any, **filters: Any) -> AsyncQuery[T]:
        return AsyncQuery(self.session, self._select(criteria, filters))

    async def add(self, entity: T) -> T:
        self.session.add(entity)
        await self._commit("add")
        await self.session.refresh(entity)
        self._log_operation("add")
        return entity

    async def add_all(self, entities: Iterable[T]) -> List[T]:
        items = list(entities)
        self.session.add_all(items)
        await self._commit("add_all")
        for item in items:
            await self.session.refresh(item)
        self._log_operation("add_all", len(items))
        return items

    async def update(self, entity: Optional[T]) -> Optional[T]:
        """
        Overwrite the stored row with the in-memory state of entity.

        Returns:
            The tracked, updated instance, or None if entity is None

        Raises:
            StaleDataError: If no stored row has the entity's key
            InvalidRequestError: If the entity has no key
        """
        if entity is None:
            return None

        if entity in self.session or self._attach_for_update(self.session.sync_session, entity):
            tracked = entity
        else:
            tracked = await self.session.merge(entity)
        self._mark_modified(tracked)
        await self._commit("update")
        await self.session.refresh(tracked)
        self._log_operation("update")
        return tracked

    async def delete(self, entity: T) -> None:
        await self.session.delete(entity)
        await self._commit("delete")
        self._log_operation("delete")

    async def count(self) -> int:
        return await self.session.scalar(self._count_statement())

    async def _commit(self, operation: str) -> None:
        try:
            await self.session.commit()
        except Exception:
            self._log_commit_failure(operation)
            await self.session.rollback()
            raise
