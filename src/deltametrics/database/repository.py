"""Generic repository: List, Get, Create, Update, Delete for any registered entity.

One class serves every table. The entity descriptor supplies the model,
column list and primary key; the store and cache are injected.

Records cross this boundary as plain dicts keyed by column name so they can be
cached and serialized without holding ORM state.
"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..cache.result_cache import ResultCache
from ..errors import (
    DeleteFailedError,
    InsertFailedError,
    InvalidPaginationError,
    NotFoundError,
    UpdateFailedError,
)
from ..utils.logging import get_logger
from .descriptor import EntityDescriptor, EntityRegistry
from .engine import session_context
from .merge import merge_fields

logger = get_logger(__name__)

Record = Dict[str, Any]

# Store rejected the record itself, as opposed to the store being unavailable.
CLIENT_ERRORS = (IntegrityError, DataError)


class Repository:
    def __init__(
        self,
        descriptor: EntityDescriptor,
        session_factory: sessionmaker,
        cache: Optional[ResultCache] = None,
        invalidate_on_write: bool = False,
        skip_zero_values: bool = False,
    ):
        self.descriptor = descriptor
        self.entity = descriptor.name
        self._model = descriptor.model
        self._table = descriptor.model.__table__
        self._pk = self._table.c[descriptor.primary_key.name]
        self._session_factory = session_factory
        self._cache = cache
        self._invalidate_on_write = invalidate_on_write
        self._skip_zero_values = skip_zero_values

    def _to_record(self, row) -> Record:
        return {name: getattr(row, name) for name in self.descriptor.field_names}

    def _load_row(self, session, record_id: int):
        try:
            row = session.get(self._model, record_id)
        except SQLAlchemyError as e:
            raise NotFoundError(self.entity, f"{self.entity} {record_id}: lookup failed", cause=e) from e
        if row is None:
            raise NotFoundError(self.entity, f"{self.entity} {record_id} not found")
        return row

    def _after_write(self) -> None:
        if self._cache is not None and self._invalidate_on_write:
            self._cache.invalidate_entity(self.entity)

    def list(self, page: int = 0, page_size: int = 20, order: str = "") -> Tuple[List[Record], int]:
        """
        Get a page of records plus the unpaginated row count.

        Args:
            page: Page requested; <= 0 means no offset, >= 1 means offset (page-1)*page_size
            page_size: Records per page
            order: Order expression ("col [asc|desc], ..."); empty for store order

        Returns:
            (records, total_rows)

        Raises:
            InvalidPaginationError: page_size < 1
            InvalidOrderError: order names an unknown column or direction
            NotFoundError: the store query failed
        """
        if page_size < 1:
            raise InvalidPaginationError(f"pageSize must be >= 1, got {page_size}")
        terms = self.descriptor.parse_order(order)
        normalized_order = ", ".join(f"{name} {direction}" for name, direction in terms)

        def load() -> Tuple[List[Record], int]:
            return self._list_from_store(page, page_size, terms)

        if self._cache is None:
            records, total = load()
        else:
            key = self._cache.signature(self.entity, page, page_size, normalized_order)
            records, total = self._cache.get_or_load(key, load)
        # Callers get their own copies; the cached page is shared.
        return [dict(r) for r in records], total

    def _list_from_store(self, page: int, page_size: int, terms: List[Tuple[str, str]]) -> Tuple[List[Record], int]:
        stmt = select(self._model)
        for name, direction in terms:
            column = getattr(self._model, name)
            stmt = stmt.order_by(column.desc() if direction == "desc" else column.asc())
        if page > 0:
            stmt = stmt.offset((page - 1) * page_size)
        stmt = stmt.limit(page_size)

        try:
            with session_context(self._session_factory) as session:
                total = session.execute(select(func.count()).select_from(self._model)).scalar_one()
                rows = session.execute(stmt).scalars().all()
                records = [self._to_record(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"List {self.entity} failed: {e}")
            raise NotFoundError(self.entity, f"{self.entity}: list query failed", cause=e) from e
        return records, int(total)

    def get(self, record_id: int) -> Record:
        """
        Raises:
            NotFoundError: no record with that primary key, or the lookup failed
        """
        with session_context(self._session_factory) as session:
            return self._to_record(self._load_row(session, record_id))

    def create(self, record: Record) -> Tuple[Record, int]:
        """
        Insert a record. Store-assigned values (generated id) are reflected in the result.

        Returns:
            (stored record, rows affected as reported by the store)

        Raises:
            InsertFailedError: constraint violation or store error
        """
        values = {k: v for k, v in record.items() if k in self.descriptor.field_names}
        try:
            with session_context(self._session_factory) as session:
                inserted = session.execute(self._table.insert().values(**values))
                rows_affected = inserted.rowcount
                record_id = inserted.inserted_primary_key[0]
                session.commit()
                result = self._to_record(self._load_row(session, record_id))
        except SQLAlchemyError as e:
            logger.warning(f"Insert into {self.entity} failed: {e}")
            raise InsertFailedError(
                self.entity,
                f"{self.entity}: insert failed",
                client_error=isinstance(e, CLIENT_ERRORS),
                cause=e,
            ) from e
        self._after_write()
        return result, rows_affected

    def update(self, record_id: int, patch: Record) -> Tuple[Record, int]:
        """
        Merge the set fields of ``patch`` onto the stored record and persist it.

        Returns:
            (merged record, rows affected as reported by the store)

        Raises:
            NotFoundError: no record with that primary key
            UpdateFailedError: merge or persist failed
        """
        try:
            with session_context(self._session_factory) as session:
                row = self._load_row(session, record_id)
                try:
                    merged = merge_fields(self.descriptor, self._to_record(row), patch, self._skip_zero_values)
                except (TypeError, ValueError) as e:
                    raise UpdateFailedError(self.entity, f"{self.entity} {record_id}: merge failed", cause=e) from e

                values = {f.name: merged[f.name] for f in self.descriptor.fields if not f.primary_key}
                updated = session.execute(self._table.update().where(self._pk == record_id).values(**values))
                rows_affected = updated.rowcount
                session.commit()
                session.refresh(row)
                result = self._to_record(row)
        except SQLAlchemyError as e:
            logger.warning(f"Update of {self.entity} {record_id} failed: {e}")
            raise UpdateFailedError(
                self.entity,
                f"{self.entity} {record_id}: update failed",
                client_error=isinstance(e, CLIENT_ERRORS),
                cause=e,
            ) from e
        self._after_write()
        return result, rows_affected

    def delete(self, record_id: int) -> int:
        """
        Raises:
            NotFoundError: no record with that primary key
            DeleteFailedError: the delete itself failed
        """
        try:
            with session_context(self._session_factory) as session:
                self._load_row(session, record_id)
                result = session.execute(self._table.delete().where(self._pk == record_id))
                session.commit()
                rows_affected = result.rowcount
        except SQLAlchemyError as e:
            logger.warning(f"Delete of {self.entity} {record_id} failed: {e}")
            raise DeleteFailedError(
                self.entity,
                f"{self.entity} {record_id}: delete failed",
                client_error=isinstance(e, CLIENT_ERRORS),
                cause=e,
            ) from e
        self._after_write()
        return rows_affected


def build_repositories(
    registry: EntityRegistry,
    session_factory: sessionmaker,
    cache: Optional[ResultCache] = None,
    invalidate_on_write: bool = False,
    skip_zero_values: bool = False,
) -> Dict[str, Repository]:
    """Create one repository per registered entity, sharing the store and cache."""
    return {
        descriptor.name: Repository(
            descriptor,
            session_factory,
            cache=cache,
            invalidate_on_write=invalidate_on_write,
            skip_zero_values=skip_zero_values,
        )
        for descriptor in registry
    }
