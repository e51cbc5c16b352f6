"""Entities API: canonical CRUD surface shared by every entity kind."""

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from ..errors import (
    NOT_FOUND,
    InvalidPaginationError,
    InvalidRecordError,
    RepositoryError,
    RequestError,
    UnknownEntityError,
)
from .models import DeleteResult, ErrorBody, PagedResults

if TYPE_CHECKING:
    from ..database.descriptor import EntityRegistry
    from ..database.repository import Repository

DEFAULT_PAGE = 0
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 1000


def _repository(repositories: Mapping[str, "Repository"], entity: str) -> "Repository":
    repo = repositories.get(entity)
    if repo is None:
        raise UnknownEntityError(f"Unknown entity: {entity}")
    return repo


def _read_int(args: Mapping[str, Any], names: Tuple[str, ...], default: int) -> int:
    for name in names:
        raw = args.get(name)
        if raw is None or raw == "":
            continue
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise InvalidPaginationError(f"'{name}' must be an integer, got {raw!r}") from None
    return default


def parse_pagination(args: Mapping[str, Any]) -> Tuple[int, int, str]:
    """
    Read page, pageSize and order from query parameters.

    ``pagesize`` is accepted as an alias of ``pageSize``.

    Returns:
        (page, page_size, order)

    Raises:
        InvalidPaginationError: non-integer values or page size outside 1..MAX_PAGE_SIZE
    """
    page = _read_int(args, ("page",), DEFAULT_PAGE)
    page_size = _read_int(args, ("pageSize", "pagesize"), DEFAULT_PAGE_SIZE)
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise InvalidPaginationError(f"pageSize must be between 1 and {MAX_PAGE_SIZE}, got {page_size}")
    order = (args.get("order") or "").strip()
    return page, page_size, order


def list_records(
    repositories: Mapping[str, "Repository"],
    entity: str,
    page: int = DEFAULT_PAGE,
    page_size: int = DEFAULT_PAGE_SIZE,
    order: str = "",
) -> PagedResults:
    repo = _repository(repositories, entity)
    records, total = repo.list(page, page_size, order)
    return PagedResults(
        page=page,
        page_size=page_size,
        order=order,
        data=[repo.descriptor.to_json(r) for r in records],
        total_records=total,
    )


def get_record(repositories: Mapping[str, "Repository"], entity: str, record_id: int) -> Dict[str, Any]:
    repo = _repository(repositories, entity)
    return repo.descriptor.to_json(repo.get(record_id))


def create_record(repositories: Mapping[str, "Repository"], entity: str, body: Any) -> Dict[str, Any]:
    repo = _repository(repositories, entity)
    values = repo.descriptor.parse_payload(body)
    record, _rows = repo.create(values)
    return repo.descriptor.to_json(record)


def update_record(
    repositories: Mapping[str, "Repository"],
    entity: str,
    record_id: int,
    body: Any,
) -> Dict[str, Any]:
    repo = _repository(repositories, entity)
    patch = repo.descriptor.parse_payload(body)
    record, _rows = repo.update(record_id, patch)
    return repo.descriptor.to_json(record)


def delete_record(repositories: Mapping[str, "Repository"], entity: str, record_id: int) -> DeleteResult:
    repo = _repository(repositories, entity)
    return DeleteResult(rows_affected=repo.delete(record_id))


def describe_entities(registry: "EntityRegistry") -> List[Dict[str, Any]]:
    return [descriptor.describe() for descriptor in registry]


def require_body(body: Optional[Any]) -> Any:
    if body is None:
        raise InvalidRecordError("Request body must be valid JSON")
    return body


def error_response(error: Exception) -> Tuple[ErrorBody, int]:
    """
    Map a layer error to a stable body and HTTP status.

    NotFound and unknown entities are 404. Request errors and writes the
    store rejected as invalid are 400. Every other write failure is 500.
    """
    if isinstance(error, UnknownEntityError):
        return ErrorBody(error=error.kind, message=error.message), 404
    if isinstance(error, RequestError):
        return ErrorBody(error=error.kind, message=error.message), 400
    if isinstance(error, RepositoryError):
        if error.kind == NOT_FOUND:
            status = 404
        elif error.client_error:
            status = 400
        else:
            status = 500
        return ErrorBody(error=error.kind, message=error.message), status
    return ErrorBody(error="InternalError", message="Internal server error"), 500
