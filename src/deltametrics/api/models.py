"""Response DTOs for the REST facade."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class PagedResults(BaseModel):
    """One page of records plus the unpaginated row count."""
    page: int
    page_size: int
    order: str = ""
    data: List[Dict[str, Any]]
    total_records: int


class DeleteResult(BaseModel):
    rows_affected: int


class ErrorBody(BaseModel):
    error: str
    message: str


class HealthStatus(BaseModel):
    status: str = "ok"
    entities: int
    cache: Optional[Dict[str, Any]] = None
    scheduler: Optional[List[Dict[str, Any]]] = None
