"""Entity descriptors: static column metadata for every registered table.

Descriptors are built once from the declarative models at process start and
never change afterwards. They drive request validation, JSON field naming and
order-expression parsing, so the repository and API can stay generic over
entity kind.
"""

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError, create_model
from sqlalchemy import DateTime, Integer, Text

from ..errors import InvalidOrderError, InvalidRecordError, UnknownEntityError
from ..utils.time import to_utc, to_utc_z
from .schema import ALL_MODELS

INTEGER = "integer"
TEXT = "text"
TIMESTAMP = "timestamp"

ORDER_DIRECTIONS = ("asc", "desc")

_PYTHON_TYPES = {
    INTEGER: StrictInt,
    TEXT: StrictStr,
    TIMESTAMP: datetime,
}


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _semantic_type(column) -> str:
    if isinstance(column.type, Integer):
        return INTEGER
    if isinstance(column.type, DateTime):
        return TIMESTAMP
    if isinstance(column.type, Text):
        return TEXT
    raise TypeError(f"Unsupported column type {column.type!r} on {column.table.name}.{column.name}")


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    json_name: str
    type: str
    nullable: bool
    primary_key: bool = False

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "json_name": self.json_name,
            "type": self.type,
            "nullable": self.nullable,
            "primary_key": self.primary_key,
        }


class EntityDescriptor:
    """Column metadata and payload handling for one table."""

    def __init__(self, model: Type, json_casing: str = "snake"):
        if json_casing not in ("snake", "camel"):
            raise ValueError(f"Unknown json casing '{json_casing}' for {model.__name__}")

        table = model.__table__
        fields: List[FieldDescriptor] = []
        for column in table.columns:
            fields.append(
                FieldDescriptor(
                    name=column.name,
                    json_name=_camel_case(column.name) if json_casing == "camel" else column.name,
                    type=_semantic_type(column),
                    nullable=bool(column.nullable) and not column.primary_key,
                    primary_key=bool(column.primary_key),
                )
            )

        primary = [f for f in fields if f.primary_key]
        if len(primary) != 1:
            raise ValueError(f"{table.name} must declare exactly one primary key, found {len(primary)}")

        self.model = model
        self.name = table.name
        self.table_name = table.name
        self.json_casing = json_casing
        self.fields: Tuple[FieldDescriptor, ...] = tuple(fields)
        self.primary_key: FieldDescriptor = primary[0]
        self._by_name = {f.name: f for f in fields}
        self._by_json_name = {f.json_name: f for f in fields}
        self.payload_model = self._build_payload_model()

    def _build_payload_model(self) -> Type[BaseModel]:
        definitions = {
            f.name: (Optional[_PYTHON_TYPES[f.type]], Field(default=None, alias=f.json_name))
            for f in self.fields
        }
        return create_model(
            f"{self.model.__name__}Payload",
            __config__=ConfigDict(populate_by_name=True, extra="forbid"),
            **definitions,
        )

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def field(self, name: str) -> FieldDescriptor:
        """Look up a field by column name or JSON name."""
        found = self._by_name.get(name) or self._by_json_name.get(name)
        if found is None:
            raise KeyError(name)
        return found

    def describe(self) -> Dict[str, Any]:
        return {
            "entity": self.name,
            "table": self.table_name,
            "primary_key": self.primary_key.name,
            "json_casing": self.json_casing,
            "fields": [f.describe() for f in self.fields],
        }

    def parse_payload(self, body: Any) -> Dict[str, Any]:
        """
        Validate a JSON request body and return the provided fields by column name.

        Only keys present in the body are returned, so the result doubles as
        an update patch. Timestamps are normalized to UTC.

        Raises:
            InvalidRecordError: body is not an object, has unknown keys,
                wrong value types, or nulls a non-nullable column
        """
        if not isinstance(body, dict):
            raise InvalidRecordError(f"{self.name}: request body must be a JSON object")
        try:
            parsed = self.payload_model.model_validate(body)
        except ValidationError as e:
            raise InvalidRecordError(f"{self.name}: {e}") from e

        values = parsed.model_dump(exclude_unset=True)
        for name, value in values.items():
            f = self._by_name[name]
            if value is None and not f.nullable and not f.primary_key:
                raise InvalidRecordError(f"{self.name}: field '{f.json_name}' may not be null")
            if isinstance(value, datetime):
                values[name] = to_utc(value)
        return values

    def to_json(self, record: Dict[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in self.fields:
            value = record.get(f.name)
            if isinstance(value, datetime):
                value = to_utc_z(value)
            out[f.json_name] = value
        return out

    def parse_order(self, order_expr: Optional[str]) -> List[Tuple[str, str]]:
        """
        Parse an order expression such as ``"created_at desc, id"``.

        Column names and JSON names are both accepted. Direction defaults to asc.

        Returns:
            List of (column name, direction) pairs; empty for a blank expression

        Raises:
            InvalidOrderError: unknown column, unknown direction, or malformed term
        """
        if not order_expr or not order_expr.strip():
            return []

        terms: List[Tuple[str, str]] = []
        for raw_term in order_expr.split(","):
            parts = raw_term.split()
            if not parts or len(parts) > 2:
                raise InvalidOrderError(f"{self.name}: malformed order term '{raw_term.strip()}'")
            try:
                f = self.field(parts[0])
            except KeyError:
                raise InvalidOrderError(f"{self.name}: cannot order by unknown column '{parts[0]}'") from None
            direction = parts[1].lower() if len(parts) == 2 else "asc"
            if direction not in ORDER_DIRECTIONS:
                raise InvalidOrderError(f"{self.name}: unknown order direction '{parts[1]}'")
            terms.append((f.name, direction))
        return terms

    def normalize_order(self, order_expr: Optional[str]) -> str:
        return ", ".join(f"{name} {direction}" for name, direction in self.parse_order(order_expr))

    def __repr__(self) -> str:
        return f"EntityDescriptor({self.name!r}, fields={len(self.fields)})"


class EntityRegistry:
    """Read-only mapping of entity name to descriptor."""

    def __init__(self, descriptors: Iterable[EntityDescriptor]):
        entries: Dict[str, EntityDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in entries:
                raise ValueError(f"Entity registered twice: {descriptor.name}")
            entries[descriptor.name] = descriptor
        self._entries = MappingProxyType(entries)

    @classmethod
    def from_models(cls, models: Iterable[Type]) -> "EntityRegistry":
        return cls(EntityDescriptor(m, getattr(m, "__json_casing__", "snake")) for m in models)

    def get(self, name: str) -> EntityDescriptor:
        try:
            return self._entries[name]
        except KeyError:
            raise UnknownEntityError(f"Unknown entity: {name}") from None

    def names(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[EntityDescriptor]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


def default_registry() -> EntityRegistry:
    """Registry covering every table in the telemetry schema."""
    return EntityRegistry.from_models(ALL_MODELS)
