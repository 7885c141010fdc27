"""
Schema registry for record kinds.

Each record kind declares its fields with a primitive type and a few
simple constraints. Validation is pure and synchronous so it can run
before any persistence attempt.

Built-in kinds:
    businesses: id, name, createdAt
    articles:   id, name, qty, selling_price, business_id, createdAt
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import UnknownKindError, ValidationError
from .id_utils import MAX_ID_LENGTH, parse_timestamp

BUSINESSES = "businesses"
ARTICLES = "articles"


class FieldType(Enum):
    """Primitive field types supported by the registry."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class FieldSpec:
    """Declaration of a single document field.

    Attributes:
        name: Field name in the document
        type: Primitive type of the value
        required: Whether the field must be present
        non_empty: For strings, reject empty or whitespace-only values
        max_length: For strings, maximum allowed length
        minimum: For numbers, smallest allowed value
    """

    name: str
    type: FieldType
    required: bool = True
    non_empty: bool = False
    max_length: int | None = None
    minimum: float | None = None

    def check(self, value: Any) -> None:
        """Validate a present value against this field declaration."""
        if self.type in (FieldType.STRING, FieldType.TIMESTAMP):
            if not isinstance(value, str):
                raise ValidationError(self.name, "must be a string", repr(value))
            if self.non_empty and not value.strip():
                raise ValidationError(self.name, "must not be empty", value)
            if self.max_length is not None and len(value) > self.max_length:
                raise ValidationError(
                    self.name, f"must be at most {self.max_length} characters", value
                )
            if self.type == FieldType.TIMESTAMP:
                try:
                    parse_timestamp(value)
                except ValueError:
                    raise ValidationError(self.name, "must be an ISO 8601 timestamp", value) from None
            return

        # bool is an int subclass but never a valid quantity or price
        if isinstance(value, bool):
            raise ValidationError(self.name, f"must be a {self.type.value}", repr(value))

        if self.type == FieldType.INTEGER:
            if not isinstance(value, int):
                raise ValidationError(self.name, "must be an integer", repr(value))
        elif self.type == FieldType.NUMBER:
            if not isinstance(value, int | float):
                raise ValidationError(self.name, "must be a number", repr(value))
            if not math.isfinite(value):
                raise ValidationError(self.name, "must be finite", repr(value))

        if self.minimum is not None and value < self.minimum:
            raise ValidationError(self.name, f"must be >= {self.minimum:g}", repr(value))


@dataclass
class RecordSchema:
    """Shape of one record kind."""

    kind: str
    fields: list[FieldSpec] = field(default_factory=list)
    primary_key: str = "id"

    def field_names(self) -> set[str]:
        return {f.name for f in self.fields}

    def validate(self, document: Mapping[str, Any]) -> None:
        """Validate a document, raising ValidationError on the first problem."""
        if not isinstance(document, Mapping):
            raise ValidationError("<document>", "must be a mapping", type(document).__name__)

        known = self.field_names()
        for key in document:
            if key not in known:
                raise ValidationError(str(key), "unknown field")

        for spec in self.fields:
            if spec.name not in document or document[spec.name] is None:
                if spec.required:
                    raise ValidationError(spec.name, "is required")
                continue
            spec.check(document[spec.name])


class SchemaRegistry:
    """Registry of record schemas keyed by kind.

    Example:
        >>> registry = default_registry()
        >>> registry.validate("businesses", {"id": "b1", "name": "Acme"})
    """

    def __init__(self, schemas: list[RecordSchema] | None = None) -> None:
        self._schemas: dict[str, RecordSchema] = {}
        for schema in schemas or []:
            self.register(schema)

    def register(self, schema: RecordSchema) -> None:
        if schema.kind in self._schemas:
            raise ValueError(f"Schema already registered for kind: {schema.kind}")
        self._schemas[schema.kind] = schema

    def get(self, kind: str) -> RecordSchema:
        try:
            return self._schemas[kind]
        except KeyError:
            raise UnknownKindError(kind) from None

    def kinds(self) -> list[str]:
        """Registered kinds, in registration order."""
        return list(self._schemas)

    def validate(self, kind: str, document: Mapping[str, Any]) -> None:
        self.get(kind).validate(document)

    def __contains__(self, kind: object) -> bool:
        return kind in self._schemas

    def __iter__(self) -> Iterator[RecordSchema]:
        return iter(self._schemas.values())


def _id_field() -> FieldSpec:
    return FieldSpec("id", FieldType.STRING, non_empty=True, max_length=MAX_ID_LENGTH)


BUSINESS_SCHEMA = RecordSchema(
    kind=BUSINESSES,
    fields=[
        _id_field(),
        FieldSpec("name", FieldType.STRING, non_empty=True),
        FieldSpec("createdAt", FieldType.TIMESTAMP, required=False),
    ],
)

ARTICLE_SCHEMA = RecordSchema(
    kind=ARTICLES,
    fields=[
        _id_field(),
        FieldSpec("name", FieldType.STRING, non_empty=True),
        FieldSpec("qty", FieldType.INTEGER, minimum=0),
        FieldSpec("selling_price", FieldType.NUMBER, minimum=0),
        # Referential integrity is not enforced; dangling ids are allowed
        FieldSpec("business_id", FieldType.STRING, non_empty=True, max_length=MAX_ID_LENGTH),
        FieldSpec("createdAt", FieldType.TIMESTAMP, required=False),
    ],
)


def default_registry() -> SchemaRegistry:
    """Registry with the built-in businesses and articles schemas."""
    return SchemaRegistry([BUSINESS_SCHEMA, ARTICLE_SCHEMA])
