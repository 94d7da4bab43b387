"""
Schema models exchanged with the schema registry.

Contains the supplied models callers build before registration and the
registered models the registry hands back. All models are frozen so they can
be shared between cache entries and callers, and used inside cache keys.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class SchemaKind(str, Enum):
    """Schema formats known to the registry, plus an escape for extensions."""

    AVRO = "AVRO"
    PROTOBUF = "PROTOBUF"
    JSON = "JSON"
    OTHER = "OTHER"


@dataclass(frozen=True)
class SchemaType:
    """Type tag of a schema.

    The three built-in formats are available as SchemaType.AVRO,
    SchemaType.PROTOBUF and SchemaType.JSON. Registry-side extensions use
    SchemaType.other("NAME"); two OTHER tags are equal when their names are.
    """

    kind: SchemaKind
    name: Optional[str] = None

    AVRO: ClassVar["SchemaType"]
    PROTOBUF: ClassVar["SchemaType"]
    JSON: ClassVar["SchemaType"]

    def __post_init__(self) -> None:
        if self.kind is SchemaKind.OTHER and not self.name:
            raise ValueError("SchemaType.other requires a name")
        if self.kind is not SchemaKind.OTHER and self.name is not None:
            raise ValueError(f"{self.kind.value} schema type does not take a name")

    @classmethod
    def other(cls, name: str) -> "SchemaType":
        return cls(SchemaKind.OTHER, name)

    @classmethod
    def from_registry(cls, value: Optional[str]) -> "SchemaType":
        """Map the registry's schemaType field; absent means Avro."""
        if value is None:
            return cls.AVRO
        if value in (SchemaKind.AVRO.value, SchemaKind.PROTOBUF.value, SchemaKind.JSON.value):
            return cls(SchemaKind(value))
        return cls.other(value)

    @property
    def registry_name(self) -> str:
        if self.kind is SchemaKind.OTHER:
            return self.name  # type: ignore[return-value]
        return self.kind.value

    def __str__(self) -> str:
        return self.registry_name


SchemaType.AVRO = SchemaType(SchemaKind.AVRO)
SchemaType.PROTOBUF = SchemaType(SchemaKind.PROTOBUF)
SchemaType.JSON = SchemaType(SchemaKind.JSON)


class SuppliedReference(BaseModel):
    """Sub-schema to register before the schema that references it.

    Attributes:
        name: Name the parent schema uses for the reference (e.g. an import path)
        subject: Subject the sub-schema is registered under
        schema_text: Raw schema text
        references: Nested sub-schemas, registered before this one
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    schema_text: str
    references: Tuple["SuppliedReference", ...] = ()


class SuppliedSchema(BaseModel):
    """Schema supplied by a producer, registered if not already present.

    ``name`` is only needed for naming strategies that derive the subject from
    the fully-qualified record name.
    """

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    schema_type: SchemaType = SchemaType.AVRO
    schema_text: str
    references: Tuple[SuppliedReference, ...] = ()


class RegisteredReference(BaseModel):
    """Reference as stored by the registry; the version is registry-assigned."""

    model_config = ConfigDict(frozen=True)

    name: str
    subject: str
    version: int = Field(..., ge=0)

    def to_registry(self) -> Dict[str, Any]:
        return {"name": self.name, "subject": self.subject, "version": self.version}


class RegisteredSchema(BaseModel):
    """Schema as resolved from the registry.

    Close to the JSON envelope; no format-specific parsing is done on
    ``schema_text``.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=0)
    schema_type: SchemaType
    schema_text: str
    references: Tuple[RegisteredReference, ...] = ()
