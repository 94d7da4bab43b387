"""
Schema models for the schema registry client.

Provides Pydantic models for:
- Supplied schemas and references (caller side, before registration)
- Registered schemas and references (registry side, after resolution)
"""

from kafka_schema_registry.schemas.models import (
    RegisteredReference,
    RegisteredSchema,
    SchemaKind,
    SchemaType,
    SuppliedReference,
    SuppliedSchema,
)

__all__ = [
    "RegisteredReference",
    "RegisteredSchema",
    "SchemaKind",
    "SchemaType",
    "SuppliedReference",
    "SuppliedSchema",
]
