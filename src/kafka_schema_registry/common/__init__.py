"""Error types and logging shared by every component."""

from kafka_schema_registry.common.exceptions import (
    ErrorCategory,
    HttpStatusError,
    ParseError,
    SRCError,
    SubjectValidationError,
    TransportError,
)

__all__ = [
    "ErrorCategory",
    "HttpStatusError",
    "ParseError",
    "SRCError",
    "SubjectValidationError",
    "TransportError",
]
