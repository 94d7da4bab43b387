"""
Schema registry client for Kafka records.

Resolves schemas by id or naming strategy against a schema registry, registers
supplied schemas with their references, and frames payloads with the
schema id header.
"""

from kafka_schema_registry.cache import SchemaCache
from kafka_schema_registry.codecs import JsonPayloadCodec, PayloadCodec, RawPayloadCodec
from kafka_schema_registry.common.exceptions import (
    ErrorCategory,
    HttpStatusError,
    ParseError,
    SRCError,
    SubjectValidationError,
    TransportError,
)
from kafka_schema_registry.config import SchemaRegistryConfig
from kafka_schema_registry.decoder import (
    DecodedRecord,
    Decoder,
    EasyDecoder,
    EasyEncoder,
    Encoder,
)
from kafka_schema_registry.registry import SchemaRegistryClient
from kafka_schema_registry.schemas import (
    RegisteredReference,
    RegisteredSchema,
    SchemaKind,
    SchemaType,
    SuppliedReference,
    SuppliedSchema,
)
from kafka_schema_registry.strategies import (
    StrategyKind,
    SubjectNameStrategy,
    inline_schema_of,
    subject_for,
)
from kafka_schema_registry.transport import AiohttpTransport, Transport, TransportResponse
from kafka_schema_registry.wire import (
    BytesResult,
    InvalidBytes,
    NullBytes,
    ValidBytes,
    decode_header,
    encode_header,
)

__all__ = [
    "AiohttpTransport",
    "BytesResult",
    "DecodedRecord",
    "Decoder",
    "EasyDecoder",
    "EasyEncoder",
    "Encoder",
    "ErrorCategory",
    "HttpStatusError",
    "InvalidBytes",
    "JsonPayloadCodec",
    "NullBytes",
    "ParseError",
    "PayloadCodec",
    "RawPayloadCodec",
    "RegisteredReference",
    "RegisteredSchema",
    "SRCError",
    "SchemaCache",
    "SchemaKind",
    "SchemaRegistryClient",
    "SchemaRegistryConfig",
    "SchemaType",
    "StrategyKind",
    "SubjectNameStrategy",
    "SubjectValidationError",
    "SuppliedReference",
    "SuppliedSchema",
    "Transport",
    "TransportError",
    "TransportResponse",
    "ValidBytes",
    "decode_header",
    "encode_header",
    "inline_schema_of",
    "subject_for",
]
