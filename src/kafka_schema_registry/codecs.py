"""
Payload codecs.

Turning payload bytes into values is format specific and lives outside the
resolution pipeline. Decoder and Encoder hand every payload to a PayloadCodec
together with the resolved schema and the schemas it references.
"""

import json
from typing import Any, Protocol, Sequence

from kafka_schema_registry.schemas.models import RegisteredSchema


class PayloadCodec(Protocol):
    def decode(
        self,
        schema: RegisteredSchema,
        payload: bytes,
        references: Sequence[RegisteredSchema],
    ) -> Any: ...

    def encode(
        self,
        schema: RegisteredSchema,
        value: Any,
        references: Sequence[RegisteredSchema],
    ) -> bytes: ...


class RawPayloadCodec:
    """Passes payload bytes through untouched."""

    def decode(self, schema, payload, references):
        return bytes(payload)

    def encode(self, schema, value, references):
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"raw payloads must be bytes, got {type(value).__name__}")
        return bytes(value)


class JsonPayloadCodec:
    """UTF-8 JSON documents, as written for JSON Schema subjects."""

    def decode(self, schema, payload, references):
        return json.loads(bytes(payload).decode("utf-8"))

    def encode(self, schema, value, references):
        return json.dumps(value, separators=(",", ":")).encode("utf-8")
