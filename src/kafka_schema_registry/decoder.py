"""
Decoders and encoders for schema registry framed records.

Decoder: record bytes -> header -> schema (cached) -> payload codec -> value.
Encoder: value -> schema for strategy (cached, registering if needed) ->
payload codec -> framed bytes.

EasyDecoder and EasyEncoder put a single instance behind an asyncio.Lock so
one object can be shared by many tasks. All resolutions of one instance then
run one at a time, also for different schema ids; the cache keeps repeat
lookups cheap, which is what makes this acceptable. Use several instances to
decode in parallel; they share nothing.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from aiokafka.structs import ConsumerRecord

from kafka_schema_registry.cache import SchemaCache
from kafka_schema_registry.codecs import PayloadCodec, RawPayloadCodec
from kafka_schema_registry.common.exceptions import SRCError, SubjectValidationError
from kafka_schema_registry.common.logging import LoggedClass, logged_operation
from kafka_schema_registry.config import SchemaRegistryConfig
from kafka_schema_registry.registry import SchemaRegistryClient
from kafka_schema_registry.schemas.models import RegisteredReference, RegisteredSchema
from kafka_schema_registry.strategies import SubjectNameStrategy
from kafka_schema_registry.wire import InvalidBytes, NullBytes, decode_header, encode_header


@dataclass(frozen=True)
class DecodedRecord:
    """Key and value of a consumed record after decoding."""

    topic: str
    partition: int
    offset: int
    key: Any
    value: Any


class _SchemaResolver(LoggedClass):
    """Registry client plus the cache owned by one decoder or encoder."""

    def __init__(
        self,
        config: SchemaRegistryConfig,
        payload_codec: Optional[PayloadCodec] = None,
        client: Optional[SchemaRegistryClient] = None,
    ):
        self.config = config
        self.base_url = config.url
        self.payload_codec: PayloadCodec = payload_codec or RawPayloadCodec()
        self._client = client or SchemaRegistryClient(config)
        self._cache = SchemaCache(cache_retriable_errors=config.cache_retriable_errors)
        super().__init__()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.close()

    @property
    def cache(self) -> SchemaCache:
        return self._cache

    @logged_operation(level=logging.DEBUG)
    def remove_errors_from_cache(self) -> int:
        return self._cache.remove_errors()

    async def _get_reference(self, reference: RegisteredReference) -> RegisteredSchema:
        return await self._cache.get_by_reference(
            reference, lambda: self._client.fetch_reference(reference)
        )

    async def resolve_references(self, schema: RegisteredSchema) -> List[RegisteredSchema]:
        """
        Fetch every schema referenced by schema, directly or transitively.

        Dependencies come before the schemas that use them. A reference that
        appears more than once is returned once.
        """
        resolved: List[RegisteredSchema] = []
        seen: Set[Tuple[str, int]] = set()
        stack: List[Tuple[RegisteredReference, int, bool]] = [
            (r, 1, False) for r in reversed(schema.references)
        ]
        loaded: Dict[Tuple[str, int], RegisteredSchema] = {}
        while stack:
            reference, depth, children_done = stack.pop()
            key = (reference.subject, reference.version)
            if children_done:
                if key not in seen:
                    seen.add(key)
                    resolved.append(loaded[key])
                continue
            if key in seen:
                continue
            if depth > self.config.max_reference_depth:
                raise SubjectValidationError(
                    f"references nested deeper than {self.config.max_reference_depth} levels",
                    cause=f"at subject {reference.subject}",
                )
            dependency = await self._get_reference(reference)
            loaded[key] = dependency
            stack.append((reference, depth, True))
            stack.extend((r, depth + 1, False) for r in reversed(dependency.references))
        return resolved


class Decoder(_SchemaResolver):
    """
    Decodes framed record bytes.

    Not safe for concurrent use on its own; wrap it in EasyDecoder to share it
    between tasks.

    Usage:
        async with Decoder(config, JsonPayloadCodec()) as decoder:
            value = await decoder.decode(record.value)
    """

    log_component = "decoder"

    @logged_operation(level=logging.DEBUG)
    async def get_schema(self, schema_id: int) -> RegisteredSchema:
        return await self._cache.get_by_id(
            schema_id, lambda: self._client.fetch_by_id(schema_id)
        )

    async def decode(self, data: Optional[bytes]) -> Any:
        """
        Decode the key or value bytes of a record.

        Returns:
            None for a record without bytes, else the codec's value

        Raises:
            SRCError: Bytes are not framed, the schema cannot be resolved, or
                the codec rejects the payload
        """
        result = decode_header(data)
        if isinstance(result, NullBytes):
            return None
        if isinstance(result, InvalidBytes):
            raise SRCError.non_retryable_with_cause(
                f"{len(result.raw)} bytes without magic byte header",
                "no schema registry compatible bytes",
            )

        schema = await self.get_schema(result.schema_id)
        references = await self.resolve_references(schema)
        try:
            return self.payload_codec.decode(schema, result.payload, references)
        except SRCError:
            raise
        except Exception as e:
            raise SRCError.non_retryable_with_cause(e, "could not decode payload") from e

    async def decode_record(self, record: ConsumerRecord) -> DecodedRecord:
        """Decode both key and value of a consumed record."""
        key = await self.decode(record.key)
        value = await self.decode(record.value)
        return DecodedRecord(
            topic=record.topic,
            partition=record.partition,
            offset=record.offset,
            key=key,
            value=value,
        )


class Encoder(_SchemaResolver):
    """
    Encodes values into framed record bytes.

    Strategies carrying a schema register it on first use; the id is cached
    per strategy afterwards.
    """

    log_component = "encoder"

    @logged_operation(level=logging.DEBUG)
    async def get_schema(self, strategy: SubjectNameStrategy) -> RegisteredSchema:
        return await self._cache.get_by_strategy(
            strategy, lambda: self._client.fetch_by_subject(strategy)
        )

    async def encode_bytes(self, payload: bytes, strategy: SubjectNameStrategy) -> bytes:
        """Frame an already encoded payload with the id for strategy."""
        schema = await self.get_schema(strategy)
        return encode_header(schema.id, payload)

    async def encode(self, value: Any, strategy: SubjectNameStrategy) -> bytes:
        """Encode value with the payload codec and frame it."""
        schema = await self.get_schema(strategy)
        references = await self.resolve_references(schema)
        try:
            payload = self.payload_codec.encode(schema, value, references)
        except SRCError:
            raise
        except Exception as e:
            raise SRCError.non_retryable_with_cause(e, "could not encode value") from e
        return encode_header(schema.id, payload)


class EasyDecoder:
    """
    Decoder that can be shared between tasks.

    Calls take an asyncio.Lock around the whole pipeline, so they complete in
    the order they acquired it. Cancelling a waiting call only drops that
    waiter; the resolution in flight carries on.
    """

    def __init__(
        self,
        config: SchemaRegistryConfig,
        payload_codec: Optional[PayloadCodec] = None,
        client: Optional[SchemaRegistryClient] = None,
    ):
        self._decoder = Decoder(config, payload_codec, client)
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "EasyDecoder":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def decode(self, data: Optional[bytes]) -> Any:
        async with self._lock:
            return await self._decoder.decode(data)

    async def decode_record(self, record: ConsumerRecord) -> DecodedRecord:
        async with self._lock:
            return await self._decoder.decode_record(record)

    async def remove_errors_from_cache(self) -> int:
        async with self._lock:
            return self._decoder.remove_errors_from_cache()

    async def close(self) -> None:
        async with self._lock:
            await self._decoder.close()


class EasyEncoder:
    """Encoder that can be shared between tasks; see EasyDecoder."""

    def __init__(
        self,
        config: SchemaRegistryConfig,
        payload_codec: Optional[PayloadCodec] = None,
        client: Optional[SchemaRegistryClient] = None,
    ):
        self._encoder = Encoder(config, payload_codec, client)
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "EasyEncoder":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def encode(self, value: Any, strategy: SubjectNameStrategy) -> bytes:
        async with self._lock:
            return await self._encoder.encode(value, strategy)

    async def encode_bytes(self, payload: bytes, strategy: SubjectNameStrategy) -> bytes:
        async with self._lock:
            return await self._encoder.encode_bytes(payload, strategy)

    async def remove_errors_from_cache(self) -> int:
        async with self._lock:
            return self._encoder.remove_errors_from_cache()

    async def close(self) -> None:
        async with self._lock:
            await self._encoder.close()
