"""
Schema registry REST protocol.

Async client for the Confluent-compatible schema registry API. Provides the
primitive lookups (by id, by subject, by reference) and schema registration,
including registration of nested references before the schemas that use them.

Every failure leaves this module as an SRCError:
- transport failures are retriable
- non-200 responses, bodies that are not UTF-8 JSON and envelopes missing a
  mandatory field are not
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from pydantic import ValidationError

from kafka_schema_registry import metrics
from kafka_schema_registry.common.exceptions import (
    HttpStatusError,
    ParseError,
    SRCError,
    SubjectValidationError,
    TransportError,
)
from kafka_schema_registry.common.logging import LoggedClass, logged_operation
from kafka_schema_registry.config import SchemaRegistryConfig
from kafka_schema_registry.schemas.models import (
    RegisteredReference,
    RegisteredSchema,
    SchemaType,
    SuppliedReference,
    SuppliedSchema,
)
from kafka_schema_registry.strategies import (
    SubjectNameStrategy,
    inline_schema_of,
    subject_for,
)
from kafka_schema_registry.transport import AiohttpTransport, Transport, TransportResponse


MAX_REGISTRY_INT = 0xFFFFFFFF


def _urlencode(value: str) -> str:
    return quote(value, safe="")


def _as_int(value: Any) -> Optional[int]:
    """Ids and versions must fit the unsigned 32-bit header field."""
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_REGISTRY_INT:
        return value
    return None


def to_json(response: TransportResponse) -> Dict[str, Any]:
    """
    Turn a registry response into its JSON object.

    Raises:
        HttpStatusError: Status is not 200
        ParseError: Body is not UTF-8, not JSON, or not a JSON object
    """
    if response.status != 200:
        raise HttpStatusError(response.status)
    try:
        text = response.body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError("Invalid UTF-8 sequence", cause=str(e)) from e
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ParseError("Invalid json string", cause=str(e)) from e
    if not isinstance(data, dict):
        raise ParseError("Invalid json string", cause="expected a JSON object")
    return data


def parse_schema_envelope(
    envelope: Dict[str, Any], requested_id: Optional[int] = None
) -> RegisteredSchema:
    """
    Build a RegisteredSchema from a registry schema envelope.

    Args:
        envelope: Decoded response, {id?, schemaType?, schema, references?}
        requested_id: Id used for the lookup, used when the envelope has none

    Raises:
        ParseError: Missing id or schema, or a malformed reference
    """
    if "id" in envelope:
        schema_id = _as_int(envelope["id"])
    else:
        schema_id = requested_id
    if schema_id is None:
        raise ParseError("Could not get id from response")

    # Empty or non-string types are treated as absent
    schema_type_value = envelope.get("schemaType")
    schema_type = SchemaType.from_registry(
        schema_type_value if isinstance(schema_type_value, str) and schema_type_value else None
    )

    schema_text = envelope.get("schema")
    if not isinstance(schema_text, str):
        raise ParseError("Could not get raw schema from response")

    raw_references = envelope.get("references")
    references: List[RegisteredReference] = []
    if isinstance(raw_references, list):
        try:
            references = [RegisteredReference.model_validate(r) for r in raw_references]
        except ValidationError as e:
            raise ParseError("Error parsing reference", cause=str(e)) from e

    try:
        return RegisteredSchema(
            id=schema_id,
            schema_type=schema_type,
            schema_text=schema_text,
            references=tuple(references),
        )
    except ValidationError as e:
        raise ParseError("Could not parse schema from response", cause=str(e)) from e


def build_register_body(
    schema_type: SchemaType,
    schema_text: str,
    references: Sequence[RegisteredReference],
) -> Dict[str, Any]:
    """Request body for registration; 'references' is left out when empty."""
    body: Dict[str, Any] = {
        "schema": schema_text,
        "schemaType": schema_type.registry_name,
    }
    if references:
        body["references"] = [r.to_registry() for r in references]
    return body


@dataclass
class _ReferenceNode:
    reference: SuppliedReference
    depth: int
    children: List[int] = field(default_factory=list)


class SchemaRegistryClient(LoggedClass):
    """
    Async client for the schema registry REST API.

    No caching happens here; see SchemaCache for that.

    Usage:
        config = SchemaRegistryConfig(url="http://registry:8081")
        async with SchemaRegistryClient(config) as client:
            schema = await client.fetch_by_id(7)
    """

    log_component = "registry"

    def __init__(
        self,
        config: SchemaRegistryConfig,
        transport: Optional[Transport] = None,
    ):
        self.config = config
        self.base_url = config.url
        self._transport: Transport = transport or AiohttpTransport(
            timeout_seconds=config.timeout_seconds,
            username=config.username,
            password=config.password,
        )
        super().__init__()

    async def __aenter__(self) -> "SchemaRegistryClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._transport.close()

    # =========================================================================
    # HTTP helpers
    # =========================================================================

    async def _send(self, method: str, url: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            if method == "GET":
                response = await self._transport.get(url)
            else:
                payload = json.dumps(body).encode("utf-8")
                response = await self._transport.post(url, payload)
        except TransportError:
            metrics.registry_requests_total.labels(method=method, status="transport_error").inc()
            raise
        finally:
            metrics.registry_request_duration_seconds.labels(method=method).observe(
                time.perf_counter() - started
            )

        metrics.registry_requests_total.labels(method=method, status=str(response.status)).inc()
        if response.status != 200:
            self._log(
                logging.WARNING,
                "Schema registry request failed",
                http_method=method,
                url=url,
                http_status=response.status,
            )
        return to_json(response)

    async def _post_and_get_id(self, url: str, body: Dict[str, Any]) -> int:
        envelope = await self._send("POST", url, body)
        schema_id = _as_int(envelope.get("id"))
        if schema_id is None:
            raise ParseError("Could not get id from response")
        return schema_id

    async def _post_and_get_version(self, url: str, body: Dict[str, Any]) -> int:
        envelope = await self._send("POST", url, body)
        version = _as_int(envelope.get("version"))
        if version is None:
            raise ParseError("Could not get version from response")
        return version

    # =========================================================================
    # Lookups
    # =========================================================================

    @logged_operation(level=logging.DEBUG)
    async def fetch_by_id(self, schema_id: int) -> RegisteredSchema:
        """
        Get the schema a framed record was written with.

        Args:
            schema_id: Id taken from the record header

        Raises:
            SRCError: On transport, status or parse failures
        """
        envelope = await self._send("GET", f"{self.base_url}/schemas/ids/{schema_id}")
        return parse_schema_envelope(envelope, requested_id=schema_id)

    @logged_operation(level=logging.DEBUG)
    async def fetch_by_id_and_type(
        self, schema_id: int, schema_type: SchemaType
    ) -> RegisteredSchema:
        """Like fetch_by_id, but fail when the registry returns another type."""
        schema = await self.fetch_by_id(schema_id)
        if schema.schema_type != schema_type:
            raise SRCError.non_retryable_without_cause(f"type {schema.schema_type}, is not correct")
        return schema

    @logged_operation(level=logging.DEBUG)
    async def fetch_by_subject(self, strategy: SubjectNameStrategy) -> RegisteredSchema:
        """
        Resolve the schema for a naming strategy.

        Strategies carrying a schema register it; the others fetch the latest
        version of the derived subject.
        """
        subject = subject_for(strategy)
        schema = inline_schema_of(strategy)
        if schema is None:
            envelope = await self._send(
                "GET", f"{self.base_url}/subjects/{_urlencode(subject)}/versions/latest"
            )
            return parse_schema_envelope(envelope)
        return await self.register(subject, schema)

    @logged_operation(level=logging.DEBUG)
    async def fetch_reference(self, reference: RegisteredReference) -> RegisteredSchema:
        """Get the schema a registered reference points to."""
        envelope = await self._send(
            "GET",
            f"{self.base_url}/subjects/{_urlencode(reference.subject)}"
            f"/versions/{reference.version}",
        )
        return parse_schema_envelope(envelope)

    # =========================================================================
    # Registration
    # =========================================================================

    @logged_operation(level=logging.DEBUG)
    async def register(self, subject: str, schema: SuppliedSchema) -> RegisteredSchema:
        """
        Register a schema under a subject, references first.

        When an identical schema is already registered the registry returns
        its existing id. The result echoes the supplied type and text; it is
        not fetched back.

        Raises:
            SRCError: "Error posting a reference" when any reference fails,
                otherwise the failure of the final POST
        """
        references = await self._register_reference_tree(schema.schema_type, schema.references)
        body = build_register_body(schema.schema_type, schema.schema_text, references)
        schema_id = await self._post_and_get_id(
            f"{self.base_url}/subjects/{_urlencode(subject)}/versions", body
        )
        self._log(
            logging.DEBUG,
            "Registered schema",
            subject=subject,
            schema_id=schema_id,
            reference_count=len(references),
        )
        return RegisteredSchema(
            id=schema_id,
            schema_type=schema.schema_type,
            schema_text=schema.schema_text,
            references=tuple(references),
        )

    @logged_operation(level=logging.DEBUG)
    async def register_reference(
        self,
        subject: str,
        schema_type: SchemaType,
        reference: SuppliedReference,
    ) -> RegisteredReference:
        """
        Register one supplied reference and its nested references.

        The registry hands out ids and versions on separate calls, so the
        reference is posted to the versions endpoint for its id and then to
        the subject endpoint for its version. Both have to succeed.
        """
        nested = await self._register_reference_tree(schema_type, reference.references)
        try:
            return await self._register_one(
                subject, reference.name, schema_type, reference.schema_text, nested
            )
        except SRCError as e:
            raise self._reference_error(e) from e

    async def _register_one(
        self,
        subject: str,
        name: str,
        schema_type: SchemaType,
        schema_text: str,
        references: Sequence[RegisteredReference],
    ) -> RegisteredReference:
        body = build_register_body(schema_type, schema_text, references)
        encoded_subject = _urlencode(subject)
        await self._post_and_get_id(f"{self.base_url}/subjects/{encoded_subject}/versions", body)
        version = await self._post_and_get_version(f"{self.base_url}/subjects/{encoded_subject}", body)
        return RegisteredReference(name=name, subject=subject, version=version)

    def _build_reference_arena(
        self, roots: Sequence[SuppliedReference]
    ) -> List[_ReferenceNode]:
        """Flatten the reference forest; the first len(roots) nodes are the roots."""
        arena = [_ReferenceNode(reference=r, depth=1) for r in roots]
        pending = list(range(len(arena)))
        while pending:
            index = pending.pop()
            node = arena[index]
            if node.depth > self.config.max_reference_depth:
                raise SubjectValidationError(
                    f"references nested deeper than {self.config.max_reference_depth} levels",
                    cause=f"at subject {node.reference.subject}",
                )
            for child in node.reference.references:
                arena.append(_ReferenceNode(reference=child, depth=node.depth + 1))
                child_index = len(arena) - 1
                node.children.append(child_index)
                pending.append(child_index)
        return arena

    async def _register_reference_tree(
        self,
        schema_type: SchemaType,
        roots: Sequence[SuppliedReference],
    ) -> List[RegisteredReference]:
        """
        Register a forest of references in post-order.

        Children are registered before their parent, siblings left to right.
        The walk uses an explicit stack over an arena of nodes, so depth is
        bounded by configuration and not by the interpreter stack.
        """
        if not roots:
            return []

        try:
            arena = self._build_reference_arena(roots)
            registered: Dict[int, RegisteredReference] = {}

            stack = [(index, False) for index in reversed(range(len(roots)))]
            while stack:
                index, children_done = stack.pop()
                node = arena[index]
                if not children_done:
                    stack.append((index, True))
                    stack.extend((child, False) for child in reversed(node.children))
                    continue
                registered[index] = await self._register_one(
                    node.reference.subject,
                    node.reference.name,
                    schema_type,
                    node.reference.schema_text,
                    [registered[child] for child in node.children],
                )
        except SRCError as e:
            raise self._reference_error(e) from e

        return [registered[index] for index in range(len(roots))]

    @staticmethod
    def _reference_error(error: SRCError) -> SRCError:
        return SRCError(
            "Error posting a reference",
            cause=str(error),
            retriable=error.retriable,
        )
