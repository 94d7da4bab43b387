"""Tests for the schema registry REST protocol."""

import pytest

from kafka_schema_registry.common.exceptions import HttpStatusError, ParseError, SRCError
from kafka_schema_registry.config import SchemaRegistryConfig
from kafka_schema_registry.registry import SchemaRegistryClient, build_register_body
from kafka_schema_registry.schemas.models import (
    RegisteredReference,
    RegisteredSchema,
    SchemaType,
    SuppliedReference,
    SuppliedSchema,
)
from kafka_schema_registry.strategies import SubjectNameStrategy
from kafka_schema_registry.transport import TransportResponse
from tests.kafka_schema_registry.fakes import (
    REGISTRY_URL,
    FakeTransport,
    connection_refused,
    json_response,
    schema_envelope,
)


def reference(name, children=()):
    return SuppliedReference(
        name=f"{name}.proto",
        subject=name,
        schema_text=f"schema {name}",
        references=list(children),
    )


def register_replies(transport, subject, schema_id, version):
    transport.add("POST", f"/subjects/{subject}/versions", json_response({"id": schema_id}))
    transport.add("POST", f"/subjects/{subject}", json_response({"version": version, "id": schema_id}))


class TestFetchById:
    """Test schema lookups by id."""

    @pytest.mark.asyncio
    async def test_protobuf_schema(self, client, transport):
        transport.add(
            "GET",
            "/schemas/ids/7",
            json_response({"id": 7, "schema": "syntax = 'proto3';", "schemaType": "PROTOBUF"}),
        )

        schema = await client.fetch_by_id(7)

        assert schema == RegisteredSchema(
            id=7,
            schema_type=SchemaType.PROTOBUF,
            schema_text="syntax = 'proto3';",
            references=(),
        )

    @pytest.mark.asyncio
    async def test_missing_id_falls_back_to_requested(self, client, transport):
        transport.add("GET", "/schemas/ids/3", json_response(schema_envelope(schema_id=None)))

        schema = await client.fetch_by_id(3)

        assert schema.id == 3

    @pytest.mark.asyncio
    async def test_missing_schema_type_defaults_to_avro(self, client, transport):
        transport.add("GET", "/schemas/ids/7", json_response(schema_envelope()))

        schema = await client.fetch_by_id(7)

        assert schema.schema_type == SchemaType.AVRO

    @pytest.mark.asyncio
    async def test_unknown_schema_type(self, client, transport):
        transport.add("GET", "/schemas/ids/7", json_response(schema_envelope(schema_type="XML")))

        schema = await client.fetch_by_id(7)

        assert schema.schema_type == SchemaType.other("XML")

    @pytest.mark.asyncio
    async def test_references_parsed(self, client, transport):
        transport.add(
            "GET",
            "/schemas/ids/7",
            json_response(
                schema_envelope(
                    references=[{"name": "common.proto", "subject": "common", "version": 1}]
                )
            ),
        )

        schema = await client.fetch_by_id(7)

        assert schema.references == (
            RegisteredReference(name="common.proto", subject="common", version=1),
        )

    @pytest.mark.asyncio
    async def test_malformed_reference(self, client, transport):
        transport.add(
            "GET",
            "/schemas/ids/7",
            json_response(schema_envelope(references=[{"name": "common.proto"}])),
        )

        with pytest.raises(SRCError) as exc_info:
            await client.fetch_by_id(7)

        assert exc_info.value.message == "Error parsing reference"
        assert exc_info.value.cause is not None
        assert exc_info.value.retriable is False

    @pytest.mark.asyncio
    async def test_missing_schema(self, client, transport):
        transport.add("GET", "/schemas/ids/7", json_response({"id": 7}))

        with pytest.raises(SRCError) as exc_info:
            await client.fetch_by_id(7)

        assert exc_info.value == SRCError.non_retryable_without_cause(
            "Could not get raw schema from response"
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404, 500, 503])
    async def test_non_200_is_not_retriable(self, client, transport, status):
        transport.add("GET", "/schemas/ids/7", TransportResponse(status=status, body=b"{}"))

        with pytest.raises(HttpStatusError) as exc_info:
            await client.fetch_by_id(7)

        assert str(status) in exc_info.value.message
        assert exc_info.value.retriable is False
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_transport_failure_is_retriable(self, client, transport):
        transport.add("GET", "/schemas/ids/7", connection_refused())

        with pytest.raises(SRCError) as exc_info:
            await client.fetch_by_id(7)

        assert exc_info.value.retriable is True
        assert exc_info.value.cached is False

    @pytest.mark.asyncio
    async def test_invalid_utf8(self, client, transport):
        transport.add("GET", "/schemas/ids/7", TransportResponse(status=200, body=b"\xff\xfe"))

        with pytest.raises(SRCError) as exc_info:
            await client.fetch_by_id(7)

        assert exc_info.value.message == "Invalid UTF-8 sequence"
        assert exc_info.value.retriable is False

    @pytest.mark.asyncio
    async def test_invalid_json(self, client, transport):
        transport.add("GET", "/schemas/ids/7", TransportResponse(status=200, body=b"not json"))

        with pytest.raises(SRCError) as exc_info:
            await client.fetch_by_id(7)

        assert exc_info.value.message == "Invalid json string"
        assert exc_info.value.retriable is False

    @pytest.mark.asyncio
    async def test_json_array_is_not_an_envelope(self, client, transport):
        transport.add("GET", "/schemas/ids/7", TransportResponse(status=200, body=b"[]"))

        with pytest.raises(ParseError) as exc_info:
            await client.fetch_by_id(7)

        assert exc_info.value.message == "Invalid json string"
        assert exc_info.value.cause == "expected a JSON object"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_id", [-1, 2**32, "7", True, None])
    async def test_unusable_id_in_envelope(self, client, transport, bad_id):
        transport.add("GET", "/schemas/ids/7", json_response({"id": bad_id, "schema": "x"}))

        with pytest.raises(ParseError) as exc_info:
            await client.fetch_by_id(7)

        assert exc_info.value.message == "Could not get id from response"
        assert exc_info.value.retriable is False

    @pytest.mark.asyncio
    async def test_largest_id_accepted(self, client, transport):
        transport.add("GET", "/schemas/ids/7", json_response(schema_envelope(schema_id=2**32 - 1)))

        schema = await client.fetch_by_id(7)

        assert schema.id == 2**32 - 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("schema_type", ["", 3])
    async def test_empty_schema_type_treated_as_absent(self, client, transport, schema_type):
        transport.add(
            "GET", "/schemas/ids/7", json_response({"id": 7, "schema": "x", "schemaType": schema_type})
        )

        schema = await client.fetch_by_id(7)

        assert schema.schema_type == SchemaType.AVRO

    @pytest.mark.asyncio
    async def test_fetch_by_id_and_type_mismatch(self, client, transport):
        transport.add("GET", "/schemas/ids/7", json_response(schema_envelope(schema_type="JSON")))

        with pytest.raises(SRCError) as exc_info:
            await client.fetch_by_id_and_type(7, SchemaType.PROTOBUF)

        assert type(exc_info.value) is SRCError
        assert exc_info.value.message == "type JSON, is not correct"
        assert exc_info.value.cause is None
        assert exc_info.value.retriable is False


class TestFetchBySubject:
    """Test lookups and registrations driven by a naming strategy."""

    @pytest.mark.asyncio
    async def test_bare_strategy_fetches_latest(self, client, transport):
        transport.add(
            "GET",
            "/subjects/orders-value/versions/latest",
            json_response(schema_envelope(schema_id=11)),
        )

        schema = await client.fetch_by_subject(
            SubjectNameStrategy.topic_name_strategy("orders", False)
        )

        assert schema.id == 11
        assert transport.posted_urls() == []

    @pytest.mark.asyncio
    async def test_latest_without_id_is_error(self, client, transport):
        transport.add(
            "GET",
            "/subjects/orders-value/versions/latest",
            json_response(schema_envelope(schema_id=None)),
        )

        with pytest.raises(SRCError, match="Could not get id from response"):
            await client.fetch_by_subject(SubjectNameStrategy.topic_name_strategy("orders", False))

    @pytest.mark.asyncio
    async def test_subject_is_url_encoded(self, client, transport):
        transport.add(
            "GET",
            "/subjects/a%2Fb/versions/latest",
            json_response(schema_envelope(schema_id=2)),
        )

        schema = await client.fetch_by_subject(SubjectNameStrategy.record_name_strategy("a/b"))

        assert schema.id == 2

    @pytest.mark.asyncio
    async def test_strategy_with_schema_registers(self, client, transport):
        transport.add("POST", "/subjects/orders-value/versions", json_response({"id": 21}))
        supplied = SuppliedSchema(schema_type=SchemaType.JSON, schema_text='{"type":"object"}')

        schema = await client.fetch_by_subject(
            SubjectNameStrategy.topic_name_strategy_with_schema("orders", False, supplied)
        )

        assert schema == RegisteredSchema(
            id=21, schema_type=SchemaType.JSON, schema_text='{"type":"object"}'
        )
        assert transport.calls == [
            (
                "POST",
                f"{REGISTRY_URL}/subjects/orders-value/versions",
                {"schema": '{"type":"object"}', "schemaType": "JSON"},
            )
        ]

    @pytest.mark.asyncio
    async def test_missing_name_fails_before_network(self, client, transport):
        supplied = SuppliedSchema(schema_text="{}")

        with pytest.raises(SRCError):
            await client.fetch_by_subject(
                SubjectNameStrategy.topic_record_name_strategy_with_schema("t", supplied)
            )

        assert transport.calls == []


class TestFetchReference:
    @pytest.mark.asyncio
    async def test_fetches_subject_version(self, client, transport):
        transport.add(
            "GET",
            "/subjects/common/versions/3",
            json_response(schema_envelope(schema_id=5, schema_type="PROTOBUF")),
        )

        schema = await client.fetch_reference(
            RegisteredReference(name="common.proto", subject="common", version=3)
        )

        assert schema.id == 5
        assert schema.schema_type == SchemaType.PROTOBUF


class TestRegister:
    """Test schema registration with nested references."""

    @pytest.mark.asyncio
    async def test_body_omits_empty_references(self, client, transport):
        transport.add("POST", "/subjects/s/versions", json_response({"id": 1}))

        await client.register("s", SuppliedSchema(schema_text="{}"))

        _, _, body = transport.calls[0]
        assert body == {"schema": "{}", "schemaType": "AVRO"}
        assert "references" not in body

    @pytest.mark.asyncio
    async def test_references_registered_post_order(self, client, transport):
        # root -> (a -> (a1, a2), b)
        tree = [reference("a", [reference("a1"), reference("a2")]), reference("b")]
        register_replies(transport, "a1", 101, 1)
        register_replies(transport, "a2", 102, 2)
        register_replies(transport, "a", 103, 3)
        register_replies(transport, "b", 104, 4)
        transport.add("POST", "/subjects/root/versions", json_response({"id": 200}))

        schema = await client.register(
            "root",
            SuppliedSchema(
                schema_type=SchemaType.PROTOBUF, schema_text="schema root", references=tree
            ),
        )

        assert transport.posted_urls() == [
            "/subjects/a1/versions",
            "/subjects/a1",
            "/subjects/a2/versions",
            "/subjects/a2",
            "/subjects/a/versions",
            "/subjects/a",
            "/subjects/b/versions",
            "/subjects/b",
            "/subjects/root/versions",
        ]
        assert schema.id == 200
        assert schema.schema_text == "schema root"
        assert schema.references == (
            RegisteredReference(name="a.proto", subject="a", version=3),
            RegisteredReference(name="b.proto", subject="b", version=4),
        )

    @pytest.mark.asyncio
    async def test_parent_body_lists_resolved_children(self, client, transport):
        register_replies(transport, "leaf", 1, 5)
        register_replies(transport, "mid", 2, 6)
        transport.add("POST", "/subjects/root/versions", json_response({"id": 3}))

        await client.register(
            "root",
            SuppliedSchema(
                schema_type=SchemaType.PROTOBUF,
                schema_text="schema root",
                references=[reference("mid", [reference("leaf")])],
            ),
        )

        mid_bodies = [b for m, u, b in transport.calls if u.endswith("/subjects/mid/versions")]
        assert mid_bodies == [
            {
                "schema": "schema mid",
                "schemaType": "PROTOBUF",
                "references": [{"name": "leaf.proto", "subject": "leaf", "version": 5}],
            }
        ]
        _, _, root_body = transport.calls[-1]
        assert root_body["references"] == [{"name": "mid.proto", "subject": "mid", "version": 6}]

    @pytest.mark.asyncio
    async def test_reference_failure_aborts_registration(self, client, transport):
        transport.add("POST", "/subjects/a/versions", json_response({"id": 1}))
        transport.add("POST", "/subjects/a", TransportResponse(status=422, body=b"{}"))

        with pytest.raises(SRCError) as exc_info:
            await client.register(
                "root", SuppliedSchema(schema_text="root", references=[reference("a")])
            )

        assert exc_info.value.message == "Error posting a reference"
        assert "422" in exc_info.value.cause
        assert exc_info.value.retriable is False
        assert "/subjects/root/versions" not in transport.posted_urls()

    @pytest.mark.asyncio
    async def test_reference_transport_failure_stays_retriable(self, client, transport):
        transport.add("POST", "/subjects/a/versions", connection_refused())

        with pytest.raises(SRCError) as exc_info:
            await client.register(
                "root", SuppliedSchema(schema_text="root", references=[reference("a")])
            )

        assert exc_info.value.message == "Error posting a reference"
        assert exc_info.value.retriable is True

    @pytest.mark.asyncio
    async def test_missing_version_in_response(self, client, transport):
        transport.add("POST", "/subjects/a/versions", json_response({"id": 1}))
        transport.add("POST", "/subjects/a", json_response({"id": 1}))

        with pytest.raises(SRCError) as exc_info:
            await client.register(
                "root", SuppliedSchema(schema_text="root", references=[reference("a")])
            )

        assert "Could not get version from response" in exc_info.value.cause

    @pytest.mark.asyncio
    async def test_negative_version_in_response(self, client, transport):
        register_replies(transport, "a", 1, -1)

        with pytest.raises(SRCError) as exc_info:
            await client.register_reference("a", SchemaType.PROTOBUF, reference("a"))

        assert exc_info.value.message == "Error posting a reference"
        assert "Could not get version from response" in exc_info.value.cause

    @pytest.mark.asyncio
    async def test_id_out_of_range_in_register_response(self, client, transport):
        transport.add("POST", "/subjects/s/versions", json_response({"id": 2**32}))

        with pytest.raises(ParseError, match="Could not get id from response"):
            await client.register("s", SuppliedSchema(schema_text="{}"))

    @pytest.mark.asyncio
    async def test_nested_reference_failure_wrapped_once(self, client, transport):
        transport.add("POST", "/subjects/leaf/versions", TransportResponse(status=500, body=b"{}"))

        with pytest.raises(SRCError) as exc_info:
            await client.register_reference(
                "mid", SchemaType.PROTOBUF, reference("mid", [reference("leaf")])
            )

        assert exc_info.value.message == "Error posting a reference"
        assert "Error posting a reference" not in exc_info.value.cause
        assert "500" in exc_info.value.cause
        assert transport.posted_urls() == ["/subjects/leaf/versions"]

    @pytest.mark.asyncio
    async def test_reference_depth_limit(self, transport):
        client = SchemaRegistryClient(
            SchemaRegistryConfig(url=REGISTRY_URL, max_reference_depth=2), transport=transport
        )
        deep = reference("a", [reference("b", [reference("c")])])

        with pytest.raises(SRCError) as exc_info:
            await client.register("root", SuppliedSchema(schema_text="root", references=[deep]))

        assert exc_info.value.retriable is False
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_register_reference(self, client, transport):
        register_replies(transport, "leaf", 1, 2)
        register_replies(transport, "custom-subject", 3, 9)

        registered = await client.register_reference(
            "custom-subject", SchemaType.PROTOBUF, reference("mid", [reference("leaf")])
        )

        assert registered == RegisteredReference(
            name="mid.proto", subject="custom-subject", version=9
        )
        assert transport.posted_urls() == [
            "/subjects/leaf/versions",
            "/subjects/leaf",
            "/subjects/custom-subject/versions",
            "/subjects/custom-subject",
        ]


class TestBuildRegisterBody:
    def test_other_type_uses_name(self):
        body = build_register_body(SchemaType.other("XML"), "<x/>", [])

        assert body == {"schema": "<x/>", "schemaType": "XML"}


class TestClose:
    @pytest.mark.asyncio
    async def test_context_manager_closes_transport(self, config):
        transport = FakeTransport()

        async with SchemaRegistryClient(config, transport=transport):
            pass

        assert transport.closed is True
