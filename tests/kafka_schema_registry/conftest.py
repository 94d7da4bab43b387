"""
Pytest fixtures for schema registry client tests.

Provides fixtures for:
- Test registry configuration
- A recording in-memory transport
- A registry client wired to that transport
"""

import pytest

from kafka_schema_registry.config import SchemaRegistryConfig
from kafka_schema_registry.registry import SchemaRegistryClient
from tests.kafka_schema_registry.fakes import REGISTRY_URL, FakeTransport


@pytest.fixture
def config() -> SchemaRegistryConfig:
    """Create test registry configuration."""
    return SchemaRegistryConfig(url=REGISTRY_URL)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def client(config, transport) -> SchemaRegistryClient:
    return SchemaRegistryClient(config, transport=transport)
