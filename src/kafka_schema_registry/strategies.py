"""
Subject naming strategies.

A strategy combines a base kind (record name, topic name, topic + record name)
with an optional inline schema. Strategies without a schema only look up the
latest version of an existing subject; strategies with a schema register it
(or get back the id of an identical, already registered schema).

Subjects follow the Java client's naming so both can share a registry.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from kafka_schema_registry.common.exceptions import SubjectValidationError
from kafka_schema_registry.schemas.models import SuppliedSchema

MISSING_NAME_MESSAGE = (
    "name is mandatory in SuppliedSchema when used in TopicRecordNameStrategyWithSchema"
)


class StrategyKind(Enum):
    RECORD_NAME = "RecordNameStrategy"
    TOPIC_NAME = "TopicNameStrategy"
    TOPIC_RECORD_NAME = "TopicRecordNameStrategy"


@dataclass(frozen=True)
class SubjectNameStrategy:
    """How to derive the registry subject for a record.

    Build instances with the classmethods rather than the constructor; they
    make sure each kind carries the fields it needs.
    """

    kind: StrategyKind
    topic: Optional[str] = None
    is_key: bool = False
    record_name: Optional[str] = None
    schema: Optional[SuppliedSchema] = None

    @classmethod
    def record_name_strategy(cls, record_name: str) -> "SubjectNameStrategy":
        return cls(StrategyKind.RECORD_NAME, record_name=record_name)

    @classmethod
    def topic_name_strategy(cls, topic: str, is_key: bool) -> "SubjectNameStrategy":
        return cls(StrategyKind.TOPIC_NAME, topic=topic, is_key=is_key)

    @classmethod
    def topic_record_name_strategy(cls, topic: str, record_name: str) -> "SubjectNameStrategy":
        return cls(StrategyKind.TOPIC_RECORD_NAME, topic=topic, record_name=record_name)

    @classmethod
    def record_name_strategy_with_schema(cls, schema: SuppliedSchema) -> "SubjectNameStrategy":
        return cls(StrategyKind.RECORD_NAME, schema=schema)

    @classmethod
    def topic_name_strategy_with_schema(
        cls, topic: str, is_key: bool, schema: SuppliedSchema
    ) -> "SubjectNameStrategy":
        return cls(StrategyKind.TOPIC_NAME, topic=topic, is_key=is_key, schema=schema)

    @classmethod
    def topic_record_name_strategy_with_schema(
        cls, topic: str, schema: SuppliedSchema
    ) -> "SubjectNameStrategy":
        return cls(StrategyKind.TOPIC_RECORD_NAME, topic=topic, schema=schema)

    @property
    def requires_registration(self) -> bool:
        return self.schema is not None

    def __repr__(self) -> str:
        suffix = "WithSchema" if self.schema is not None else ""
        if self.kind is StrategyKind.RECORD_NAME:
            args = [] if self.schema is not None else [repr(self.record_name)]
        elif self.kind is StrategyKind.TOPIC_NAME:
            args = [repr(self.topic), repr(self.is_key)]
        else:
            args = [repr(self.topic)]
            if self.schema is None:
                args.append(repr(self.record_name))
        if self.schema is not None:
            args.append(f"<schema {self.schema.schema_type}>")
        return f"{self.kind.value}{suffix}({', '.join(args)})"


def _record_name(strategy: SubjectNameStrategy) -> str:
    if strategy.schema is None:
        if strategy.record_name is None:
            raise SubjectValidationError(
                f"record name is mandatory for {strategy.kind.value}"
            )
        return strategy.record_name
    if strategy.schema.name is None:
        raise SubjectValidationError(MISSING_NAME_MESSAGE)
    return strategy.schema.name


def subject_for(strategy: SubjectNameStrategy) -> str:
    """
    Derive the registry subject for a strategy.

    The subject is also the basis of the strategy cache key.

    Raises:
        SubjectValidationError: If a record name is needed but missing
    """
    if strategy.kind is StrategyKind.RECORD_NAME:
        return _record_name(strategy)
    if strategy.kind is StrategyKind.TOPIC_NAME:
        suffix = "key" if strategy.is_key else "value"
        return f"{strategy.topic}-{suffix}"
    return f"{strategy.topic}-{_record_name(strategy)}"


def inline_schema_of(strategy: SubjectNameStrategy) -> Optional[SuppliedSchema]:
    """Return the schema carried by a *WithSchema strategy, else None."""
    return strategy.schema
