"""
Resolution cache for registered schemas.

Keeps three maps, by schema id, by naming strategy and by (subject, version)
reference. Each entry is either a RegisteredSchema or the SRCError the lookup
ended with, so repeated lookups of an invalid id do not go back to the
registry. Loads are single-flight: concurrent callers for the same key wait for
the one request in flight instead of issuing their own.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Hashable, Tuple, Union

from kafka_schema_registry import metrics
from kafka_schema_registry.common.exceptions import SRCError
from kafka_schema_registry.common.logging import LoggedClass
from kafka_schema_registry.schemas.models import RegisteredReference, RegisteredSchema
from kafka_schema_registry.strategies import SubjectNameStrategy

ID_CACHE = "id"
STRATEGY_CACHE = "strategy"
REFERENCE_CACHE = "reference"

CacheEntry = Union[RegisteredSchema, SRCError]
Loader = Callable[[], Awaitable[RegisteredSchema]]


class SchemaCache(LoggedClass):
    """
    Memoizes schema resolutions and terminal errors.

    Errors are stored through SRCError.into_cache(). The caller whose lookup
    failed gets the original error (cached=False); later callers get a copy of
    the stored one (cached=True). Retriable errors are only stored when
    cache_retriable_errors is set; callers that want to retry after a
    transient failure can check ``retriable and cached`` and call
    remove_errors().

    A cache belongs to exactly one decoder or encoder and is not meant to be
    shared between them.
    """

    log_component = "cache"

    def __init__(self, cache_retriable_errors: bool = True):
        self.cache_retriable_errors = cache_retriable_errors
        self._entries: Dict[str, Dict[Hashable, CacheEntry]] = {
            ID_CACHE: {},
            STRATEGY_CACHE: {},
            REFERENCE_CACHE: {},
        }
        self._locks: Dict[Tuple[str, Hashable], asyncio.Lock] = {}
        # Number of callers holding or waiting for each lock
        self._lock_users: Dict[Tuple[str, Hashable], int] = {}
        super().__init__()

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    async def get_by_id(self, schema_id: int, loader: Loader) -> RegisteredSchema:
        return await self.get_or_load(ID_CACHE, schema_id, loader)

    async def get_by_strategy(
        self, strategy: SubjectNameStrategy, loader: Loader
    ) -> RegisteredSchema:
        return await self.get_or_load(STRATEGY_CACHE, strategy, loader)

    async def get_by_reference(
        self, reference: RegisteredReference, loader: Loader
    ) -> RegisteredSchema:
        return await self.get_or_load(
            REFERENCE_CACHE, (reference.subject, reference.version), loader
        )

    def _lookup(self, cache: str, key: Hashable) -> RegisteredSchema:
        entry = self._entries[cache][key]
        if isinstance(entry, SRCError):
            metrics.cache_lookups_total.labels(cache=cache, result="error_hit").inc()
            raise entry.clone()
        metrics.cache_lookups_total.labels(cache=cache, result="hit").inc()
        return entry

    async def get_or_load(self, cache: str, key: Hashable, loader: Loader) -> RegisteredSchema:
        """
        Return the cached resolution for key, running loader on a miss.

        Raises:
            SRCError: The error the load ended with, or its cached copy
        """
        entries = self._entries[cache]
        if key in entries:
            return self._lookup(cache, key)

        lock_key = (cache, key)
        lock = self._locks.setdefault(lock_key, asyncio.Lock())
        self._lock_users[lock_key] = self._lock_users.get(lock_key, 0) + 1
        try:
            async with lock:
                # Filled by the caller we were waiting on
                if key in entries:
                    return self._lookup(cache, key)
                return await self._load(cache, key, loader)
        finally:
            self._lock_users[lock_key] -= 1
            if not self._lock_users[lock_key]:
                del self._lock_users[lock_key]
                del self._locks[lock_key]

    async def _load(self, cache: str, key: Hashable, loader: Loader) -> RegisteredSchema:
        metrics.cache_lookups_total.labels(cache=cache, result="miss").inc()
        try:
            schema = await loader()
        except SRCError as e:
            metrics.registry_errors_total.labels(error_category=e.category.value).inc()
            if e.retriable and not self.cache_retriable_errors:
                self._log(
                    logging.DEBUG,
                    "Not caching retriable error",
                    cache=cache,
                    error_message=e.message,
                )
                raise
            self._entries[cache][key] = e.into_cache()
            self._log(
                logging.DEBUG,
                "Cached resolution error",
                cache=cache,
                retriable=e.retriable,
                error_message=e.message,
            )
            raise

        self._entries[cache][key] = schema
        return schema

    def remove_errors(self) -> int:
        """Drop every cached error so the next lookup goes to the registry.

        Returns:
            Number of entries removed
        """
        removed = 0
        for entries in self._entries.values():
            for key in [k for k, v in entries.items() if isinstance(v, SRCError)]:
                del entries[key]
                removed += 1
        if removed:
            self._log(logging.INFO, "Removed cached errors", removed=removed)
        return removed

    def clear(self) -> None:
        for entries in self._entries.values():
            entries.clear()
