"""
Version-gated persistence of entities.

The VersionLedger turns "save this entity" into a conditioned write against
the shared table and reports the outcome as a WriteResult:

- insert: key must not exist yet
- update: key must exist and its stored version must equal ``initial_version``
- upsert: unconditional
- delete_if_version: key must exist and its stored version must equal ``version``

A failed condition is classified with one follow-up read: a missing item is
NOT_FOUND, anything else is a CONFLICT. The read is not atomic with the
write, so the reported ``actual_version`` is only a hint.
"""

from __future__ import annotations

import logging
from typing import TypeVar

from kvcoord.backends.interface import (
    ConditionedDelete,
    ConditionedPut,
    KeyValueBackend,
    WriteOutcome,
)
from kvcoord.conditions import Attr, Condition
from kvcoord.config import TableConfig
from kvcoord.exceptions import BackendUnavailableError
from kvcoord.observability import (
    ATTR_ENTITY_TYPE,
    ATTR_EXPECTED_VERSION,
    ATTR_PARTITION_KEY,
    ATTR_SORT_KEY,
    ATTR_TABLE_NAME,
    ATTR_VERSION,
    ATTR_WRITE_STATUS,
    Tracer,
    create_tracer,
)
from kvcoord.types import Item, ItemKey
from kvcoord.versioning.entity import VersionedEntity
from kvcoord.versioning.results import WriteResult

logger = logging.getLogger(__name__)

TEntity = TypeVar("TEntity", bound=VersionedEntity)


class VersionLedger:
    """
    Persists VersionedEntity instances with optimistic concurrency.

    Example:
        >>> ledger = VersionLedger(backend, TableConfig(prefix="dev-"))
        >>> auction = await ledger.get(Auction, ItemKey("auction#42", "Auction"))
        >>> auction.place_bid(150)  # calls advance_version()
        >>> result = await ledger.update(auction)
        >>> if result.conflict:
        ...     ...  # reload, reapply, retry

    Note:
        Nothing is retried automatically; conflicts and missing entities are
        returned to the caller.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        config: TableConfig | None = None,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the ledger.

        Args:
            backend: Key-value backend holding the entities
            config: Table name and key schema (defaults to TableConfig())
            tracer: Optional custom Tracer instance. If not provided, one is
                   created based on enable_tracing setting.
            enable_tracing: Whether to emit OpenTelemetry spans (default True).
                          Ignored if tracer is explicitly provided.
        """
        self._backend = backend
        self._config = config or TableConfig()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def config(self) -> TableConfig:
        return self._config

    def _key_exists(self) -> Condition:
        return Attr(self._config.hash_key_name).exists() & Attr(self._config.range_key_name).exists()

    def _key_not_exists(self) -> Condition:
        return (
            Attr(self._config.hash_key_name).not_exists()
            & Attr(self._config.range_key_name).not_exists()
        )

    def _version_is(self, version: str) -> Condition:
        return self._key_exists() & Attr(self._config.version_attribute).eq(version)

    def item_for(self, entity: VersionedEntity) -> Item:
        """
        Full item for ``entity``: business fields, key attributes and current version.

        Raises:
            ValueError: If a business field uses a key or version attribute name
        """
        attributes = entity.to_attributes()
        reserved = {
            self._config.hash_key_name,
            self._config.range_key_name,
            self._config.version_attribute,
        }
        collisions = reserved & attributes.keys()
        if collisions:
            raise ValueError(
                f"{type(entity).__name__} fields collide with reserved attributes: "
                f"{sorted(collisions)}"
            )
        attributes.update(self._config.key_attributes(entity.item_key()))
        attributes[self._config.version_attribute] = entity.version
        return attributes

    def build_insert(self, entity: VersionedEntity) -> ConditionedPut:
        """
        Build a put that only succeeds if the key does not exist yet.

        Raises:
            ValueError: If the entity has no version (call advance_version() first)
        """
        if not entity.version:
            raise ValueError(
                f"{type(entity).__name__} has no version; call advance_version() before inserting"
            )
        return ConditionedPut(
            table=self._config.full_name,
            key=entity.item_key(),
            item=self.item_for(entity),
            condition=self._key_not_exists(),
        )

    def build_conditioned_update(self, entity: VersionedEntity) -> ConditionedPut:
        """
        Build a put of the full entity conditioned on its ``initial_version``.

        The write succeeds only if the item exists and its stored version
        equals ``entity.initial_version``; on success the stored version
        becomes ``entity.version``.

        Raises:
            ValueError: If the entity was never stored or was not advanced
                since it was loaded or last written
        """
        if not entity.initial_version:
            raise ValueError(
                f"{type(entity).__name__} has no initial version; insert it before updating"
            )
        if not entity.versions.is_advanced:
            raise ValueError(
                f"{type(entity).__name__} version was not advanced; "
                "call advance_version() before building an update"
            )
        return ConditionedPut(
            table=self._config.full_name,
            key=entity.item_key(),
            item=self.item_for(entity),
            condition=self._version_is(entity.initial_version),
        )

    def build_upsert(self, entity: VersionedEntity) -> ConditionedPut:
        """
        Build an unconditional put of the full entity.

        The put still stores a fresh version, so writers holding the
        replaced version fail their conditions afterwards.

        Raises:
            ValueError: If the entity was not advanced since it was loaded or
                last written
        """
        if not entity.versions.is_advanced:
            raise ValueError(
                f"{type(entity).__name__} version was not advanced; "
                "call advance_version() before upserting"
            )
        return ConditionedPut(
            table=self._config.full_name,
            key=entity.item_key(),
            item=self.item_for(entity),
        )

    async def insert(self, entity: VersionedEntity) -> WriteResult:
        """
        Store a new entity.

        A brand-new entity is given its first version automatically. An
        existing key is reported as CONFLICT.
        """
        if entity.versions.is_new:
            entity.advance_version()
        return await self._submit("insert", entity, self.build_insert(entity), None)

    async def update(self, entity: VersionedEntity) -> WriteResult:
        """Store a changed entity if nobody else changed it since it was loaded."""
        request = self.build_conditioned_update(entity)
        return await self._submit("update", entity, request, entity.initial_version)

    async def upsert(self, entity: VersionedEntity) -> WriteResult:
        """Store an entity unconditionally, overwriting whatever is there."""
        if not entity.versions.is_advanced:
            entity.advance_version()
        return await self._submit("upsert", entity, self.build_upsert(entity), None)

    async def get(self, entity_cls: type[TEntity], key: ItemKey) -> TEntity | None:
        """
        Load an entity by key.

        Returns:
            The entity with both versions set to the stored version, or None

        Raises:
            BackendUnavailableError: If the backend fails (logged at ERROR)
        """
        with self._tracer.span(
            "kvcoord.ledger.get",
            {
                ATTR_ENTITY_TYPE: entity_cls.__name__,
                ATTR_TABLE_NAME: self._config.full_name,
                ATTR_PARTITION_KEY: key.partition,
                ATTR_SORT_KEY: key.sort,
            },
        ):
            try:
                item = await self._backend.get_item(self._config.full_name, key)
            except BackendUnavailableError:
                logger.error("Backend unavailable while loading %s", key, exc_info=True)
                raise

            if item is None:
                return None
            return entity_cls.from_item(item, self._config)

    async def delete_if_version(self, entity: VersionedEntity) -> WriteResult:
        """
        Delete an entity if the store still holds the version last loaded or written.

        Reported with the same statuses as writes: CONFLICT if the stored
        version differs, NOT_FOUND if the item is gone.
        """
        key = entity.item_key()
        request = ConditionedDelete(
            table=self._config.full_name,
            key=key,
            condition=self._version_is(entity.version),
        )
        with self._tracer.span(
            "kvcoord.ledger.delete",
            {
                ATTR_ENTITY_TYPE: type(entity).__name__,
                ATTR_TABLE_NAME: self._config.full_name,
                ATTR_PARTITION_KEY: key.partition,
                ATTR_SORT_KEY: key.sort,
                ATTR_EXPECTED_VERSION: entity.version,
            },
        ) as span:
            try:
                outcome = await self._backend.delete_if(request)
                if outcome is WriteOutcome.APPLIED:
                    result = WriteResult.successful(key, entity.version)
                else:
                    result = await self._classify_failure(key, entity.version)
            except BackendUnavailableError as e:
                logger.error("Backend unavailable while deleting %s", key, exc_info=True)
                result = WriteResult.failed(key, e, entity.version)

            if span is not None:
                span.set_attribute(ATTR_WRITE_STATUS, result.status.value)
            return result

    async def _submit(
        self,
        operation: str,
        entity: VersionedEntity,
        request: ConditionedPut,
        expected_version: str | None,
    ) -> WriteResult:
        key = request.key
        with self._tracer.span(
            f"kvcoord.ledger.{operation}",
            {
                ATTR_ENTITY_TYPE: type(entity).__name__,
                ATTR_TABLE_NAME: request.table,
                ATTR_PARTITION_KEY: key.partition,
                ATTR_SORT_KEY: key.sort,
                ATTR_EXPECTED_VERSION: expected_version or "",
                ATTR_VERSION: entity.version,
            },
        ) as span:
            try:
                outcome = await self._backend.put_if(request)
                if outcome is WriteOutcome.APPLIED:
                    logger.debug("%s of %s stored version %s", operation, key, entity.version)
                    entity.mark_stored()
                    result = WriteResult.successful(key, expected_version)
                else:
                    result = await self._classify_failure(key, expected_version)
            except BackendUnavailableError as e:
                logger.error("Backend unavailable during %s of %s", operation, key, exc_info=True)
                result = WriteResult.failed(key, e, expected_version)

            if span is not None:
                span.set_attribute(ATTR_WRITE_STATUS, result.status.value)
            return result

    async def _classify_failure(self, key: ItemKey, expected_version: str | None) -> WriteResult:
        item = await self._backend.get_item(self._config.full_name, key)
        if item is None:
            logger.debug("Conditioned write to %s found no item", key)
            return WriteResult.missing(key, expected_version)

        actual_version = item.get(self._config.version_attribute)
        logger.debug(
            "Version conflict for %s: expected=%s, actual=%s",
            key,
            expected_version,
            actual_version,
        )
        return WriteResult.conflicted(key, expected_version, actual_version)


__all__ = ["VersionLedger"]
