"""
Memory-resident entity cache.

Each entity kind (users, channels, groups) gets an :class:`EntityStore`
partition keyed by entity id; ``self`` and ``team`` are
:class:`SingletonSlot` values. Reads go through to the Web API on a miss,
writes are plain upserts. Nothing here expires: an entry changes only
when something saves over it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator

from slack_runtime.errors import ApiError
from slack_runtime.types import Entity, OrgData

logger = logging.getLogger(__name__)

Call = Callable[[str, dict[str, Any]], Awaitable[dict[str, Any]]]
Identify = Callable[[], Awaitable[Any]]


def _is_entity(value: Any) -> bool:
    return isinstance(value, dict) and value.get("id") is not None


@dataclass(frozen=True)
class EntityKind:
    """How one kind of entity is fetched."""

    name: str
    plural: str
    info_arg: str
    info_key: str
    list_key: str

    @property
    def info_method(self) -> str:
        return f"{self.plural}.info"

    @property
    def list_method(self) -> str:
        return f"{self.plural}.list"


USER = EntityKind("user", "users", info_arg="user", info_key="user", list_key="members")
CHANNEL = EntityKind("channel", "channels", info_arg="channel", info_key="channel", list_key="channels")
GROUP = EntityKind("group", "groups", info_arg="channel", info_key="group", list_key="groups")


class EntityStore:
    """Cache partition for one :class:`EntityKind`."""

    def __init__(self, kind: EntityKind, call: Call) -> None:
        self.kind = kind
        self._call = call
        self._entries: dict[str, Entity] | None = None
        self._complete = False

    def _partition(self) -> dict[str, Entity]:
        if self._entries is None:
            self._entries = {}
        return self._entries

    @property
    def created(self) -> bool:
        return self._entries is not None

    @property
    def complete(self) -> bool:
        """Whether the partition holds a full listing (snapshot or ``list`` call)."""
        return self._complete

    def __len__(self) -> int:
        return len(self._entries or {})

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in (self._entries or {})

    def __iter__(self) -> Iterator[Entity]:
        return iter(list((self._entries or {}).values()))

    def peek(self, entity_id: str) -> Entity | None:
        """Cached entity or ``None``, never touching the network."""
        return self._partition().get(entity_id)

    async def get(self, entity_id: str) -> Entity:
        """Cached entity, fetching it with ``<plural>.info`` on a miss.

        The fetched entity is stored under the id the server returned.
        Request errors propagate and leave the cache untouched; a response
        without a usable entity raises ``ApiError("invalid_response")``.
        """
        entries = self._partition()
        if entity_id in entries:
            return entries[entity_id]

        logger.debug("%s cache miss for %s", self.kind.plural, entity_id)
        method = self.kind.info_method
        body = await self._call(method, {self.kind.info_arg: entity_id})
        entity = body.get(self.kind.info_key)
        if not _is_entity(entity):
            raise ApiError("invalid_response", method=method, body=body)
        self.save(entity)
        return entity

    def find_in_cache(self, predicate: Callable[[Entity], bool]) -> Entity | None:
        """First cached entity matching ``predicate``, or ``None``."""
        for entity in self._partition().values():
            if predicate(entity):
                return entity
        return None

    def save(self, entity: Entity) -> None:
        """Insert or replace ``entity`` by its id."""
        self._partition()[entity["id"]] = entity

    def save_all(self, entities: list[Entity]) -> None:
        for entity in entities:
            self.save(entity)
        self._complete = True

    async def all(self) -> dict[str, Entity]:
        """Every entity of this kind, keyed by id, as a copy of the partition.

        Served from the cache once the partition holds a full listing;
        otherwise fetched with ``<plural>.list`` and saved first. Entities
        cached one by one (through ``get``, ``save`` or push events) do not
        make the partition complete.
        """
        if self._complete:
            return dict(self._partition())

        method = self.kind.list_method
        body = await self._call(method, {})
        entities = body.get(self.kind.list_key, [])
        if not isinstance(entities, list) or not all(_is_entity(e) for e in entities):
            raise ApiError("invalid_response", method=method, body=body)
        self.save_all(entities)
        logger.debug("Listed %d %s", len(self), self.kind.plural)
        return dict(self._partition())


class SingletonSlot:
    """Holder for ``self`` or ``team``."""

    def __init__(self, name: str, identify: Identify) -> None:
        self.name = name
        self._identify = identify
        self._value: Entity | None = None

    @property
    def value(self) -> Entity | None:
        return self._value

    @property
    def is_empty(self) -> bool:
        return self._value is None

    async def get(self) -> Entity | None:
        """Cached value, running the identity check first when empty."""
        if self._value is None:
            await self._identify()
        return self._value

    def save(self, value: Entity) -> None:
        """Overwrite unconditionally."""
        self._value = value

    def save_if_empty(self, value: Entity) -> bool:
        """Fill the slot only when nothing is cached yet."""
        if self._value is not None:
            return False
        self._value = value
        return True


class Storage:
    """All cache partitions and slots of one client."""

    def __init__(self, call: Call, identify: Identify) -> None:
        self.self = SingletonSlot("self", identify)
        self.team = SingletonSlot("team", identify)
        self.users = EntityStore(USER, call)
        self.channels = EntityStore(CHANNEL, call)
        self.groups = EntityStore(GROUP, call)

    def partition(self, plural: str) -> EntityStore:
        store = getattr(self, plural, None)
        if not isinstance(store, EntityStore):
            raise KeyError(plural)
        return store

    def apply_snapshot(self, data: OrgData) -> None:
        """Write an ``rtm.start`` snapshot; it wins over anything cached."""
        if data.self_ is not None:
            self.self.save(data.self_)
        if data.team is not None:
            self.team.save(data.team)
        self.users.save_all(data.users)
        self.channels.save_all(data.channels)
        self.groups.save_all(data.groups)
        logger.debug(
            "Snapshot cached: %d users, %d channels, %d groups",
            len(data.users), len(data.channels), len(data.groups),
        )
