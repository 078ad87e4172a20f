"""The remote registry interface consumed by the adapter."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Callable, Iterable, Protocol

from pluginsync.model.catalog import Message, MessageFilter


class RecordKind(Enum):
    ASSEMBLY = "pluginassembly"
    HANDLER = "plugintype"
    STEP = "sdkmessageprocessingstep"
    IMAGE = "sdkmessageprocessingstepimage"
    MESSAGE = "sdkmessage"
    FILTER = "sdkmessagefilter"


Record = dict
Predicate = Callable[[Record], bool]


class RemoteRegistry(Protocol):
    """Blocking record store holding registrations and catalogs."""

    def find(self, kind: RecordKind, predicate: Predicate | None = None) -> list[Record]:
        ...

    def create(self, kind: RecordKind, record: Record) -> uuid.UUID:
        ...

    def update(self, kind: RecordKind, record: Record) -> None:
        ...

    def delete(self, kind: RecordKind, record_id: uuid.UUID) -> None:
        ...

    def set_state(self, step_id: uuid.UUID, enabled: bool) -> None:
        ...

    def list_public_messages(self) -> list[Message]:
        ...

    def list_filters(self, message_ids: Iterable[uuid.UUID]) -> list[MessageFilter]:
        ...
