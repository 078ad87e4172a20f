"""In-memory and local file-based registry implementations.

A simple registry for development, dry runs and tests. ``InMemoryRegistry``
keeps records in per-kind tables and logs every write; ``LocalRegistry``
persists the same tables as JSON in a local directory.
"""

from __future__ import annotations

import copy
import json
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from pluginsync.errors import MissingArgumentError, RecordNotFoundError
from pluginsync.model.catalog import Message, MessageFilter
from pluginsync.registry.protocol import Predicate, Record, RecordKind

# Child kind -> (parent kind, foreign key field)
_PARENTS = {
    RecordKind.HANDLER: (RecordKind.ASSEMBLY, "assembly_id"),
    RecordKind.STEP: (RecordKind.HANDLER, "handler_id"),
    RecordKind.IMAGE: (RecordKind.STEP, "step_id"),
}


@dataclass(frozen=True)
class WriteRecord:
    """One write issued against the registry."""

    operation: str  # create | update | delete | set_state
    kind: RecordKind
    record_id: uuid.UUID
    name: str = ""


class InMemoryRegistry:
    """Registry held in memory, with a log of every write."""

    def __init__(self):
        self._tables: dict[RecordKind, dict[uuid.UUID, Record]] = {kind: {} for kind in RecordKind}
        self.writes: list[WriteRecord] = []

    # ── Remote registry interface ────────────────────────────────────

    def find(self, kind: RecordKind, predicate: Predicate | None = None) -> list[Record]:
        return [
            copy.deepcopy(r)
            for r in self._tables[kind].values()
            if predicate is None or predicate(r)
        ]

    def create(self, kind: RecordKind, record: Record) -> uuid.UUID:
        record_id = uuid.uuid4()
        data = copy.deepcopy(record)
        data["id"] = record_id
        if kind == RecordKind.STEP:
            data.setdefault("enabled", True)
        self._tables[kind][record_id] = data
        self._log("create", kind, record_id, data.get("name") or data.get("type_name", ""))
        self._changed()
        return record_id

    def update(self, kind: RecordKind, record: Record) -> None:
        record_id = record.get("id")
        if record_id not in self._tables[kind]:
            raise RecordNotFoundError(kind.value, record_id)

        data = copy.deepcopy(record)
        workflows = data.pop("workflows", [])
        self._tables[kind][record_id].update(data)

        # Assembly updates carry the group names of its existing activities
        for workflow in workflows:
            handler = self._tables[RecordKind.HANDLER].get(workflow["id"])
            if handler is not None:
                handler["workflow_group_name"] = workflow.get("workflow_group_name")

        stored = self._tables[kind][record_id]
        self._log("update", kind, record_id, stored.get("name") or stored.get("type_name", ""))
        self._changed()

    def delete(self, kind: RecordKind, record_id: uuid.UUID) -> None:
        record = self._tables[kind].pop(record_id, None)
        if record is None:
            raise RecordNotFoundError(kind.value, record_id)
        self._cascade_delete(kind, record_id)
        self._log("delete", kind, record_id, record.get("name") or record.get("type_name", ""))
        self._changed()

    def set_state(self, step_id: uuid.UUID, enabled: bool) -> None:
        step = self._tables[RecordKind.STEP].get(step_id)
        if step is None:
            raise RecordNotFoundError(RecordKind.STEP.value, step_id)
        step["enabled"] = bool(enabled)
        self._log("set_state", RecordKind.STEP, step_id, step.get("name", ""))
        self._changed()

    def list_public_messages(self) -> list[Message]:
        rows = sorted(self._tables[RecordKind.MESSAGE].values(), key=lambda r: r["name"])
        return [Message(id=r["id"], name=r["name"]) for r in rows if not r.get("is_private", False)]

    def list_filters(self, message_ids: Iterable[uuid.UUID]) -> list[MessageFilter]:
        wanted = set(message_ids)
        return [
            MessageFilter(
                id=r["id"],
                message_id=r["message_id"],
                primary_entity_name=r["primary_entity_name"],
                secondary_entity_name=r.get("secondary_entity_name"),
            )
            for r in self._tables[RecordKind.FILTER].values()
            if r["message_id"] in wanted and r.get("custom_processing_step_allowed", True)
        ]

    # ── Catalog seeding ──────────────────────────────────────────────

    def add_message(self, name: str, is_private: bool = False) -> Message:
        """Add a message to the catalog, or return the existing one."""
        if not name:
            raise MissingArgumentError("name")
        for row in self._tables[RecordKind.MESSAGE].values():
            if row["name"] == name:
                return Message(id=row["id"], name=name)

        message_id = uuid.uuid4()
        self._tables[RecordKind.MESSAGE][message_id] = {
            "id": message_id,
            "name": name,
            "is_private": is_private,
        }
        self._changed()
        return Message(id=message_id, name=name)

    def add_filter(self, message_name: str, entity_name: str, secondary_entity_name: str | None = None) -> MessageFilter:
        """Allow custom steps for a message on an entity, adding the message if needed."""
        if not entity_name:
            raise MissingArgumentError("entity_name")
        message = self.add_message(message_name)
        entity = entity_name.lower()

        for row in self._tables[RecordKind.FILTER].values():
            if row["message_id"] == message.id and row["primary_entity_name"] == entity:
                return MessageFilter(row["id"], message.id, entity, row.get("secondary_entity_name"))

        filter_id = uuid.uuid4()
        self._tables[RecordKind.FILTER][filter_id] = {
            "id": filter_id,
            "message_id": message.id,
            "primary_entity_name": entity,
            "secondary_entity_name": secondary_entity_name,
            "custom_processing_step_allowed": True,
        }
        self._changed()
        return MessageFilter(filter_id, message.id, entity, secondary_entity_name)

    # ── Internals ────────────────────────────────────────────────────

    def writes_of(self, operation: str, kind: RecordKind | None = None) -> list[WriteRecord]:
        return [
            w for w in self.writes if w.operation == operation and (kind is None or w.kind == kind)
        ]

    def _cascade_delete(self, kind: RecordKind, record_id: uuid.UUID) -> None:
        for child_kind, (parent_kind, field_name) in _PARENTS.items():
            if parent_kind != kind:
                continue
            orphans = [
                cid for cid, r in self._tables[child_kind].items() if r.get(field_name) == record_id
            ]
            for cid in orphans:
                del self._tables[child_kind][cid]
                self._cascade_delete(child_kind, cid)

    def _log(self, operation: str, kind: RecordKind, record_id: uuid.UUID, name: str) -> None:
        self.writes.append(WriteRecord(operation, kind, record_id, name))

    def _changed(self) -> None:
        """Hook called after every mutation."""


class LocalRegistry(InMemoryRegistry):
    """File-based local registry persisted as JSON."""

    INDEX_FILE = "registry.json"

    def __init__(self, registry_dir: str | Path):
        super().__init__()
        self.registry_dir = Path(registry_dir)
        self.registry_dir.mkdir(parents=True, exist_ok=True)
        self.index_path = self.registry_dir / self.INDEX_FILE
        self._load_index()

    def _changed(self) -> None:
        self._save_index()

    def _load_index(self) -> None:
        if not self.index_path.exists():
            return
        with open(self.index_path) as f:
            data = json.load(f)
        for kind in RecordKind:
            for row in data.get(kind.value, []):
                record = _decode(row)
                self._tables[kind][record["id"]] = record

    def _save_index(self) -> None:
        data = {kind.value: [_encode(r) for r in self._tables[kind].values()] for kind in RecordKind}
        with open(self.index_path, "w") as f:
            json.dump(data, f, indent=2)


def _is_id_field(name: str) -> bool:
    return name == "id" or name.endswith("_id")


def _encode(record: Record) -> dict:
    return {k: str(v) if isinstance(v, uuid.UUID) else v for k, v in record.items()}


def _decode(row: dict) -> Record:
    return {
        k: uuid.UUID(v) if _is_id_field(k) and isinstance(v, str) and v else v
        for k, v in row.items()
    }
