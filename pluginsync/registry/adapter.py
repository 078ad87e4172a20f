"""Registry adapter — loads and writes registration records.

Wraps a ``RemoteRegistry`` and speaks in model records: it loads the whole
tree registered for an assembly, writes individual records, and deletes
records together with every descendant the caller did not pass explicitly.
"""

from __future__ import annotations

import base64
import uuid
from typing import Iterable

from pluginsync.errors import MissingArgumentError
from pluginsync.model.catalog import MessageCatalog
from pluginsync.model.entities import NIL_ID, Assembly, Handler, Image, Step
from pluginsync.registry.protocol import RecordKind, RemoteRegistry
from pluginsync.registry.records import (
    assembly_from_record,
    content_digest,
    handler_from_record,
    image_from_record,
    kind_of,
    step_from_record,
    to_record,
)
from pluginsync.utils.logger import get_logger

logger = get_logger(__name__)

# Deletion order: children before parents
_DELETE_ORDER = (
    RecordKind.IMAGE,
    RecordKind.STEP,
    RecordKind.HANDLER,
    RecordKind.ASSEMBLY,
)


class RegistryAdapter:
    """Model-level access to a remote registry."""

    def __init__(self, remote: RemoteRegistry):
        if remote is None:
            raise MissingArgumentError("remote")
        self.remote = remote

    # ── Catalogs ─────────────────────────────────────────────────────

    def load_catalog(self) -> MessageCatalog:
        """Public messages and the filters that allow custom steps on them."""
        messages = self.remote.list_public_messages()
        filters = self.remote.list_filters([m.id for m in messages])
        return MessageCatalog(messages=list(messages), filters=list(filters))

    # ── Loading ──────────────────────────────────────────────────────

    def load_by_name(self, name: str) -> Assembly | None:
        """Load the registered assembly tree, or None if it is not registered."""
        if not name:
            raise MissingArgumentError("name")

        found = self.remote.find(RecordKind.ASSEMBLY, lambda r: r.get("name") == name)
        if not found:
            return None

        assembly = assembly_from_record(found[0])
        assembly.rename(name)

        handler_records = self.remote.find(
            RecordKind.HANDLER, lambda r: r.get("assembly_id") == assembly.id
        )
        for handler_data in handler_records:
            handler = handler_from_record(handler_data)
            step_records = self.remote.find(
                RecordKind.STEP, lambda r, hid=handler.id: r.get("handler_id") == hid
            )
            for step_data in step_records:
                step = step_from_record(step_data)
                image_records = self.remote.find(
                    RecordKind.IMAGE, lambda r, sid=step.id: r.get("step_id") == sid
                )
                for image_data in image_records:
                    step.add_image(image_from_record(image_data))
                handler.add_step(step)
            assembly.add_handler(handler)

        logger.debug(
            f"Loaded assembly {name}: {len(assembly.handlers)} handler(s), "
            f"{len(assembly.steps)} step(s), {len(assembly.images)} image(s)"
        )
        return assembly

    # ── Assembly writes ──────────────────────────────────────────────

    def create_assembly(self, assembly: Assembly, payload: bytes | None = None) -> uuid.UUID:
        """Create the assembly record with the module content attached."""
        if assembly is None:
            raise MissingArgumentError("assembly")

        data = to_record(assembly)
        if payload is not None:
            data["content"] = base64.b64encode(payload).decode("ascii")
            data["content_hash"] = content_digest(payload)
        return self.remote.create(RecordKind.ASSEMBLY, data)

    def update_assembly(
        self,
        assembly: Assembly,
        payload: bytes | None = None,
        workflows: Iterable[Handler] = (),
    ) -> None:
        """Update the assembly in place, re-attaching existing workflow activities."""
        if assembly is None:
            raise MissingArgumentError("assembly")
        if assembly.id == NIL_ID:
            raise MissingArgumentError("assembly.id", "Assembly has no id to update")

        data = to_record(assembly)
        if payload is not None:
            data["content"] = base64.b64encode(payload).decode("ascii")
            data["content_hash"] = content_digest(payload)

        carried = [
            {"id": w.id, "workflow_group_name": w.workflow_group_name} for w in workflows
        ]
        if carried:
            data["workflows"] = carried
        self.remote.update(RecordKind.ASSEMBLY, data)

    # ── Record writes ────────────────────────────────────────────────

    def create(self, entity: Handler | Step | Image) -> uuid.UUID:
        """Create a single record and return the id the registry assigned."""
        if entity is None:
            raise MissingArgumentError("entity")
        return self.remote.create(kind_of(entity), to_record(entity))

    def update(self, entity: Handler | Step | Image) -> None:
        if entity is None:
            raise MissingArgumentError("entity")
        if entity.id == NIL_ID:
            raise MissingArgumentError("entity.id", f"Cannot update unregistered {kind_of(entity).value}")
        self.remote.update(kind_of(entity), to_record(entity))

    def set_enabled(self, step_id: uuid.UUID, enabled: bool) -> None:
        if not step_id or step_id == NIL_ID:
            raise MissingArgumentError("step_id", "Invalid step id")
        self.remote.set_state(step_id, enabled)

    # ── Deletion ─────────────────────────────────────────────────────

    def unregister(self, *entities: Assembly | Handler | Step | Image) -> dict[RecordKind, list[uuid.UUID]]:
        """Delete records and all of their registered descendants.

        Descendants are resolved from the registry, so children that were
        never loaded into memory are removed too. Returns the deleted ids by
        kind.
        """
        if not entities:
            raise MissingArgumentError("entities")

        ids: dict[RecordKind, list[uuid.UUID]] = {kind: [] for kind in _DELETE_ORDER}
        for entity in entities:
            ids[kind_of(entity)].append(entity.id)

        _extend(ids[RecordKind.HANDLER], self._child_ids(RecordKind.HANDLER, "assembly_id", ids[RecordKind.ASSEMBLY]))
        _extend(ids[RecordKind.STEP], self._child_ids(RecordKind.STEP, "handler_id", ids[RecordKind.HANDLER]))
        _extend(ids[RecordKind.IMAGE], self._child_ids(RecordKind.IMAGE, "step_id", ids[RecordKind.STEP]))

        for kind in _DELETE_ORDER:
            for record_id in ids[kind]:
                self.remote.delete(kind, record_id)

        return ids

    def _child_ids(self, kind: RecordKind, parent_field: str, parent_ids: list[uuid.UUID]) -> list[uuid.UUID]:
        wanted = {pid for pid in parent_ids if pid != NIL_ID}
        if not wanted:
            return []
        return [r["id"] for r in self.remote.find(kind, lambda r: r.get(parent_field) in wanted)]


def _extend(target: list[uuid.UUID], extra: list[uuid.UUID]) -> None:
    for value in extra:
        if value not in target:
            target.append(value)
