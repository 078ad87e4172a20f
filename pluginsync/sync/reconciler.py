"""Reconciliation — converge the registry onto a freshly extracted assembly.

Handlers are matched on ``type_name``, steps and images on ``name``. Records
present only in the extracted tree are registered, records present only in
the registry are unregistered, and matched records take over the registry id
and are written only when their compared fields differ. Running the same
sync twice therefore issues no record writes the second time; only the step
enabled state is reasserted.

Ordering at every level: deletions, then creates, then updates. A parent's
registry id is copied onto the in-memory record before any child is created.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, TypeVar

from pluginsync.errors import AssemblyRegistrationError, MissingArgumentError
from pluginsync.model.compare import field_differences, structurally_equal
from pluginsync.model.entities import Assembly, Handler, Image, IsolationMode, Step
from pluginsync.registry.adapter import RegistryAdapter
from pluginsync.registry.records import content_digest
from pluginsync.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class SyncOperation(Enum):
    """What reconciliation decided for one record."""

    REGISTER = "register"
    UPDATE = "update"
    UNREGISTER = "unregister"
    SET_STATE = "set_state"
    SKIP = "skip"  # Matched and unchanged


@dataclass
class SyncAction:
    """One decision taken during reconciliation."""

    operation: SyncOperation
    kind: str  # assembly | handler | step | image
    name: str


@dataclass
class Match:
    """Result of matching two record lists on a natural key."""

    only_desired: list = field(default_factory=list)
    only_current: list = field(default_factory=list)
    pairs: list[tuple] = field(default_factory=list)  # (desired, current)
    duplicate_keys: list[str] = field(default_factory=list)


@dataclass
class SyncPlan:
    """Handler-level changes needed to converge the registry."""

    assembly_name: str
    create_assembly: bool = False
    to_register: list[Handler] = field(default_factory=list)
    to_remove: list[Handler] = field(default_factory=list)
    to_update: list[tuple[Handler, Handler]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class SyncReport:
    """What a reconciliation run did."""

    assembly_name: str
    assembly_created: bool = False
    actions: list[SyncAction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add(self, operation: SyncOperation, kind: str, name: str) -> None:
        self.actions.append(SyncAction(operation, kind, name))

    def count(self, operation: SyncOperation, kind: str | None = None) -> int:
        return sum(
            1 for a in self.actions if a.operation == operation and (kind is None or a.kind == kind)
        )

    @property
    def write_count(self) -> int:
        """Creates, updates and deletes; state reassertions are not counted."""
        return sum(
            self.count(op)
            for op in (SyncOperation.REGISTER, SyncOperation.UPDATE, SyncOperation.UNREGISTER)
        )

    @property
    def has_changes(self) -> bool:
        return self.write_count > 0

    def summary(self) -> str:
        if not self.has_changes:
            return f"{self.assembly_name}: up to date"
        return (
            f"{self.assembly_name}: {self.count(SyncOperation.REGISTER)} registered, "
            f"{self.count(SyncOperation.UPDATE)} updated, "
            f"{self.count(SyncOperation.UNREGISTER)} unregistered"
        )


def match_by_key(desired: list[T], current: list[T], key: Callable[[T], str]) -> Match:
    """Match two lists on a natural key; the first record with a key wins."""
    result = Match()

    current_by_key: dict[str, T] = {}
    for record in current:
        k = key(record)
        if k in current_by_key:
            _note_duplicate(result, k)
            continue
        current_by_key[k] = record

    desired_keys = set()
    paired_keys = set()
    for record in desired:
        k = key(record)
        if k in desired_keys:
            _note_duplicate(result, k)
        desired_keys.add(k)

        existing = current_by_key.get(k)
        if existing is None:
            result.only_desired.append(record)
        elif k not in paired_keys:
            result.pairs.append((record, existing))
            paired_keys.add(k)

    result.only_current = [r for r in current if key(r) not in desired_keys]
    return result


def _note_duplicate(match: Match, key: str) -> None:
    if key not in match.duplicate_keys:
        match.duplicate_keys.append(key)


class Reconciler:
    """Computes and applies the changes between an extracted and a registered assembly."""

    def __init__(self, adapter: RegistryAdapter):
        if adapter is None:
            raise MissingArgumentError("adapter")
        self.adapter = adapter

    def plan(self, desired: Assembly, current: Assembly | None) -> SyncPlan:
        """Decide which handlers to register, unregister and update."""
        if desired is None:
            raise MissingArgumentError("desired")

        plan = SyncPlan(assembly_name=desired.name)
        if current is None:
            plan.create_assembly = True
            plan.to_register = list(desired.handlers)
            return plan

        match = match_by_key(desired.handlers, current.handlers, lambda h: h.type_name)
        plan.to_register = match.only_desired
        plan.to_remove = match.only_current
        plan.to_update = match.pairs
        plan.warnings = [
            f"Duplicate handler type name '{k}' in {desired.name}; only the first is matched"
            for k in match.duplicate_keys
        ]
        return plan

    def reconcile(self, desired: Assembly, payload: bytes | None = None) -> SyncReport:
        """Converge the registry onto ``desired``.

        Args:
            desired: Freshly extracted assembly tree. Its ids are filled in.
            payload: Module content to upload with the assembly record.

        Raises:
            AssemblyRegistrationError: Creating the assembly record failed.
        """
        if desired is None:
            raise MissingArgumentError("desired")
        if not desired.name:
            raise MissingArgumentError("desired.name")

        current = self.adapter.load_by_name(desired.name)
        plan = self.plan(desired, current)

        report = SyncReport(assembly_name=desired.name, warnings=list(plan.warnings))
        for warning in plan.warnings:
            logger.warning(warning)

        if plan.create_assembly:
            self._create_assembly(desired, payload, report)
        else:
            if plan.to_remove:
                self._unregister(plan.to_remove, "handler", lambda h: h.type_name, report)
            self._update_assembly(desired, current, payload, report)

        for handler in plan.to_register:
            self._register_handler(handler, report)

        for handler, existing in plan.to_update:
            self._update_handler(handler, existing, report)

        logger.info(report.summary())
        return report

    # ── Assembly ─────────────────────────────────────────────────────

    def _create_assembly(self, desired: Assembly, payload: bytes | None, report: SyncReport) -> None:
        desired.isolation_mode = IsolationMode.NONE
        try:
            assembly_id = self.adapter.create_assembly(desired, payload)
        except Exception as exc:
            raise AssemblyRegistrationError(
                f"Error occurred while registering the assembly {desired.name}: {exc}"
            ) from exc

        desired.assign_id(assembly_id)
        report.assembly_created = True
        report.add(SyncOperation.REGISTER, "assembly", desired.name)
        logger.info(f"Registered assembly {desired.name} ({assembly_id})")

    def _update_assembly(
        self,
        desired: Assembly,
        current: Assembly,
        payload: bytes | None,
        report: SyncReport,
    ) -> None:
        desired.isolation_mode = current.isolation_mode
        desired.assign_id(current.id)

        if payload is not None and content_digest(payload) == current.content_hash:
            logger.debug(f"Assembly {desired.name} content unchanged")
            payload = None

        if payload is None and structurally_equal(desired, current):
            report.add(SyncOperation.SKIP, "assembly", desired.name)
            return

        self.adapter.update_assembly(desired, payload, current.workflow_activities)
        report.add(SyncOperation.UPDATE, "assembly", desired.name)
        logger.info(f"Updated assembly {desired.name}")

    # ── Registration ─────────────────────────────────────────────────

    def _register_handler(self, handler: Handler, report: SyncReport) -> None:
        handler.assign_id(self.adapter.create(handler))
        report.add(SyncOperation.REGISTER, "handler", handler.type_name)
        logger.info(f"Registered handler {handler.type_name}")

        for step in handler.steps:
            self._register_step(step, report)

    def _register_step(self, step: Step, report: SyncReport) -> None:
        step.assign_id(self.adapter.create(step))
        report.add(SyncOperation.REGISTER, "step", step.name)
        logger.info(f"Registered step '{step.name}'")

        for image in step.images:
            self._register_image(image, step, report)

    def _register_image(self, image: Image, step: Step, report: SyncReport) -> None:
        image.assign_id(self.adapter.create(image))
        report.add(SyncOperation.REGISTER, "image", f"{step.name}/{image.name}")
        logger.info(f"Registered image {image.name} on step '{step.name}'")

    def _unregister(self, records: list, kind: str, label: Callable, report: SyncReport) -> None:
        self.adapter.unregister(*records)
        for record in records:
            report.add(SyncOperation.UNREGISTER, kind, label(record))
            logger.info(f"Unregistered {kind} {label(record)}")

    # ── Updates ──────────────────────────────────────────────────────

    def _update_handler(self, handler: Handler, existing: Handler, report: SyncReport) -> None:
        handler.assign_id(existing.id)
        self._write_if_changed(handler, existing, "handler", handler.type_name, report)

        match = match_by_key(handler.steps, existing.steps, lambda s: s.name)
        self._warn_duplicates(match, f"step name in handler {handler.type_name}", report)

        if match.only_current:
            self._unregister(match.only_current, "step", lambda s: s.name, report)

        for step in match.only_desired:
            self._register_step(step, report)

        for step, existing_step in match.pairs:
            self._update_step(step, existing_step, report)

    def _update_step(self, step: Step, existing: Step, report: SyncReport) -> None:
        step.assign_id(existing.id)
        # Registry-assigned; never derived from the handler source
        step.impersonating_user_id = existing.impersonating_user_id
        step.secure_configuration_id = existing.secure_configuration_id

        self._write_if_changed(step, existing, "step", step.name, report)

        self.adapter.set_enabled(step.id, step.enabled)
        report.add(SyncOperation.SET_STATE, "step", step.name)

        match = match_by_key(step.images, existing.images, lambda i: i.name)
        self._warn_duplicates(match, f"image name on step '{step.name}'", report)

        if match.only_current:
            self._unregister(match.only_current, "image", lambda i: f"{step.name}/{i.name}", report)

        for image in match.only_desired:
            self._register_image(image, step, report)

        for image, existing_image in match.pairs:
            image.assign_id(existing_image.id)
            self._write_if_changed(image, existing_image, "image", f"{step.name}/{image.name}", report)

    def _write_if_changed(self, record, existing, kind: str, label: str, report: SyncReport) -> None:
        differences = field_differences(record, existing)
        if not differences:
            report.add(SyncOperation.SKIP, kind, label)
            logger.debug(f"{kind} {label} unchanged")
            return

        self.adapter.update(record)
        report.add(SyncOperation.UPDATE, kind, label)
        logger.info(f"Updated {kind} {label} ({', '.join(differences)})")

    def _warn_duplicates(self, match: Match, what: str, report: SyncReport) -> None:
        for key in match.duplicate_keys:
            warning = f"Duplicate {what}: '{key}'; only the first is matched"
            report.warnings.append(warning)
            logger.warning(warning)
