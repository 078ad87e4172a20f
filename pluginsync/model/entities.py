"""Registration model — assembly, handler, step and image records.

These records are the canonical form that both extractors build and that the
registry adapter loads back from the remote store. The reconciler compares two
trees of them and only ever mutates identity fields.

Identity changes go through ``assign_id`` (and ``Assembly.rename``), which
push the new value down to every owned child immediately.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum

from pluginsync.errors import MissingArgumentError

NIL_ID = uuid.UUID(int=0)


class HandlerKind(Enum):
    EXECUTION_HANDLER = "execution_handler"
    WORKFLOW_ACTIVITY = "workflow_activity"


class Isolatable(Enum):
    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"


class IsolationMode(Enum):
    NONE = 1
    SANDBOX = 2


class SourceType(Enum):
    DATABASE = 0
    DISK = 1
    NORMAL = 2


class StepStage(Enum):
    PRE_VALIDATION = 10
    PRE_OPERATION = 20
    POST_OPERATION = 40
    POST_OPERATION_DEPRECATED = 50


class StepMode(Enum):
    SYNCHRONOUS = 0
    ASYNCHRONOUS = 1


class StepDeployment(Enum):
    SERVER_ONLY = 0
    OFFLINE_ONLY = 1
    BOTH = 2


class InvocationSource(Enum):
    PARENT = 0
    CHILD = 1


class ImageKind(Enum):
    PRE_IMAGE = 0
    POST_IMAGE = 1
    BOTH = 2


# --- Image ---


@dataclass(eq=False)
class Image:
    """A snapshot of record state made visible to a step."""

    name: str
    image_kind: ImageKind = ImageKind.PRE_IMAGE
    attributes: str | None = None  # Comma-joined field names, None = all
    related_attribute: str | None = None
    entity_alias: str = ""
    message_property_name: str | None = None

    step_id: uuid.UUID = NIL_ID
    handler_id: uuid.UUID = NIL_ID
    assembly_id: uuid.UUID = NIL_ID
    id: uuid.UUID = NIL_ID

    def assign_id(self, value: uuid.UUID) -> None:
        self.id = value

    def same_as(self, other: Image) -> bool:
        from pluginsync.model.compare import structurally_equal

        return structurally_equal(self, other)


# --- Step ---


@dataclass(eq=False)
class Step:
    """One subscription of a handler to a message/entity/stage/mode."""

    name: str
    message_id: uuid.UUID = NIL_ID
    message_entity_filter_id: uuid.UUID = NIL_ID
    stage: StepStage = StepStage.POST_OPERATION
    mode: StepMode = StepMode.SYNCHRONOUS
    rank: int = 1
    deployment: StepDeployment = StepDeployment.SERVER_ONLY
    filtering_attributes: str | None = None
    description: str | None = None
    unsecure_configuration: str | None = None
    secure_configuration_id: uuid.UUID = NIL_ID
    impersonating_user_id: uuid.UUID = NIL_ID
    invocation_source: InvocationSource | None = None
    delete_async_operation_if_successful: bool = False
    enabled: bool = True

    handler_id: uuid.UUID = NIL_ID
    assembly_id: uuid.UUID = NIL_ID
    id: uuid.UUID = NIL_ID

    images: list[Image] = field(default_factory=list)

    def __post_init__(self):
        for image in self.images:
            self._stamp(image)

    def add_image(self, image: Image) -> None:
        if image is None:
            raise MissingArgumentError("image")
        self._stamp(image)
        self.images.append(image)

    def assign_id(self, value: uuid.UUID) -> None:
        """Set the step id and push it to every image's ``step_id``."""
        if value == self.id:
            return
        self.id = value
        for image in self.images:
            image.step_id = value

    def assign_handler_id(self, value: uuid.UUID) -> None:
        if value == self.handler_id:
            return
        self.handler_id = value
        for image in self.images:
            image.handler_id = value

    def assign_assembly_id(self, value: uuid.UUID) -> None:
        if value == self.assembly_id:
            return
        self.assembly_id = value
        for image in self.images:
            image.assembly_id = value

    def same_as(self, other: Step) -> bool:
        from pluginsync.model.compare import structurally_equal

        return structurally_equal(self, other)

    def _stamp(self, image: Image) -> None:
        image.step_id = self.id
        image.handler_id = self.handler_id
        image.assembly_id = self.assembly_id


# --- Handler ---


@dataclass(eq=False)
class Handler:
    """An execution-time plugin or a workflow activity."""

    type_name: str
    kind: HandlerKind = HandlerKind.EXECUTION_HANDLER
    isolatable: Isolatable = Isolatable.UNKNOWN
    display_name: str = ""
    friendly_name: str = ""
    description: str | None = None
    workflow_group_name: str | None = None

    assembly_name: str = ""
    assembly_id: uuid.UUID = NIL_ID
    id: uuid.UUID = NIL_ID

    steps: list[Step] = field(default_factory=list)

    def __post_init__(self):
        for step in self.steps:
            self._stamp(step)

    @property
    def is_workflow_activity(self) -> bool:
        return self.kind == HandlerKind.WORKFLOW_ACTIVITY

    def add_step(self, step: Step) -> None:
        if step is None:
            raise MissingArgumentError("step")
        self._stamp(step)
        self.steps.append(step)

    def assign_id(self, value: uuid.UUID) -> None:
        """Set the handler id and push it to every step and image."""
        if value == self.id:
            return
        self.id = value
        for step in self.steps:
            step.assign_handler_id(value)

    def assign_assembly_id(self, value: uuid.UUID) -> None:
        if value == self.assembly_id:
            return
        self.assembly_id = value
        for step in self.steps:
            step.assign_assembly_id(value)

    def same_as(self, other: Handler) -> bool:
        from pluginsync.model.compare import structurally_equal

        return structurally_equal(self, other)

    def _stamp(self, step: Step) -> None:
        step.assign_handler_id(self.id)
        step.assign_assembly_id(self.assembly_id)


# --- Assembly ---


@dataclass(eq=False)
class Assembly:
    """The deployable module that owns a set of handlers."""

    name: str
    version: str = ""
    culture: str = "neutral"
    public_key_token: str | None = None
    isolation_mode: IsolationMode = IsolationMode.NONE
    source_type: SourceType = SourceType.DATABASE
    sdk_version: str | None = None  # major.minor of the handler SDK
    description: str | None = None
    id: uuid.UUID = NIL_ID
    content_hash: str | None = None  # sha256 of the last uploaded content

    handlers: list[Handler] = field(default_factory=list)

    def __post_init__(self):
        for handler in self.handlers:
            self._stamp(handler)

    @property
    def workflow_activities(self) -> list[Handler]:
        return [h for h in self.handlers if h.is_workflow_activity]

    @property
    def steps(self) -> list[Step]:
        return [s for h in self.handlers for s in h.steps]

    @property
    def images(self) -> list[Image]:
        return [i for s in self.steps for i in s.images]

    def add_handler(self, handler: Handler) -> None:
        if handler is None:
            raise MissingArgumentError("handler")
        self._stamp(handler)
        self.handlers.append(handler)

    def find_handler(self, type_name: str) -> Handler | None:
        for handler in self.handlers:
            if handler.type_name == type_name:
                return handler
        return None

    def assign_id(self, value: uuid.UUID) -> None:
        """Set the assembly id and push it through the whole tree."""
        if value == self.id:
            return
        self.id = value
        for handler in self.handlers:
            handler.assign_assembly_id(value)

    def rename(self, name: str) -> None:
        """Set the assembly name and push it to every handler."""
        if name == self.name:
            return
        self.name = name
        for handler in self.handlers:
            handler.assembly_name = name

    def _stamp(self, handler: Handler) -> None:
        handler.assembly_name = self.name
        handler.assign_assembly_id(self.id)
