"""Handler descriptors — the static view of a module that extraction reads.

A scan step (see ``python_scanner``) turns a module into these records once.
The reflection extractor consumes them without knowing how they were
produced, so any loader that can fill them in can feed extraction.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pluginsync.model.entities import StepMode, StepStage

# Capability marker carried by execution handlers
EXECUTION_CAPABILITY = "IPlugin"


@dataclass(frozen=True)
class HandlerCapability:
    """A capability interface a type implements, with its defining SDK version."""

    name: str
    sdk_version: str | None = None  # Full version, e.g. "9.0.2.4"

    @property
    def sdk_major_minor(self) -> str | None:
        if not self.sdk_version:
            return None
        return ".".join(self.sdk_version.split(".")[:2])


# --- Declared attributes ---


@dataclass
class StepAttribute:
    """A step registration declared on a handler method."""

    message_name: str
    entity_name: str
    stage: StepStage = StepStage.POST_OPERATION
    mode: StepMode = StepMode.SYNCHRONOUS
    rank: int = 1
    unsecure_config: str | None = None  # Key into the unsecured-config items
    enabled: bool = True
    delete_async_operation_if_successful: bool = False


@dataclass
class FilteringAttributes:
    attributes: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return ",".join(self.attributes)


@dataclass
class ImageParameters:
    attributes: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return ",".join(self.attributes)


@dataclass
class WorkflowActivityAttribute:
    name: str = ""
    group_name: str = ""


# --- Members ---


@dataclass
class ParameterDescriptor:
    name: str
    type_name: str = ""
    image_parameters: ImageParameters | None = None


@dataclass
class MethodDescriptor:
    name: str
    declaring_type: str
    is_public: bool = True
    is_static: bool = False
    parameters: list[ParameterDescriptor] = field(default_factory=list)
    steps: list[StepAttribute] = field(default_factory=list)
    filtering_attributes: FilteringAttributes | None = None


@dataclass
class TypeDescriptor:
    """A class exported by the module."""

    name: str  # Fully qualified, dot separated
    is_class: bool = True
    is_abstract: bool = False
    base_generic_arguments: list[str] = field(default_factory=list)
    capabilities: list[HandlerCapability] = field(default_factory=list)
    is_activity: bool = False  # Subclass of the workflow activity base
    workflow_activity: WorkflowActivityAttribute | None = None
    methods: list[MethodDescriptor] = field(default_factory=list)

    @property
    def short_name(self) -> str:
        return self.name.split(".")[-1]

    @property
    def payload_entity(self) -> str | None:
        """The last generic argument of the base type, if any."""
        return self.base_generic_arguments[-1] if self.base_generic_arguments else None

    def capability(self, name: str) -> HandlerCapability | None:
        for cap in self.capabilities:
            if cap.name == name:
                return cap
        return None

    def declared_public_methods(self) -> list[MethodDescriptor]:
        """Public instance methods declared on this type, not inherited."""
        return [
            m
            for m in self.methods
            if m.is_public and not m.is_static and m.declaring_type == self.name
        ]


# --- Module ---


@dataclass
class AssemblyInfo:
    """Identity of the deployable module."""

    name: str
    version: str = "1.0.0.0"
    culture: str = "neutral"
    public_key_token: str | None = None


@dataclass
class ModuleDescriptor:
    assembly: AssemblyInfo
    types: list[TypeDescriptor] = field(default_factory=list)

    def list_exported_classes(self) -> list[TypeDescriptor]:
        return [t for t in self.types if t.is_class]
