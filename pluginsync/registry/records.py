"""Mapping between registration model records and flat registry records.

Registry records are plain dicts: ids stay ``uuid.UUID``, enums are stored
by value, and each child record carries only its direct parent's id.
Grandparent ids and the assembly name are stamped back on load by adding the
child to its parent.
"""

from __future__ import annotations

import hashlib
import uuid

from pluginsync.model.entities import (
    NIL_ID,
    Assembly,
    Handler,
    HandlerKind,
    Image,
    ImageKind,
    InvocationSource,
    Isolatable,
    IsolationMode,
    SourceType,
    Step,
    StepDeployment,
    StepMode,
    StepStage,
)
from pluginsync.registry.protocol import Record, RecordKind


def kind_of(record: Assembly | Handler | Step | Image) -> RecordKind:
    if isinstance(record, Assembly):
        return RecordKind.ASSEMBLY
    if isinstance(record, Handler):
        return RecordKind.HANDLER
    if isinstance(record, Step):
        return RecordKind.STEP
    if isinstance(record, Image):
        return RecordKind.IMAGE
    raise NotImplementedError(f"Type = {type(record).__name__}")


def to_record(entity: Assembly | Handler | Step | Image) -> Record:
    kind = kind_of(entity)
    if kind == RecordKind.ASSEMBLY:
        data = _assembly_to_record(entity)
    elif kind == RecordKind.HANDLER:
        data = _handler_to_record(entity)
    elif kind == RecordKind.STEP:
        data = _step_to_record(entity)
    else:
        data = _image_to_record(entity)

    if entity.id != NIL_ID:
        data["id"] = entity.id
    return data


def _assembly_to_record(assembly: Assembly) -> Record:
    return {
        "name": assembly.name,
        "version": assembly.version,
        "culture": assembly.culture,
        "public_key_token": assembly.public_key_token,
        "isolation_mode": assembly.isolation_mode.value,
        "source_type": assembly.source_type.value,
        "sdk_version": assembly.sdk_version,
        "description": assembly.description,
    }


def _handler_to_record(handler: Handler) -> Record:
    if handler.assembly_id == NIL_ID:
        raise ValueError(f"Assembly has not been set for handler {handler.type_name}")
    return {
        "assembly_id": handler.assembly_id,
        "type_name": handler.type_name,
        "kind": handler.kind.value,
        "isolatable": handler.isolatable.value,
        "display_name": handler.display_name,
        "friendly_name": handler.friendly_name,
        "description": handler.description,
        "workflow_group_name": handler.workflow_group_name,
    }


def _step_to_record(step: Step) -> Record:
    return {
        "handler_id": step.handler_id,
        "name": step.name,
        "message_id": step.message_id,
        "message_entity_filter_id": step.message_entity_filter_id,
        "stage": step.stage.value,
        "mode": step.mode.value,
        "rank": step.rank,
        "deployment": step.deployment.value,
        "filtering_attributes": step.filtering_attributes,
        "description": step.description,
        "unsecure_configuration": step.unsecure_configuration,
        "secure_configuration_id": step.secure_configuration_id,
        "impersonating_user_id": step.impersonating_user_id,
        "invocation_source": (
            step.invocation_source.value if step.invocation_source is not None else None
        ),
        "delete_async_operation_if_successful": step.delete_async_operation_if_successful,
        "enabled": step.enabled,
    }


def _image_to_record(image: Image) -> Record:
    return {
        "step_id": image.step_id,
        "name": image.name,
        "image_kind": image.image_kind.value,
        "attributes": image.attributes,
        "related_attribute": image.related_attribute,
        "entity_alias": image.entity_alias,
        "message_property_name": image.message_property_name,
    }


# --- Loading ---


def content_digest(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def assembly_from_record(data: Record) -> Assembly:
    return Assembly(
        name=data["name"],
        version=data.get("version", ""),
        culture=data.get("culture", "neutral"),
        public_key_token=data.get("public_key_token"),
        isolation_mode=IsolationMode(data.get("isolation_mode", IsolationMode.NONE.value)),
        source_type=SourceType(data.get("source_type", SourceType.DATABASE.value)),
        sdk_version=data.get("sdk_version"),
        description=data.get("description"),
        id=_uuid(data.get("id")),
        content_hash=data.get("content_hash"),
    )


def handler_from_record(data: Record) -> Handler:
    return Handler(
        type_name=data["type_name"],
        kind=HandlerKind(data.get("kind", HandlerKind.EXECUTION_HANDLER.value)),
        isolatable=Isolatable(data.get("isolatable", Isolatable.UNKNOWN.value)),
        display_name=data.get("display_name") or "",
        friendly_name=data.get("friendly_name") or "",
        description=data.get("description"),
        workflow_group_name=data.get("workflow_group_name"),
        assembly_id=_uuid(data.get("assembly_id")),
        id=_uuid(data.get("id")),
    )


def step_from_record(data: Record) -> Step:
    invocation = data.get("invocation_source")
    return Step(
        name=data["name"],
        message_id=_uuid(data.get("message_id")),
        message_entity_filter_id=_uuid(data.get("message_entity_filter_id")),
        stage=StepStage(data.get("stage", StepStage.POST_OPERATION.value)),
        mode=StepMode(data.get("mode", StepMode.SYNCHRONOUS.value)),
        rank=int(data.get("rank", 1)),
        deployment=StepDeployment(data.get("deployment", StepDeployment.SERVER_ONLY.value)),
        filtering_attributes=data.get("filtering_attributes") or None,
        description=data.get("description"),
        unsecure_configuration=data.get("unsecure_configuration"),
        secure_configuration_id=_uuid(data.get("secure_configuration_id")),
        impersonating_user_id=_uuid(data.get("impersonating_user_id")),
        invocation_source=InvocationSource(invocation) if invocation is not None else None,
        delete_async_operation_if_successful=bool(
            data.get("delete_async_operation_if_successful", False)
        ),
        enabled=bool(data.get("enabled", True)),
        handler_id=_uuid(data.get("handler_id")),
        id=_uuid(data.get("id")),
    )


def image_from_record(data: Record) -> Image:
    return Image(
        name=data["name"],
        image_kind=ImageKind(data.get("image_kind", ImageKind.PRE_IMAGE.value)),
        attributes=data.get("attributes") or None,
        related_attribute=data.get("related_attribute") or None,
        entity_alias=data.get("entity_alias") or "",
        message_property_name=data.get("message_property_name"),
        step_id=_uuid(data.get("step_id")),
        id=_uuid(data.get("id")),
    )


def _uuid(value) -> uuid.UUID:
    if value is None or value == "":
        return NIL_ID
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))
