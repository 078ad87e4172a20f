"""Build a registration model from a module's handler descriptors.

Every concrete exported class whose name ends in ``Plugin`` or ``Activity``
becomes a handler. Execution handlers contribute one step per declared step
attribute, with pre/post images taken from annotated payload parameters.
"""

from __future__ import annotations

import uuid

from pluginsync.errors import ClassificationError, MissingArgumentError
from pluginsync.extract.descriptors import (
    EXECUTION_CAPABILITY,
    AssemblyInfo,
    MethodDescriptor,
    ModuleDescriptor,
    StepAttribute,
    TypeDescriptor,
)
from pluginsync.model.catalog import MessageCatalog, UnsecureConfigItem, find_unsecure_config
from pluginsync.model.entities import (
    Assembly,
    Handler,
    HandlerKind,
    Image,
    ImageKind,
    Isolatable,
    SourceType,
    Step,
    StepDeployment,
)
from pluginsync.model.naming import (
    generate_step_name,
    handler_display_name,
    handler_short_name,
    message_property_name,
)
from pluginsync.utils.logger import get_logger

logger = get_logger(__name__)

HANDLER_SUFFIX = "Plugin"
ACTIVITY_SUFFIX = "Activity"

PRE_IMAGE_PARAMETERS = {"preEntityImage", "pre_entity_image"}
POST_IMAGE_PARAMETERS = {"postEntityImage", "post_entity_image"}

# Namespace for deterministic friendly names of reflected handlers
FRIENDLY_NAME_NAMESPACE = uuid.UUID("6b1c3f0e-2d4a-4e8b-9a57-0c9d1e2f3a4b")


def to_assembly(info: AssemblyInfo) -> Assembly:
    return Assembly(
        name=info.name,
        version=info.version,
        culture=info.culture,
        public_key_token=info.public_key_token,
        source_type=SourceType.DATABASE,
    )


def extract_from_module(
    module: ModuleDescriptor,
    unsecure_config: list[UnsecureConfigItem],
    catalog: MessageCatalog,
) -> Assembly:
    """Extract the assembly, its handlers, steps and images.

    Args:
        module: Descriptors produced by a scan of the module.
        unsecure_config: Key/value/default items for step configuration.
        catalog: Messages and filters the registry currently permits.

    Raises:
        ClassificationError: A candidate type is neither handler nor activity.
        UnknownMessageError: A step names a message absent from the catalog.
        UnregisteredEntityError: A step's entity has no filter for its message.
    """
    if module is None:
        raise MissingArgumentError("module")
    if unsecure_config is None:
        raise MissingArgumentError("unsecure_config")
    if catalog is None:
        raise MissingArgumentError("catalog")

    assembly = to_assembly(module.assembly)

    for type_desc in candidate_types(module):
        handler = _build_handler(type_desc, assembly, unsecure_config, catalog)
        assembly.add_handler(handler)
        logger.debug(
            f"Extracted {handler.kind.value} {handler.type_name} "
            f"with {len(handler.steps)} step(s)"
        )

    return assembly


def candidate_types(module: ModuleDescriptor) -> list[TypeDescriptor]:
    return [
        t
        for t in module.list_exported_classes()
        if not t.is_abstract
        and (t.short_name.endswith(HANDLER_SUFFIX) or t.short_name.endswith(ACTIVITY_SUFFIX))
    ]


def friendly_name_for(type_name: str) -> str:
    return str(uuid.uuid5(FRIENDLY_NAME_NAMESPACE, type_name))


def _build_handler(
    type_desc: TypeDescriptor,
    assembly: Assembly,
    unsecure_config: list[UnsecureConfigItem],
    catalog: MessageCatalog,
) -> Handler:
    capability = type_desc.capability(EXECUTION_CAPABILITY)
    if capability is not None:
        kind = HandlerKind.EXECUTION_HANDLER
        isolatable = Isolatable.YES
        if capability.sdk_major_minor:
            assembly.sdk_version = capability.sdk_major_minor
    elif type_desc.is_activity:
        kind = HandlerKind.WORKFLOW_ACTIVITY
        isolatable = Isolatable.NO
    else:
        raise ClassificationError(type_desc.name)

    handler = Handler(
        type_name=type_desc.name,
        kind=kind,
        isolatable=isolatable,
        friendly_name=friendly_name_for(type_desc.name),
    )

    if kind == HandlerKind.WORKFLOW_ACTIVITY:
        attr = type_desc.workflow_activity
        if attr is not None:
            handler.workflow_group_name = " " + attr.group_name
            handler.display_name = " " + attr.name
        return handler

    entity_type = type_desc.payload_entity
    if entity_type is None:
        # No payload entity: register it like an activity, without steps
        return handler

    _, short_name = handler_short_name(type_desc.name)
    handler.display_name = handler_display_name(type_desc.name)

    for method in type_desc.declared_public_methods():
        for step_attr in method.steps:
            step = _build_step(short_name, method, step_attr, entity_type, unsecure_config, catalog)
            handler.add_step(step)

    return handler


def _build_step(
    short_name: str,
    method: MethodDescriptor,
    step_attr: StepAttribute,
    entity_type: str,
    unsecure_config: list[UnsecureConfigItem],
    catalog: MessageCatalog,
) -> Step:
    entity_name = step_attr.entity_name.lower()
    message_id = catalog.message_id(step_attr.message_name)

    step = Step(
        name=generate_step_name(short_name, step_attr.message_name, entity_name, None),
        message_id=message_id,
        message_entity_filter_id=catalog.filter_id(message_id, entity_name, step_attr.message_name),
        stage=step_attr.stage,
        mode=step_attr.mode,
        rank=step_attr.rank,
        deployment=StepDeployment.SERVER_ONLY,
        enabled=step_attr.enabled,
        delete_async_operation_if_successful=step_attr.delete_async_operation_if_successful,
    )

    if method.filtering_attributes is not None:
        step.filtering_attributes = str(method.filtering_attributes) or None

    configuration = find_unsecure_config(unsecure_config, step_attr.unsecure_config)
    if configuration is not None:
        step.unsecure_configuration = configuration

    property_name = message_property_name(step_attr.message_name)
    for param in method.parameters:
        if param.type_name != entity_type or param.image_parameters is None:
            continue

        if param.name in PRE_IMAGE_PARAMETERS:
            name, kind = "preimage", ImageKind.PRE_IMAGE
        elif param.name in POST_IMAGE_PARAMETERS:
            name, kind = "postimage", ImageKind.POST_IMAGE
        else:
            continue

        step.add_image(
            Image(
                name=name,
                image_kind=kind,
                attributes=str(param.image_parameters) or None,
                entity_alias=name,
                message_property_name=property_name,
            )
        )

    return step
