"""Build a registration model from an XML registration descriptor.

The descriptor lists plugin types with their steps and images as explicit
attributes. It predates the enabled and async-auto-delete controls, so those
take fixed defaults, and it only distinguishes two stages.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

from pluginsync.errors import ClassificationError, MissingArgumentError
from pluginsync.extract.descriptors import AssemblyInfo
from pluginsync.extract.reflection import ACTIVITY_SUFFIX, HANDLER_SUFFIX, to_assembly
from pluginsync.model.catalog import MessageCatalog
from pluginsync.model.entities import (
    Assembly,
    Handler,
    HandlerKind,
    Image,
    ImageKind,
    Isolatable,
    Step,
    StepDeployment,
    StepMode,
    StepStage,
)
from pluginsync.model.naming import (
    generate_step_name,
    handler_display_name,
    handler_short_name,
    message_property_name,
)
from pluginsync.utils.logger import get_logger

logger = get_logger(__name__)

DESCRIPTOR_NAMESPACE = "http://schemas.microsoft.com/crm/2011/tools/pluginregistration"

_NS = {"r": DESCRIPTOR_NAMESPACE}

PRE_TRANSACTION_STAGE = "PreInsideTransaction"


def load_descriptor(path: str | Path) -> ET.Element:
    """Parse a descriptor file and return its root element."""
    if not path:
        raise MissingArgumentError("path")
    return ET.parse(path).getroot()


def extract_from_descriptor(
    document: ET.Element | ET.ElementTree,
    catalog: MessageCatalog,
    assembly_info: AssemblyInfo | None = None,
    sdk_version: str | None = None,
) -> Assembly:
    """Extract the assembly described by a registration descriptor.

    Args:
        document: Parsed descriptor (root element or tree).
        catalog: Messages and filters the registry currently permits.
        assembly_info: Identity of the module; defaults to the solution's
            ``Assembly`` attribute without its extension.
        sdk_version: Handler SDK version (major.minor is kept) to record
            when the descriptor contains execution handlers.
    """
    if document is None:
        raise MissingArgumentError("document")
    if catalog is None:
        raise MissingArgumentError("catalog")

    root = document.getroot() if isinstance(document, ET.ElementTree) else document
    solution = root.find("r:Solutions/r:Solution", _NS)
    if solution is None:
        raise MissingArgumentError("document", "Descriptor has no Solutions/Solution element")

    if assembly_info is None:
        assembly_info = AssemblyInfo(name=Path(solution.get("Assembly", "")).stem)
    assembly = to_assembly(assembly_info)

    for plugin_el in solution.findall("r:PluginTypes/r:Plugin", _NS):
        handler = _build_handler(plugin_el, assembly, catalog, sdk_version)
        assembly.add_handler(handler)
        logger.debug(
            f"Read {handler.kind.value} {handler.type_name} "
            f"with {len(handler.steps)} step(s) from descriptor"
        )

    return assembly


def _build_handler(
    plugin_el: ET.Element,
    assembly: Assembly,
    catalog: MessageCatalog,
    sdk_version: str | None,
) -> Handler:
    type_name = plugin_el.get("TypeName", "")

    if type_name.endswith(HANDLER_SUFFIX):
        kind, isolatable = HandlerKind.EXECUTION_HANDLER, Isolatable.YES
        if sdk_version:
            assembly.sdk_version = ".".join(sdk_version.split(".")[:2])
    elif type_name.endswith(ACTIVITY_SUFFIX):
        kind, isolatable = HandlerKind.WORKFLOW_ACTIVITY, Isolatable.NO
    else:
        raise ClassificationError(type_name)

    handler = Handler(
        type_name=type_name,
        kind=kind,
        isolatable=isolatable,
        friendly_name=plugin_el.get("FriendlyName", ""),
    )

    if kind == HandlerKind.WORKFLOW_ACTIVITY:
        handler.workflow_group_name = " " + plugin_el.get("FriendlyName", "")
        handler.display_name = " " + plugin_el.get("Name", "")
        return handler

    _, short_name = handler_short_name(type_name)
    handler.display_name = handler_display_name(type_name)

    for step_el in plugin_el.findall("r:Steps/r:Step", _NS):
        handler.add_step(_build_step(short_name, step_el, catalog))

    return handler


def _build_step(short_name: str, step_el: ET.Element, catalog: MessageCatalog) -> Step:
    message_name = step_el.get("MessageName", "")
    entity_name = step_el.get("PrimaryEntityName", "").lower()
    message_id = catalog.message_id(message_name)

    step = Step(
        name=generate_step_name(short_name, message_name, entity_name, None),
        message_id=message_id,
        message_entity_filter_id=catalog.filter_id(message_id, entity_name, message_name),
        stage=(
            StepStage.PRE_OPERATION
            if step_el.get("Stage") == PRE_TRANSACTION_STAGE
            else StepStage.POST_OPERATION
        ),
        mode=(
            StepMode.ASYNCHRONOUS
            if step_el.get("Mode", "").lower() == "asynchronous"
            else StepMode.SYNCHRONOUS
        ),
        rank=int(step_el.get("Rank", "1")),
        deployment=StepDeployment.SERVER_ONLY,
        description=step_el.get("Description"),
        enabled=True,
        delete_async_operation_if_successful=False,
    )

    filtering = step_el.get("FilteringAttributes")
    if filtering:
        step.filtering_attributes = filtering

    configuration = step_el.get("CustomConfiguration")
    if configuration:
        step.unsecure_configuration = configuration

    property_name = message_property_name(message_name)
    for image_el in step_el.findall("r:Images/r:Image", _NS):
        image_type = image_el.get("ImageType", "")
        if image_type == "PreImage":
            name, kind = "preimage", ImageKind.PRE_IMAGE
        elif image_type == "PostImage":
            name, kind = "postimage", ImageKind.POST_IMAGE
        else:
            # "Both" images are not supported by this source
            logger.debug(f"Skipping {image_type or 'untyped'} image on step '{step.name}'")
            continue

        step.add_image(
            Image(
                name=name,
                image_kind=kind,
                attributes=image_el.get("Attributes") or None,
                entity_alias=name,
                message_property_name=property_name,
            )
        )

    return step
