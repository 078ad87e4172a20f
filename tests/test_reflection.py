"""Tests for extraction from handler descriptors."""

import uuid

import pytest

from pluginsync.errors import (
    ClassificationError,
    MissingArgumentError,
    UnknownMessageError,
    UnregisteredEntityError,
)
from pluginsync.extract.descriptors import (
    EXECUTION_CAPABILITY,
    AssemblyInfo,
    FilteringAttributes,
    HandlerCapability,
    ImageParameters,
    MethodDescriptor,
    ModuleDescriptor,
    ParameterDescriptor,
    StepAttribute,
    TypeDescriptor,
    WorkflowActivityAttribute,
)
from pluginsync.extract.reflection import extract_from_module, friendly_name_for
from pluginsync.model import HandlerKind, ImageKind, Isolatable, StepDeployment, StepMode, StepStage
from pluginsync.model.catalog import Message, MessageCatalog, MessageFilter, UnsecureConfigItem

UPDATE_ID = uuid.uuid4()
CREATE_ID = uuid.uuid4()
CONTACT_UPDATE_FILTER = uuid.uuid4()
CONTACT_CREATE_FILTER = uuid.uuid4()

CONTACT_PLUGIN = "Acme.Plugins.ContactPlugin"


def _catalog() -> MessageCatalog:
    return MessageCatalog(
        messages=[Message(UPDATE_ID, "Update"), Message(CREATE_ID, "Create")],
        filters=[
            MessageFilter(CONTACT_UPDATE_FILTER, UPDATE_ID, "contact"),
            MessageFilter(CONTACT_CREATE_FILTER, CREATE_ID, "contact"),
        ],
    )


def _plugin_type(name: str = CONTACT_PLUGIN, *methods: MethodDescriptor, entity: str | None = "Contact") -> TypeDescriptor:
    return TypeDescriptor(
        name=name,
        base_generic_arguments=[entity] if entity else [],
        capabilities=[HandlerCapability(EXECUTION_CAPABILITY, "9.0.2.4")],
        methods=list(methods),
    )


def _method(*steps: StepAttribute, declaring_type: str = CONTACT_PLUGIN, **kwargs) -> MethodDescriptor:
    return MethodDescriptor(name="execute", declaring_type=declaring_type, steps=list(steps), **kwargs)


def _module(*types: TypeDescriptor) -> ModuleDescriptor:
    return ModuleDescriptor(assembly=AssemblyInfo(name="Acme.Plugins", version="1.2.0.0"), types=list(types))


def test_extracts_execution_handler_with_step():
    method = _method(
        StepAttribute("Update", "contact", stage=StepStage.PRE_OPERATION, mode=StepMode.SYNCHRONOUS, rank=3),
        filtering_attributes=FilteringAttributes(["firstname", "lastname"]),
    )
    assembly = extract_from_module(_module(_plugin_type(CONTACT_PLUGIN, method)), [], _catalog())

    assert assembly.name == "Acme.Plugins"
    assert assembly.version == "1.2.0.0"
    assert assembly.sdk_version == "9.0"

    handler = assembly.handlers[0]
    assert handler.kind == HandlerKind.EXECUTION_HANDLER
    assert handler.isolatable == Isolatable.YES
    assert handler.display_name == " Plugins: Contact"
    assert handler.assembly_name == "Acme.Plugins"

    step = handler.steps[0]
    assert step.name == "Contact: Update of contact"
    assert step.message_id == UPDATE_ID
    assert step.message_entity_filter_id == CONTACT_UPDATE_FILTER
    assert step.stage == StepStage.PRE_OPERATION
    assert step.rank == 3
    assert step.deployment == StepDeployment.SERVER_ONLY
    assert step.filtering_attributes == "firstname,lastname"
    assert step.unsecure_configuration is None


def test_friendly_name_is_stable():
    first = extract_from_module(_module(_plugin_type()), [], _catalog())
    second = extract_from_module(_module(_plugin_type()), [], _catalog())
    assert first.handlers[0].friendly_name == second.handlers[0].friendly_name
    assert first.handlers[0].friendly_name == friendly_name_for(CONTACT_PLUGIN)
    uuid.UUID(first.handlers[0].friendly_name)


def test_images_from_annotated_payload_parameters():
    method = _method(
        StepAttribute("Update", "contact"),
        parameters=[
            ParameterDescriptor("pre_entity_image", "Contact", ImageParameters(["firstname"])),
            ParameterDescriptor("postEntityImage", "Contact", ImageParameters([])),
            ParameterDescriptor("target", "Contact", None),
            ParameterDescriptor("other_image", "Contact", ImageParameters(["x"])),
            ParameterDescriptor("pre_entity_image_account", "Account", ImageParameters(["name"])),
        ],
    )
    step = extract_from_module(_module(_plugin_type(CONTACT_PLUGIN, method)), [], _catalog()).steps[0]

    assert [(i.name, i.image_kind) for i in step.images] == [
        ("preimage", ImageKind.PRE_IMAGE),
        ("postimage", ImageKind.POST_IMAGE),
    ]
    pre, post = step.images
    assert pre.attributes == "firstname"
    assert pre.entity_alias == "preimage"
    assert pre.message_property_name == "Target"
    assert post.attributes is None


def test_unsecure_configuration_placeholder_uses_default():
    items = [
        UnsecureConfigItem(key="set", value="https://acme.example", default="unused"),
        UnsecureConfigItem(key="unset", value="#{unset}", default="fallback"),
    ]
    method = _method(
        StepAttribute("Update", "contact", unsecure_config="set"),
        StepAttribute("Create", "contact", unsecure_config="unset"),
    )
    steps = extract_from_module(_module(_plugin_type(CONTACT_PLUGIN, method)), items, _catalog()).steps

    assert steps[0].unsecure_configuration == "https://acme.example"
    assert steps[1].unsecure_configuration == "fallback"


def test_workflow_activity_has_no_steps():
    activity = TypeDescriptor(
        name="Acme.Plugins.SendMailActivity",
        is_activity=True,
        workflow_activity=WorkflowActivityAttribute(name="Send mail", group_name="Acme"),
        methods=[_method(StepAttribute("Update", "contact"), declaring_type="Acme.Plugins.SendMailActivity")],
    )
    handler = extract_from_module(_module(activity), [], _catalog()).handlers[0]

    assert handler.kind == HandlerKind.WORKFLOW_ACTIVITY
    assert handler.isolatable == Isolatable.NO
    assert handler.display_name == " Send mail"
    assert handler.workflow_group_name == " Acme"
    assert handler.steps == []


def test_handler_without_payload_entity_has_no_steps():
    plugin = _plugin_type(CONTACT_PLUGIN, _method(StepAttribute("Update", "contact")), entity=None)
    handler = extract_from_module(_module(plugin), [], _catalog()).handlers[0]
    assert handler.kind == HandlerKind.EXECUTION_HANDLER
    assert handler.steps == []


def test_skips_abstract_and_unsuffixed_types():
    abstract = _plugin_type("Acme.Plugins.BasePlugin")
    abstract.is_abstract = True
    helper = _plugin_type("Acme.Plugins.Helpers")

    assembly = extract_from_module(_module(abstract, helper, _plugin_type()), [], _catalog())
    assert [h.type_name for h in assembly.handlers] == [CONTACT_PLUGIN]


def test_only_declared_public_instance_methods_contribute_steps():
    inherited = _method(StepAttribute("Update", "contact"), declaring_type="Acme.Plugins.BasePlugin")
    private = _method(StepAttribute("Update", "contact"), is_public=False)
    static = _method(StepAttribute("Update", "contact"), is_static=True)

    handler = extract_from_module(
        _module(_plugin_type(CONTACT_PLUGIN, inherited, private, static)), [], _catalog()
    ).handlers[0]
    assert handler.steps == []


def test_unclassifiable_type_fails():
    stray = TypeDescriptor(name="Acme.Plugins.StrayPlugin")
    with pytest.raises(ClassificationError):
        extract_from_module(_module(stray), [], _catalog())


def test_unknown_message_fails():
    plugin = _plugin_type(CONTACT_PLUGIN, _method(StepAttribute("Publish", "contact")))
    with pytest.raises(UnknownMessageError):
        extract_from_module(_module(plugin), [], _catalog())


def test_unregistered_entity_fails():
    plugin = _plugin_type(CONTACT_PLUGIN, _method(StepAttribute("Update", "invoice")))
    with pytest.raises(UnregisteredEntityError):
        extract_from_module(_module(plugin), [], _catalog())


def test_missing_arguments_fail_fast():
    with pytest.raises(MissingArgumentError):
        extract_from_module(None, [], _catalog())
    with pytest.raises(MissingArgumentError):
        extract_from_module(_module(), None, _catalog())
    with pytest.raises(MissingArgumentError):
        extract_from_module(_module(), [], None)
