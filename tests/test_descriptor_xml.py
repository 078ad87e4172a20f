"""Tests for extraction from an XML registration descriptor."""

import tempfile
import uuid
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from pluginsync.errors import ClassificationError, MissingArgumentError, UnknownMessageError
from pluginsync.extract.descriptor_xml import extract_from_descriptor, load_descriptor
from pluginsync.extract.descriptors import AssemblyInfo
from pluginsync.model import HandlerKind, ImageKind, StepMode, StepStage
from pluginsync.model.catalog import Message, MessageCatalog, MessageFilter

UPDATE_ID = uuid.uuid4()
FILTER_ID = uuid.uuid4()

DESCRIPTOR = """\
<Register xmlns="http://schemas.microsoft.com/crm/2011/tools/pluginregistration">
  <Solutions>
    <Solution Assembly="Acme.Plugins.dll" SourceType="Database">
      <PluginTypes>
        <Plugin TypeName="Acme.Plugins.ContactPlugin" FriendlyName="contact-friendly">
          <Steps>
            <Step Name="ignored" MessageName="Update" PrimaryEntityName="Contact"
                  Stage="PreInsideTransaction" Mode="Asynchronous" Rank="5"
                  Description="Keeps names tidy" FilteringAttributes="firstname,lastname"
                  CustomConfiguration="verbose=true">
              <Images>
                <Image ImageType="PreImage" Attributes="firstname" />
                <Image ImageType="PostImage" />
                <Image ImageType="Both" Attributes="lastname" />
              </Images>
            </Step>
            <Step MessageName="Update" PrimaryEntityName="contact" Stage="PostOutsideTransaction" Mode="Synchronous" Rank="1" />
          </Steps>
        </Plugin>
        <Plugin TypeName="Acme.Plugins.SendMailActivity" FriendlyName="Acme" Name="Send mail" />
      </PluginTypes>
    </Solution>
  </Solutions>
</Register>
"""


def _catalog() -> MessageCatalog:
    return MessageCatalog(
        messages=[Message(UPDATE_ID, "Update")],
        filters=[MessageFilter(FILTER_ID, UPDATE_ID, "contact")],
    )


def _extract(xml: str = DESCRIPTOR, **kwargs):
    return extract_from_descriptor(ET.fromstring(xml), _catalog(), **kwargs)


def test_assembly_name_from_solution():
    assembly = _extract()
    assert assembly.name == "Acme.Plugins"
    assert assembly.sdk_version is None


def test_assembly_info_and_sdk_version():
    assembly = _extract(assembly_info=AssemblyInfo(name="Acme.Core", version="3.0.0.0"), sdk_version="9.0.2.4")
    assert assembly.name == "Acme.Core"
    assert assembly.version == "3.0.0.0"
    assert assembly.sdk_version == "9.0"


def test_plugin_steps():
    handler = _extract().handlers[0]
    assert handler.kind == HandlerKind.EXECUTION_HANDLER
    assert handler.display_name == " Plugins: Contact"
    assert handler.friendly_name == "contact-friendly"

    first, second = handler.steps
    assert first.name == "Contact: Update of contact"
    assert first.message_id == UPDATE_ID
    assert first.message_entity_filter_id == FILTER_ID
    assert first.stage == StepStage.PRE_OPERATION
    assert first.mode == StepMode.ASYNCHRONOUS
    assert first.rank == 5
    assert first.description == "Keeps names tidy"
    assert first.filtering_attributes == "firstname,lastname"
    assert first.unsecure_configuration == "verbose=true"
    assert first.enabled
    assert not first.delete_async_operation_if_successful

    assert second.stage == StepStage.POST_OPERATION
    assert second.mode == StepMode.SYNCHRONOUS
    assert second.filtering_attributes is None
    assert second.unsecure_configuration is None


def test_both_images_are_skipped():
    images = _extract().handlers[0].steps[0].images
    assert [(i.name, i.image_kind) for i in images] == [
        ("preimage", ImageKind.PRE_IMAGE),
        ("postimage", ImageKind.POST_IMAGE),
    ]
    assert images[0].attributes == "firstname"
    assert images[0].message_property_name == "Target"
    assert images[1].attributes is None


def test_activity():
    activity = _extract().handlers[1]
    assert activity.kind == HandlerKind.WORKFLOW_ACTIVITY
    assert activity.workflow_group_name == " Acme"
    assert activity.display_name == " Send mail"
    assert activity.steps == []


def test_unclassifiable_type_fails():
    xml = DESCRIPTOR.replace("Acme.Plugins.SendMailActivity", "Acme.Plugins.Helpers")
    with pytest.raises(ClassificationError):
        _extract(xml)


def test_unknown_message_fails():
    xml = DESCRIPTOR.replace('MessageName="Update" PrimaryEntityName="contact"', 'MessageName="Publish" PrimaryEntityName="contact"')
    with pytest.raises(UnknownMessageError):
        _extract(xml)


def test_missing_solution_fails():
    with pytest.raises(MissingArgumentError):
        _extract('<Register xmlns="http://schemas.microsoft.com/crm/2011/tools/pluginregistration" />')


def test_load_descriptor_from_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "register.xml"
        path.write_text(DESCRIPTOR)

        assembly = extract_from_descriptor(load_descriptor(path), _catalog())

        assert len(assembly.handlers) == 2
