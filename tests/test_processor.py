"""Tests for the extract-and-sync pipeline."""

import tempfile
from pathlib import Path

import pytest

from pluginsync.config import SyncConfig
from pluginsync.errors import MissingArgumentError
from pluginsync.processor import PluginProcessor
from pluginsync.registry.local_registry import InMemoryRegistry
from pluginsync.registry.protocol import RecordKind
from pluginsync.sync.reconciler import SyncOperation, SyncPlan, SyncReport

HANDLERS = '''
__assembly__ = "Acme.Plugins"


class ContactPlugin(Plugin[Contact]):
    @plugin_step("Update", "contact", unsecure_config="endpoint")
    def on_update(self, target: Contact):
        pass
'''

UNSECURE_CONFIG = """<items>
  <item key="endpoint" value="#{endpoint}" default="https://default.example" />
</items>
"""

DESCRIPTOR = """<Register xmlns="http://schemas.microsoft.com/crm/2011/tools/pluginregistration">
  <Solutions>
    <Solution Assembly="Ignored.dll">
      <PluginTypes>
        <Plugin TypeName="Acme.Plugins.AccountPlugin" FriendlyName="account">
          <Steps>
            <Step MessageName="Update" PrimaryEntityName="account" Stage="PreInsideTransaction" Mode="Synchronous" Rank="1" />
          </Steps>
        </Plugin>
      </PluginTypes>
    </Solution>
  </Solutions>
</Register>
"""


def _registry() -> InMemoryRegistry:
    remote = InMemoryRegistry()
    remote.add_filter("Update", "contact")
    remote.add_filter("Update", "account")
    return remote


def _write(tmpdir: str, name: str, text: str) -> Path:
    path = Path(tmpdir) / name
    path.write_text(text)
    return path


def test_extract_resolves_unsecure_configuration():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = _write(tmpdir, "handlers.py", HANDLERS)
        config = _write(tmpdir, "unsecure.xml", UNSECURE_CONFIG)

        assembly = PluginProcessor(_registry()).extract(source, unsecure_config=config)

    assert assembly.name == "Acme.Plugins"
    assert assembly.steps[0].unsecure_configuration == "https://default.example"


def test_extract_uses_configured_unsecure_path():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = _write(tmpdir, "handlers.py", HANDLERS)
        config = SyncConfig(unsecure_config_path=str(_write(tmpdir, "unsecure.xml", UNSECURE_CONFIG)))

        assembly = PluginProcessor(_registry(), config).extract(source)

    assert assembly.steps[0].unsecure_configuration == "https://default.example"


def test_extract_from_descriptor_keeps_module_identity():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = _write(tmpdir, "handlers.py", HANDLERS)
        descriptor = _write(tmpdir, "register.xml", DESCRIPTOR)

        assembly = PluginProcessor(_registry()).extract(source, descriptor=descriptor)

    assert assembly.name == "Acme.Plugins"
    assert assembly.sdk_version == "9.0"
    assert [h.type_name for h in assembly.handlers] == ["Acme.Plugins.AccountPlugin"]


def test_sync_uploads_source_as_payload():
    remote = _registry()
    with tempfile.TemporaryDirectory() as tmpdir:
        source = _write(tmpdir, "handlers.py", HANDLERS)
        report = PluginProcessor(remote).sync(source)

    assert isinstance(report, SyncReport)
    assert report.assembly_created
    assert remote.find(RecordKind.ASSEMBLY)[0]["content"]


def test_resync_of_unchanged_source_writes_nothing():
    remote = _registry()
    with tempfile.TemporaryDirectory() as tmpdir:
        source = _write(tmpdir, "handlers.py", HANDLERS)
        PluginProcessor(remote).sync(source)
        remote.writes.clear()

        report = PluginProcessor(remote).sync(source)

        assert not report.has_changes
        assert remote.writes_of("update") == []

        Path(source).write_text(HANDLERS + "\n# touched\n")
        report = PluginProcessor(remote).sync(source)

    assert report.count(SyncOperation.UPDATE, "assembly") == 1


def test_dry_run_writes_nothing():
    remote = _registry()
    with tempfile.TemporaryDirectory() as tmpdir:
        source = _write(tmpdir, "handlers.py", HANDLERS)
        plan = PluginProcessor(remote).sync(source, dry_run=True)

    assert isinstance(plan, SyncPlan)
    assert plan.create_assembly
    assert remote.writes == []


def test_show_returns_registered_tree():
    remote = _registry()
    processor = PluginProcessor(remote)
    with tempfile.TemporaryDirectory() as tmpdir:
        processor.sync(_write(tmpdir, "handlers.py", HANDLERS))

    assert processor.show("Acme.Plugins").steps[0].name == "Contact: Update of contact"
    assert processor.show("Other") is None


def test_missing_source_file_fails():
    with pytest.raises(MissingArgumentError):
        PluginProcessor(_registry()).extract("does/not/exist.py")
    with pytest.raises(MissingArgumentError):
        PluginProcessor(None)
