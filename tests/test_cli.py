"""Smoke tests for the command-line interface."""

import tempfile
from pathlib import Path

from click.testing import CliRunner

from pluginsync.cli import main

HANDLERS = '''
__assembly__ = "Acme.Plugins"


class ContactPlugin(Plugin[Contact]):
    @plugin_step("Update", "contact")
    def on_update(self, post_entity_image: Annotated[Contact, image_parameters("firstname")]):
        pass
'''


def _invoke(*args: str):
    return CliRunner().invoke(main, list(args))


def _seed(registry_dir: str) -> None:
    assert _invoke("catalog", "add-message", "Update", "-r", registry_dir).exit_code == 0
    assert _invoke("catalog", "add-filter", "Update", "contact", "-r", registry_dir).exit_code == 0


def test_version():
    result = _invoke("--version")
    assert result.exit_code == 0


def test_catalog_list():
    with tempfile.TemporaryDirectory() as tmpdir:
        registry_dir = str(Path(tmpdir) / "registry")
        _seed(registry_dir)

        result = _invoke("catalog", "list", "-r", registry_dir)

    assert result.exit_code == 0
    assert "Update" in result.output
    assert "contact" in result.output


def test_extract_sync_and_show():
    with tempfile.TemporaryDirectory() as tmpdir:
        registry_dir = str(Path(tmpdir) / "registry")
        source = Path(tmpdir) / "handlers.py"
        source.write_text(HANDLERS)
        _seed(registry_dir)

        extracted = _invoke("extract", str(source), "-r", registry_dir)
        planned = _invoke("sync", str(source), "-r", registry_dir, "--dry-run")
        synced = _invoke("sync", str(source), "-r", registry_dir)
        shown = _invoke("show", "Acme.Plugins", "-r", registry_dir)

    assert extracted.exit_code == 0
    assert "Acme.Plugins.ContactPlugin" in extracted.output

    assert planned.exit_code == 0
    assert "create assembly" in planned.output

    assert synced.exit_code == 0
    assert "4 registered" in synced.output

    assert shown.exit_code == 0
    assert "Contact: Update of contact" in shown.output
    assert "postimage" in shown.output


def test_show_unknown_assembly():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke("show", "Missing", "-r", str(Path(tmpdir) / "registry"))

    assert result.exit_code == 0
    assert "not registered" in result.output


def test_unknown_message_exits_with_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        registry_dir = str(Path(tmpdir) / "registry")
        source = Path(tmpdir) / "handlers.py"
        source.write_text(HANDLERS)

        result = _invoke("sync", str(source), "-r", registry_dir)

    assert result.exit_code == 1
    assert "Unknown message" in result.output


def test_show_blank_name_exits_with_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke("show", "", "-r", str(Path(tmpdir) / "registry"))

    assert result.exit_code == 1
    assert "Missing required argument" in result.output


def test_unreadable_decorator_argument_exits_with_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        registry_dir = str(Path(tmpdir) / "registry")
        source = Path(tmpdir) / "handlers.py"
        source.write_text(HANDLERS.replace('@plugin_step("Update", "contact")', '@plugin_step("Update", "contact", rank=RANK)'))
        _seed(registry_dir)

        result = _invoke("extract", str(source), "-r", registry_dir)

    assert result.exit_code == 1
    assert "Cannot read" in result.output
