"""Plugin processor — scan, extract and reconcile one handler module."""

from __future__ import annotations

from pathlib import Path

from pluginsync.config import SyncConfig
from pluginsync.errors import MissingArgumentError
from pluginsync.extract.descriptor_xml import extract_from_descriptor, load_descriptor
from pluginsync.extract.python_scanner import scan_python_file
from pluginsync.extract.reflection import extract_from_module
from pluginsync.model.catalog import UnsecureConfigItem, load_unsecure_config
from pluginsync.model.entities import Assembly
from pluginsync.registry.adapter import RegistryAdapter
from pluginsync.registry.protocol import RemoteRegistry
from pluginsync.sync.reconciler import Reconciler, SyncPlan, SyncReport
from pluginsync.utils.logger import get_logger

logger = get_logger(__name__)


class PluginProcessor:
    """Runs the extract-then-reconcile pipeline against a registry."""

    def __init__(self, registry: RemoteRegistry, config: SyncConfig | None = None):
        if registry is None:
            raise MissingArgumentError("registry")
        self.config = config or SyncConfig()
        self.adapter = RegistryAdapter(registry)
        self.reconciler = Reconciler(self.adapter)

    def extract(
        self,
        source: str | Path,
        descriptor: str | Path | None = None,
        unsecure_config: str | Path | None = None,
    ) -> Assembly:
        """Build the registration model for a handler module.

        Args:
            source: Python file holding the handler classes. Its module
                constants give the assembly identity.
            descriptor: XML registration descriptor. When given, handlers and
                steps are read from it instead of from the source classes.
            unsecure_config: XML file of step configuration items; falls back
                to the configured path.
        """
        source = self._require_file(source, "source")
        module = scan_python_file(
            source,
            handler_bases=set(self.config.handler_bases),
            activity_bases=set(self.config.activity_bases),
            sdk_version=self.config.sdk_version,
        )
        catalog = self.adapter.load_catalog()

        if descriptor is not None:
            descriptor = self._require_file(descriptor, "descriptor")
            logger.info(f"Reading registrations for {module.assembly.name} from {descriptor}")
            return extract_from_descriptor(
                load_descriptor(descriptor),
                catalog,
                assembly_info=module.assembly,
                sdk_version=self.config.sdk_version,
            )

        logger.info(f"Extracting registrations for {module.assembly.name} from {source}")
        return extract_from_module(module, self._unsecure_items(unsecure_config), catalog)

    def plan(self, assembly: Assembly) -> SyncPlan:
        """Handler-level changes a sync would make, without writing."""
        return self.reconciler.plan(assembly, self.adapter.load_by_name(assembly.name))

    def sync(
        self,
        source: str | Path,
        descriptor: str | Path | None = None,
        unsecure_config: str | Path | None = None,
        dry_run: bool = False,
    ) -> SyncPlan | SyncReport:
        """Extract the module and converge the registry onto it.

        The source file content is uploaded as the assembly payload. With
        ``dry_run`` the plan is returned and nothing is written.
        """
        assembly = self.extract(source, descriptor, unsecure_config)
        if dry_run:
            return self.plan(assembly)

        payload = Path(source).read_bytes()
        return self.reconciler.reconcile(assembly, payload)

    def show(self, name: str) -> Assembly | None:
        return self.adapter.load_by_name(name)

    def _unsecure_items(self, path: str | Path | None) -> list[UnsecureConfigItem]:
        path = path or self.config.unsecure_config_path
        if not path:
            return []
        return load_unsecure_config(self._require_file(path, "unsecure_config"))

    @staticmethod
    def _require_file(path: str | Path | None, argument: str) -> Path:
        if not path:
            raise MissingArgumentError(argument)
        path = Path(path)
        if not path.is_file():
            raise MissingArgumentError(argument, f"File not found: {path}")
        return path
