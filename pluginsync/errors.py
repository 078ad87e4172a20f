"""Error taxonomy for extraction and reconciliation.

Every error here is fatal for the run that raised it. Nothing is retried;
re-running a sync is safe because reconciliation is idempotent.
"""

from __future__ import annotations


class PluginSyncError(Exception):
    """Base class for all pluginsync failures."""


class MissingArgumentError(PluginSyncError, ValueError):
    """A required input is None or empty."""

    def __init__(self, argument: str, message: str = ""):
        self.argument = argument
        super().__init__(message or f"Missing required argument: {argument}")


class ClassificationError(PluginSyncError):
    """A candidate type is neither an execution handler nor a workflow activity."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"Class is not plugin or workflow: {type_name}")


class UnknownMessageError(PluginSyncError):
    """A step references a message the registry does not publish."""

    def __init__(self, message_name: str):
        self.message_name = message_name
        super().__init__(f"Unknown message '{message_name}'")


class UnregisteredEntityError(PluginSyncError):
    """A step references an entity with no filter for its message."""

    def __init__(self, entity_name: str, message_name: str = ""):
        self.entity_name = entity_name
        self.message_name = message_name
        suffix = f" for message '{message_name}'" if message_name else ""
        super().__init__(f"Entity '{entity_name}' is not registered yet{suffix}")


class DeclarationError(PluginSyncError, ValueError):
    """A handler decorator argument cannot be read from the module source."""

    def __init__(self, type_name: str, member: str, argument: str, reason: str):
        self.type_name = type_name
        self.member = member
        self.argument = argument
        super().__init__(f"Cannot read {argument} of {member} on {type_name}: {reason}")


class AssemblyRegistrationError(PluginSyncError):
    """Creating the assembly record failed. The original error is chained."""


class RecordNotFoundError(PluginSyncError, KeyError):
    """An update or delete referenced an id the registry does not hold."""

    def __init__(self, kind: str, record_id):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"No {kind} record with id {record_id}")

    def __str__(self) -> str:
        return self.args[0]
