"""Message and filter catalogs, and unsecured step configuration.

The catalogs mirror what the registry currently permits: the public messages
and, per message, the primary entities a custom step may subscribe to.
"""

from __future__ import annotations

import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path

from pluginsync.errors import (
    MissingArgumentError,
    UnknownMessageError,
    UnregisteredEntityError,
)


@dataclass(frozen=True)
class Message:
    id: uuid.UUID
    name: str


@dataclass(frozen=True)
class MessageFilter:
    id: uuid.UUID
    message_id: uuid.UUID
    primary_entity_name: str
    secondary_entity_name: str | None = None


@dataclass
class MessageCatalog:
    """Known messages plus the (message, entity) filters they allow."""

    messages: list[Message] = field(default_factory=list)
    filters: list[MessageFilter] = field(default_factory=list)

    def message_id(self, name: str) -> uuid.UUID:
        """Resolve a message by exact name."""
        for message in self.messages:
            if message.name == name:
                return message.id
        raise UnknownMessageError(name)

    def filter_id(self, message_id: uuid.UUID, entity_name: str, message_name: str = "") -> uuid.UUID:
        """Resolve the filter for a message and a lower-cased primary entity."""
        entity = entity_name.lower()
        for f in self.filters:
            if f.message_id == message_id and f.primary_entity_name == entity:
                return f.id
        raise UnregisteredEntityError(entity_name, message_name)


# --- Unsecured configuration ---


@dataclass(frozen=True)
class UnsecureConfigItem:
    """One key/value/default triple from the unsecured-configuration file."""

    key: str
    value: str
    default: str = ""

    @property
    def placeholder(self) -> str:
        return f"#{{{self.key}}}"

    def resolve(self) -> str:
        # An unreplaced "#{key}" token means the deployment left it unset.
        if self.value == self.placeholder:
            return self.default
        return self.value


def find_unsecure_config(items: list[UnsecureConfigItem], key: str | None) -> str | None:
    """Resolved value for ``key``, or None when no item declares it."""
    if not key:
        return None
    for item in items:
        if item.key == key:
            return item.resolve()
    return None


def load_unsecure_config(path: str | Path) -> list[UnsecureConfigItem]:
    """Load ``<item key=".." value=".." default=".."/>`` elements from XML.

    The root element name is not checked; only its direct ``item`` children
    are read.
    """
    if not path:
        raise MissingArgumentError("path")

    root = ET.parse(path).getroot()
    return [
        UnsecureConfigItem(
            key=el.get("key", ""),
            value=el.get("value", ""),
            default=el.get("default", ""),
        )
        for el in root.findall("item")
    ]
