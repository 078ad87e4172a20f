"""Deterministic names shared by both extractors.

Step names are the natural key the reconciler matches on, so the reflection
and descriptor sources must derive them the same way.
"""

from __future__ import annotations

# Payload property that identifies the primary record, by message name.
MESSAGE_PROPERTY_NAMES = {
    "Create": "Id",
    "Assign": "Target",
    "Update": "Target",
    "Delete": "Target",
    "Merge": "Target,SubordinateId",
    "SetState": "EntityMoniker",
    "SetStateDynamicEntity": "EntityMoniker",
}

_IGNORED_ENTITY_NAMES = {"entity", "none"}


def generate_step_name(
    type_name: str | None,
    message_name: str | None,
    primary_entity: str | None,
    secondary_entity: str | None = None,
) -> str:
    """Build a step name such as ``"Contact: Update of contact"``.

    A primary entity of ``entity`` or ``none`` counts as absent. When no
    entity is left the name ends with ``any Entity``.
    """
    primary = (primary_entity or "").lower()
    if primary in _IGNORED_ENTITY_NAMES:
        primary = ""

    parts = []
    if type_name and type_name.strip():
        parts.append(f"{type_name.split('.')[-1]}: ")

    parts.append(f"{message_name or 'Not Specified'} of ")

    if primary:
        parts.append(primary)

    if secondary_entity and secondary_entity.lower() != "none":
        parts.append(f"and {secondary_entity}" if primary else secondary_entity)
    elif not primary:
        parts.append("any Entity")

    return "".join(parts)


def message_property_name(message_name: str | None) -> str | None:
    if not message_name:
        return None
    return MESSAGE_PROPERTY_NAMES.get(message_name.replace("On", ""))


def handler_short_name(type_name: str) -> tuple[str, str]:
    """Split a type name into (namespace segment, short name without "Plugin").

    ``Acme.Plugins.ContactPlugin`` gives ``("Plugins", "Contact")``.
    """
    segments = type_name.split(".")
    short = segments[-1].removesuffix("Plugin")
    namespace = segments[-2] if len(segments) > 1 else ""
    return namespace, short


def handler_display_name(type_name: str) -> str:
    namespace, short = handler_short_name(type_name)
    return f" {namespace}: {short}"
