"""Structural comparison of registration records.

Each record kind has an explicit list of the fields that decide whether an
update write is needed. Child collections are never compared, and ``id`` is
always part of the list, so records with different ids are never equal.
A step's ``enabled`` flag is left out because it is reasserted separately.
"""

from __future__ import annotations

from pluginsync.model.entities import Assembly, Handler, Image, Step

ASSEMBLY_FIELDS = (
    "id",
    "name",
    "version",
    "culture",
    "public_key_token",
    "isolation_mode",
    "source_type",
    "sdk_version",
    "description",
)

HANDLER_FIELDS = (
    "id",
    "assembly_id",
    "assembly_name",
    "type_name",
    "kind",
    "isolatable",
    "display_name",
    "friendly_name",
    "description",
    "workflow_group_name",
)

STEP_FIELDS = (
    "id",
    "assembly_id",
    "handler_id",
    "name",
    "message_id",
    "message_entity_filter_id",
    "stage",
    "mode",
    "rank",
    "deployment",
    "filtering_attributes",
    "description",
    "unsecure_configuration",
    "secure_configuration_id",
    "impersonating_user_id",
    "delete_async_operation_if_successful",
)

IMAGE_FIELDS = (
    "id",
    "assembly_id",
    "handler_id",
    "step_id",
    "name",
    "image_kind",
    "attributes",
    "related_attribute",
    "entity_alias",
    "message_property_name",
)

_FIELDS_BY_KIND: dict[type, tuple[str, ...]] = {
    Assembly: ASSEMBLY_FIELDS,
    Handler: HANDLER_FIELDS,
    Step: STEP_FIELDS,
    Image: IMAGE_FIELDS,
}


def fields_for(record) -> tuple[str, ...]:
    try:
        return _FIELDS_BY_KIND[type(record)]
    except KeyError:
        raise TypeError(f"No comparison fields for {type(record).__name__}") from None


def field_differences(a, b) -> list[str]:
    """Names of the compared fields whose values differ between a and b."""
    if type(a) is not type(b):
        raise TypeError(
            f"Cannot compare {type(a).__name__} with {type(b).__name__}"
        )
    return [name for name in fields_for(a) if getattr(a, name) != getattr(b, name)]


def structurally_equal(a, b) -> bool:
    if a is b:
        return True
    if a is None or b is None or type(a) is not type(b):
        return False
    return not field_differences(a, b)
