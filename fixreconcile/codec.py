"""
Expand direction of the field codec: declared values -> wire payload.

The flatten direction is defined per resource kind as `mapping` (see fixreconcile.json_bender).
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from attrs import frozen, field

from fixreconcile.errors import InvalidReferenceError, ValidationError
from fixreconcile.links import (
    compare_self_link_or_resource_name,
    name_from_self_link,
    parse_global_field_value,
    parse_location_field_value,
    parse_regional_field_value,
    parse_zonal_field_value,
)
from fixreconcile.types import Json

log = logging.getLogger("fix.reconcile.codec")


class FieldKind(Enum):
    string = "string"
    integer = "integer"
    boolean = "boolean"
    list = "list"
    set = "set"


# One zero check per kind of value. None is the zero value of every kind.
ZeroChecks: Dict[FieldKind, Callable[[Any], bool]] = {
    FieldKind.string: lambda v: v == "",
    FieldKind.integer: lambda v: v == 0,
    FieldKind.boolean: lambda v: v is False,
    FieldKind.list: lambda v: len(v) == 0,
    FieldKind.set: lambda v: len(v) == 0,
}


def is_zero(kind: FieldKind, value: Any) -> bool:
    return value is None or ZeroChecks[kind](value)


class ExpandContext:
    """
    Read-only view used while expanding a single resource.
    Values are looked up on the resource itself first and on the ambient defaults second.
    """

    def __init__(self, values: Mapping[str, Any], defaults: Optional[Mapping[str, Any]] = None) -> None:
        self.values = values
        self.defaults = defaults or {}

    def get(self, *names: str) -> Optional[str]:
        for name in names:
            if value := self.values.get(name):
                return value  # type: ignore
        for name in names:
            if value := self.defaults.get(name):
                return value  # type: ignore
        return None


Expander = Callable[[Any, ExpandContext], Any]


@frozen
class WireField:
    """
    Declares how one field of a resource is sent to the API.

    name: name of the declared field.
    wire_name: name of the property in the api payload (camelCase). None: the field is compared, but never sent.
    kind: kind of the value, used for the zero check.
    expand: optional function to translate the declared into the wire value.
    required: the field needs to be declared.
    reference: the field references another object: declared names and links of the same object are equal.
    send_empty: the zero value is a meaningful value and is sent, if the field is declared.
    """

    name: str
    wire_name: Optional[str]
    kind: FieldKind = FieldKind.string
    expand: Optional[Expander] = field(default=None, eq=False)
    required: bool = False
    reference: bool = False
    send_empty: bool = False

    def expand_value(self, value: Any, context: ExpandContext) -> Any:
        if value is None:
            return None
        try:
            return self.expand(value, context) if self.expand is not None else value
        except InvalidReferenceError as e:
            raise InvalidReferenceError(f"Invalid value for {self.name}: {e}", self.name) from e

    def differs(self, declared: Any, remote: Any) -> bool:
        """
        True if the remote value does not reflect the declared value.
        Only called for declared fields.
        """
        if self.reference:
            return not compare_self_link_or_resource_name(declared, remote)
        elif self.kind in (FieldKind.set, FieldKind.list):
            left, right = declared or [], remote or []
            if self.kind == FieldKind.set:
                return set(left) != set(right)
            return list(left) != list(right)
        elif is_zero(self.kind, declared) and is_zero(self.kind, remote):
            return False
        else:
            return bool(declared != remote)


def expand_payload(
    values: Mapping[str, Any],
    declared: Iterable[str],
    fields: Iterable[WireField],
    defaults: Optional[Mapping[str, Any]] = None,
) -> Json:
    """
    Build the wire payload for a create call.

    A field is part of the payload, if its expanded value is not zero and
    it was either explicitly declared or the expansion changed its value.
    A declared send_empty field is also sent with its zero value.

    :param values: the values of the resource by field name.
    :param declared: the names of all fields explicitly declared by the user.
    :param fields: the wire fields of the resource kind.
    :param defaults: ambient defaults (project, region, zone) used to resolve references.
    :raises ValidationError: if a required field is missing or a value can not be expanded.
    """
    declared_names = frozenset(declared)
    context = ExpandContext(values, defaults)
    payload: Json = {}
    for wire_field in fields:
        value = values.get(wire_field.name)
        if wire_field.required and (value is None or value == ""):
            raise ValidationError(f"Required field {wire_field.name} is not defined", wire_field.name)
        if wire_field.wire_name is None:
            continue
        expanded = wire_field.expand_value(value, context)
        explicit = wire_field.name in declared_names
        if is_zero(wire_field.kind, expanded):
            if explicit and wire_field.send_empty and expanded is not None:
                payload[wire_field.wire_name] = expanded
        elif explicit or expanded != value:
            payload[wire_field.wire_name] = expanded
    log.debug(f"Expanded payload: {payload}")
    return payload


def diff_fields(
    declared_values: Mapping[str, Any],
    remote_values: Mapping[str, Any],
    declared: Iterable[str],
    fields: Iterable[WireField],
    previously_declared: Iterable[str] = (),
) -> Tuple[str, ...]:
    """
    Names of all declared fields whose remote value differs from the declared one.
    Fields that are not declared are owned by the server and never differ.
    A field that is not declared anymore is compared against its empty value.
    """
    declared_names = frozenset(declared) | frozenset(previously_declared)
    return tuple(
        f.name
        for f in fields
        if f.name in declared_names and f.differs(declared_values.get(f.name), remote_values.get(f.name))
    )


# region expanders


def global_reference(resource_type: str) -> Expander:
    def expand(value: Any, context: ExpandContext) -> str:
        return parse_global_field_value(resource_type, value, context.get).relative_link()

    return expand


def location_reference(resource_type: str) -> Expander:
    def expand(value: Any, context: ExpandContext) -> str:
        return parse_location_field_value(resource_type, value, context.get).relative_link()

    return expand


def regional_reference(resource_type: str, region_fields: Optional[Dict[str, str]] = None) -> Expander:
    candidates = region_fields or {"region": "region"}

    def expand(value: Any, context: ExpandContext) -> str:
        return parse_regional_field_value(resource_type, value, context.get, candidates).relative_link()

    return expand


def zonal_reference(resource_type: str, zone_field: str = "zone") -> Expander:
    def lookup(context: ExpandContext) -> Callable[..., Optional[str]]:
        # the zone field of the resource wins over the ambient zone. A zone link is reduced to its name
        def get(name: str) -> Optional[str]:
            if name == "zone":
                zone = context.get(zone_field, "zone")
                return name_from_self_link(zone) if zone else None
            return context.get(name)

        return get

    def expand(value: Any, context: ExpandContext) -> str:
        return parse_zonal_field_value(resource_type, value, lookup(context)).relative_link()

    return expand


def as_sorted_list(value: Any, _: ExpandContext) -> Any:
    return sorted(set(value))


# endregion
