"""
Reference fields of compute resources point to other objects (networks, subnetworks, regions, ...).
Users can declare such a reference as full self link, relative link, partial link or plain name.
The functions in this module resolve all of those shapes into one canonical relative link,
so that the same object is always sent in the same representation.
"""
import re
from typing import Optional, Mapping, Callable, Any

from attrs import frozen

from fixreconcile.errors import InvalidReferenceError

ComputeBaseUrl = "https://compute.googleapis.com/compute/v1/"
# self links are returned by different hosts and api versions: https://www.googleapis.com/compute/beta/...
UrlPrefix = r"(?:https?://(?:www|compute)\.googleapis\.com/compute/[^/]+/)?"
NamePart = r"([^/\s]+)"

# Lookup used to resolve missing parts of a reference: field name -> value
Lookup = Callable[..., Optional[str]]


def self_link_to_v1(link: str) -> str:
    """
    https://www.googleapis.com/compute/beta/projects/p/global/networks/n
    -> https://www.googleapis.com/compute/v1/projects/p/global/networks/n
    """
    return re.sub(r"(googleapis\.com/compute/)[^/]+/", r"\1v1/", link, count=1)


def name_from_self_link(link: str) -> str:
    return link.rstrip("/").rsplit("/", 1)[-1]


def relative_link(link: str) -> str:
    return re.sub("^" + UrlPrefix, "", link)


def project_from_link(link: Any) -> Optional[str]:
    if isinstance(link, str) and (matched := re.search(r"(?:^|/)projects/([^/]+)/", link)):
        return matched.group(1)
    return None


def compare_self_link_or_resource_name(a: Optional[str], b: Optional[str]) -> bool:
    """
    Two references are considered equal, if they point to an object with the same name.
    This allows users to declare either a name or any kind of link.
    """
    if not a or not b:
        return (a or None) == (b or None)
    return name_from_self_link(a) == name_from_self_link(b)


def region_from_zone(zone: str) -> str:
    return zone.rsplit("-", 1)[0]


def zone_from_link(link: Any) -> Optional[str]:
    if isinstance(link, str) and (matched := re.search(r"(?:^|/)zones/([^/]+)/", link)):
        return matched.group(1)
    return None


@frozen
class GlobalFieldValue:
    resource_type: str
    project: str
    name: str

    def relative_link(self) -> str:
        return f"projects/{self.project}/global/{self.resource_type}/{self.name}"


@frozen
class LocationFieldValue:
    """
    Project level objects that are not prefixed with `global`: regions and zones.
    """

    resource_type: str
    project: str
    name: str

    def relative_link(self) -> str:
        return f"projects/{self.project}/{self.resource_type}/{self.name}"


@frozen
class RegionalFieldValue:
    resource_type: str
    project: str
    region: str
    name: str

    def relative_link(self) -> str:
        return f"projects/{self.project}/regions/{self.region}/{self.resource_type}/{self.name}"


@frozen
class ZonalFieldValue:
    resource_type: str
    project: str
    zone: str
    name: str

    def relative_link(self) -> str:
        return f"projects/{self.project}/zones/{self.zone}/{self.resource_type}/{self.name}"


def _required(value: Optional[str], what: str, resource_type: str, field_value: str) -> str:
    if not value:
        raise InvalidReferenceError(f"Can not determine the {what} of {resource_type} reference {field_value!r}")
    return value


def _invalid(resource_type: str, field_value: str, expected: str) -> InvalidReferenceError:
    return InvalidReferenceError(
        f"Invalid {resource_type} reference {field_value!r}. Expected a self link, {expected} or a name."
    )


def parse_global_field_value(resource_type: str, field_value: str, lookup: Lookup) -> GlobalFieldValue:
    if matched := re.fullmatch(f"{UrlPrefix}projects/{NamePart}/global/{resource_type}/{NamePart}", field_value):
        return GlobalFieldValue(resource_type, matched.group(1), matched.group(2))
    if matched := re.fullmatch(f"global/{resource_type}/{NamePart}", field_value):
        name = matched.group(1)
    elif re.fullmatch(NamePart, field_value):
        name = field_value
    else:
        raise _invalid(resource_type, field_value, f"projects/{{project}}/global/{resource_type}/{{name}}")
    project = _required(lookup("project"), "project", resource_type, field_value)
    return GlobalFieldValue(resource_type, project, name)


def parse_location_field_value(resource_type: str, field_value: str, lookup: Lookup) -> LocationFieldValue:
    if matched := re.fullmatch(f"{UrlPrefix}projects/{NamePart}/{resource_type}/{NamePart}", field_value):
        return LocationFieldValue(resource_type, matched.group(1), matched.group(2))
    if not re.fullmatch(NamePart, field_value):
        raise _invalid(resource_type, field_value, f"projects/{{project}}/{resource_type}/{{name}}")
    project = _required(lookup("project"), "project", resource_type, field_value)
    return LocationFieldValue(resource_type, project, field_value)


def parse_regional_field_value(
    resource_type: str,
    field_value: str,
    lookup: Lookup,
    region_fields: Mapping[str, str] = {"region": "region"},
) -> RegionalFieldValue:
    """
    Resolve a regional reference.
    Missing parts are looked up: the region either directly, or derived from a zone.
    :param region_fields: candidate field names (in order) to look up the region -> kind of the field (region or zone).
    """
    if matched := re.fullmatch(
        f"{UrlPrefix}projects/{NamePart}/regions/{NamePart}/{resource_type}/{NamePart}", field_value
    ):
        return RegionalFieldValue(resource_type, matched.group(1), matched.group(2), matched.group(3))
    project = lookup("project")
    if matched := re.fullmatch(f"regions/{NamePart}/{resource_type}/{NamePart}", field_value):
        region: Optional[str] = matched.group(1)
        name = matched.group(2)
    elif re.fullmatch(NamePart, field_value):
        name = field_value
        region = None
        for field_name, field_kind in region_fields.items():
            if value := lookup(field_name):
                region = region_from_zone(value) if field_kind == "zone" else name_from_self_link(value)
                break
    else:
        raise _invalid(resource_type, field_value, f"regions/{{region}}/{resource_type}/{{name}}")
    return RegionalFieldValue(
        resource_type,
        _required(project, "project", resource_type, field_value),
        _required(region, "region", resource_type, field_value),
        name,
    )


def parse_zonal_field_value(
    resource_type: str, field_value: str, lookup: Lookup, zone_field: str = "zone"
) -> ZonalFieldValue:
    if matched := re.fullmatch(
        f"{UrlPrefix}projects/{NamePart}/zones/{NamePart}/{resource_type}/{NamePart}", field_value
    ):
        return ZonalFieldValue(resource_type, matched.group(1), matched.group(2), matched.group(3))
    project = lookup("project")
    if matched := re.fullmatch(f"zones/{NamePart}/{resource_type}/{NamePart}", field_value):
        zone: Optional[str] = matched.group(1)
        name = matched.group(2)
    elif re.fullmatch(NamePart, field_value):
        name = field_value
        zone = lookup(zone_field)
    else:
        raise _invalid(resource_type, field_value, f"zones/{{zone}}/{resource_type}/{{name}}")
    return ZonalFieldValue(
        resource_type,
        _required(project, "project", resource_type, field_value),
        _required(zone, "zone", resource_type, field_value),
        name,
    )
