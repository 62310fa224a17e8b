import logging
import re
from datetime import timedelta
from typing import ClassVar, Dict, List, Optional, Set, Type

from attr import define, field

from fixreconcile.codec import (
    FieldKind,
    WireField,
    as_sorted_list,
    global_reference,
    location_reference,
    regional_reference,
    zonal_reference,
)
from fixreconcile.errors import ValidationError
from fixreconcile.gcp_client import GcpApiSpec
from fixreconcile.import_id import IdTemplate
from fixreconcile.json_bender import (
    Bender,
    S,
    K,
    F,
    Context,
    AsInt,
    AsSortedSet,
    EmptyToNone,
    ShortName,
    SelfLinkV1,
)
from fixreconcile.links import project_from_link, zone_from_link
from fixreconcile.resources.base import GcpReconcileResource

log = logging.getLogger("fix.reconcile.resources")

# names of compute objects: RFC1035
NameRe = re.compile(r"^(?:[a-z](?:[-a-z0-9]{0,61}[a-z0-9])?)$")

# project of the read call wins, the project of the self link is the fallback
ProjectBender: Bender = (Context() >> S("project")).or_else(S("selfLink") >> F(project_from_link))


def validate_name(kind: str, name: Optional[str]) -> None:
    if name is not None and not NameRe.match(name):
        raise ValidationError(f"{kind}: name {name!r} does not match {NameRe.pattern}", "name")


def validate_choice(kind: str, field_name: str, value: Optional[str], choices: List[str]) -> None:
    if value is not None and value not in choices:
        expected = ", ".join(c or "<empty>" for c in choices)
        raise ValidationError(f"{kind}: {field_name} {value!r} is not valid. Expected one of: {expected}", field_name)


@define(eq=False, slots=False)
class GcpAddress(GcpReconcileResource):
    """
    A static ip address of a region.
    """

    kind: ClassVar[str] = "gcp_address"
    api_spec: ClassVar[GcpApiSpec] = GcpApiSpec(
        service="compute",
        version="v1",
        accessors=["addresses"],
        action="get",
        request_parameter={"project": "{project}", "region": "{region}"},
        get_identifier="address",
        path="projects/{project}/regions/{region}/addresses/{name}",
    )
    wire_fields: ClassVar[List[WireField]] = [
        WireField("address", "address"),
        WireField("address_type", "addressType"),
        WireField("description", "description"),
        WireField("name", "name", required=True),
        WireField("network_tier", "networkTier"),
        WireField("subnetwork", "subnetwork", expand=regional_reference("subnetworks"), reference=True),
        WireField("region", "region", expand=location_reference("regions"), reference=True),
    ]
    mapping: ClassVar[Dict[str, Bender]] = {
        "name": S("name"),
        "project": ProjectBender,
        "address": S("address"),
        # the server does not report the default address type
        "address_type": (S("addressType") >> EmptyToNone).or_else(K("EXTERNAL")),
        "description": S("description"),
        "network_tier": S("networkTier"),
        "subnetwork": S("subnetwork") >> ShortName,
        "region": S("region") >> ShortName,
        "creation_timestamp": S("creationTimestamp"),
        "users": S("users", default=[]),
        "self_link": S("selfLink") >> SelfLinkV1,
    }
    id_template: ClassVar[IdTemplate] = IdTemplate("{project}/{region}/{name}")
    import_patterns: ClassVar[List[str]] = [
        "projects/{project}/regions/{region}/addresses/{name}",
        "{project}/{region}/{name}",
        "{name}",
    ]
    computed_fields: ClassVar[Set[str]] = {"id", "self_link", "creation_timestamp", "users"}
    default_timeouts: ClassVar[Dict[str, timedelta]] = {
        "create": timedelta(seconds=240),
        "delete": timedelta(seconds=240),
    }
    address_types: ClassVar[List[str]] = ["INTERNAL", "EXTERNAL", ""]
    network_tiers: ClassVar[List[str]] = ["PREMIUM", "STANDARD", ""]

    address: Optional[str] = field(default=None)
    address_type: Optional[str] = field(default=None)
    description: Optional[str] = field(default=None)
    network_tier: Optional[str] = field(default=None)
    subnetwork: Optional[str] = field(default=None)
    region: Optional[str] = field(default=None)
    creation_timestamp: Optional[str] = field(default=None)
    users: Optional[List[str]] = field(default=None)

    def validate(self) -> None:
        validate_name(self.kind, self.name)
        validate_choice(self.kind, "address_type", self.address_type, self.address_types)
        validate_choice(self.kind, "network_tier", self.network_tier, self.network_tiers)


@define(eq=False, slots=False)
class GcpRoute(GcpReconcileResource):
    """
    A route of a network. Exactly one next hop has to be defined.
    """

    kind: ClassVar[str] = "gcp_route"
    api_spec: ClassVar[GcpApiSpec] = GcpApiSpec(
        service="compute",
        version="v1",
        accessors=["routes"],
        action="get",
        request_parameter={"project": "{project}"},
        get_identifier="route",
        path="projects/{project}/global/routes/{name}",
    )
    wire_fields: ClassVar[List[WireField]] = [
        WireField("dest_range", "destRange", required=True),
        WireField("description", "description"),
        WireField("name", "name", required=True),
        WireField("network", "network", expand=global_reference("networks"), required=True, reference=True),
        WireField("priority", "priority", kind=FieldKind.integer, required=True, send_empty=True),
        WireField("tags", "tags", kind=FieldKind.set, expand=as_sorted_list),
        WireField("next_hop_gateway", "nextHopGateway", expand=global_reference("gateways"), reference=True),
        WireField(
            "next_hop_instance",
            "nextHopInstance",
            expand=zonal_reference("instances", zone_field="next_hop_instance_zone"),
            reference=True,
        ),
        # only used to resolve next_hop_instance
        WireField("next_hop_instance_zone", None, reference=True),
        WireField("next_hop_ip", "nextHopIp"),
        WireField("next_hop_network", "nextHopNetwork", expand=global_reference("networks"), reference=True),
        WireField(
            "next_hop_vpn_tunnel",
            "nextHopVpnTunnel",
            expand=regional_reference("vpnTunnels", {"region": "region", "zone": "zone"}),
            reference=True,
        ),
    ]
    mapping: ClassVar[Dict[str, Bender]] = {
        "name": S("name"),
        "project": ProjectBender,
        "dest_range": S("destRange"),
        "description": S("description"),
        "network": S("network") >> ShortName,
        "priority": S("priority") >> AsInt(),
        "tags": S("tags", default=[]) >> AsSortedSet(),
        "next_hop_gateway": S("nextHopGateway") >> ShortName,
        "next_hop_instance": S("nextHopInstance") >> ShortName,
        "next_hop_instance_zone": S("nextHopInstance") >> F(zone_from_link),
        "next_hop_ip": S("nextHopIp"),
        "next_hop_network": S("nextHopNetwork") >> ShortName,
        "next_hop_vpn_tunnel": S("nextHopVpnTunnel") >> ShortName,
        "self_link": S("selfLink") >> SelfLinkV1,
    }
    id_template: ClassVar[IdTemplate] = IdTemplate("{project}/{name}")
    import_patterns: ClassVar[List[str]] = [
        "projects/{project}/global/routes/{name}",
        "{project}/{name}",
        "{name}",
    ]
    default_timeouts: ClassVar[Dict[str, timedelta]] = {
        "create": timedelta(minutes=2),
        "delete": timedelta(minutes=2),
    }
    next_hop_fields: ClassVar[List[str]] = [
        "next_hop_gateway",
        "next_hop_instance",
        "next_hop_ip",
        "next_hop_network",
        "next_hop_vpn_tunnel",
    ]

    dest_range: Optional[str] = field(default=None)
    description: Optional[str] = field(default=None)
    network: Optional[str] = field(default=None)
    priority: Optional[int] = field(default=None)
    tags: Optional[List[str]] = field(default=None)
    next_hop_gateway: Optional[str] = field(default=None)
    next_hop_instance: Optional[str] = field(default=None)
    next_hop_instance_zone: Optional[str] = field(default=None)
    next_hop_ip: Optional[str] = field(default=None)
    next_hop_network: Optional[str] = field(default=None)
    next_hop_vpn_tunnel: Optional[str] = field(default=None)

    def validate(self) -> None:
        validate_name(self.kind, self.name)
        # the server reports computed next hops (e.g. the ip of an instance): only declared hops count
        hops = [f for f in self.next_hop_fields if f in self.declared and getattr(self, f)]
        if len(hops) != 1:
            raise ValidationError(
                f"{self.kind}: exactly one of {', '.join(self.next_hop_fields)} needs to be defined. Got: {hops}",
                hops[0] if hops else self.next_hop_fields[0],
            )
        if self.next_hop_instance_zone is not None and "next_hop_instance" not in self.declared:
            raise ValidationError(
                f"{self.kind}: next_hop_instance_zone requires next_hop_instance", "next_hop_instance_zone"
            )
        if self.priority is not None and not (isinstance(self.priority, int) and 0 <= self.priority <= 65535):
            raise ValidationError(f"{self.kind}: priority {self.priority!r} is not in range 0..65535", "priority")


# all resource kinds by kind name
resource_kinds: Dict[str, Type[GcpReconcileResource]] = {clazz.kind: clazz for clazz in [GcpAddress, GcpRoute]}
