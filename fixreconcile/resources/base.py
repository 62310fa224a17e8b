from __future__ import annotations

import logging
from datetime import timedelta
from typing import ClassVar, Dict, FrozenSet, Generic, Iterable, List, Optional, Set, Tuple, Type, TypeVar, Any

from attrs import define, field, fields as attrs_fields

from fixreconcile.codec import WireField, expand_payload, diff_fields
from fixreconcile.context import ReconcileContext
from fixreconcile.errors import NotFoundError, ReconcileError, ValidationError
from fixreconcile.gcp_client import GcpApiSpec
from fixreconcile.import_id import IdTemplate, resolve_import_id
from fixreconcile.json import from_json, to_json
from fixreconcile.json_bender import Bender, bend
from fixreconcile.links import name_from_self_link
from fixreconcile.operation import GcpOperation
from fixreconcile.types import Json

log = logging.getLogger("fix.reconcile.resources")


@define(eq=False, slots=False)
class GcpReconcileResource:
    """
    Base class of all resource kinds.

    A resource kind declares:
    - api_spec: the collection of the compute api.
    - wire_fields: how declared values are sent to the api (expand direction).
    - mapping: how api objects are read back into declared values (flatten direction).
    - id_template and import_patterns: how the identity is built and how import ids are parsed.
    """

    kind: ClassVar[str] = "gcp_resource"
    api_spec: ClassVar[Optional[GcpApiSpec]] = None
    mapping: ClassVar[Dict[str, Bender]] = {}
    wire_fields: ClassVar[List[WireField]] = []
    id_template: ClassVar[IdTemplate] = IdTemplate("{project}/{name}")
    import_patterns: ClassVar[List[str]] = []
    # fields that are only assigned by the server
    computed_fields: ClassVar[Set[str]] = {"id", "self_link"}
    default_timeouts: ClassVar[Dict[str, timedelta]] = {
        "create": timedelta(minutes=4),
        "delete": timedelta(minutes=4),
    }

    id: Optional[str] = None
    name: Optional[str] = None
    project: Optional[str] = None
    self_link: Optional[str] = None
    # names of all fields explicitly declared by the user
    _declared: FrozenSet[str] = field(factory=frozenset)

    @classmethod
    def schema_fields(cls) -> List[str]:
        return [a.name for a in attrs_fields(cls) if not a.name.startswith("_")]

    @classmethod
    def from_config(cls: Type[GcpResourceType], values: Json) -> GcpResourceType:
        """
        Create the desired state from the declared values of the user.
        :raises ValidationError: if a field is unknown, computed by the server or has the wrong type.
        """
        known = set(cls.schema_fields())
        if unknown := sorted(k for k in values if k not in known):
            raise ValidationError(f"{cls.kind}: unknown field(s) {', '.join(unknown)}", unknown[0])
        if computed := sorted(k for k in values if k in cls.computed_fields):
            raise ValidationError(f"{cls.kind}: field(s) {', '.join(computed)} can not be declared", computed[0])
        declared = {k: v for k, v in values.items() if v is not None}
        try:
            resource = from_json(declared, cls)
        except Exception as e:
            raise ValidationError(f"{cls.kind}: invalid configuration {values}: {e}") from e
        resource._declared = frozenset(declared)
        resource.validate()
        return resource

    @classmethod
    def from_api(cls: Type[GcpResourceType], js: Json, context: Optional[Dict[str, Any]] = None) -> GcpResourceType:
        """
        Flatten the api representation into the declared schema.
        :param context: identity of the read call, available to the mapping via Context().
        """
        mapped = bend(cls.mapping, js, context)
        return from_json(mapped, cls)

    @classmethod
    def from_attributes(cls: Type[GcpResourceType], attributes: Json, declared: List[str]) -> GcpResourceType:
        resource = from_json(attributes, cls)
        resource._declared = frozenset(declared)
        return resource

    def to_attributes(self) -> Json:
        return to_json(self)

    @property
    def declared(self) -> FrozenSet[str]:
        return self._declared

    def validate(self) -> None:
        """
        Validate the declared values. Override in subclasses.
        :raises ValidationError: if a declared value is not valid.
        """

    def values(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.schema_fields()}

    def field_values(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name, None) for f in self.wire_fields}

    def identity_values(self, defaults: Dict[str, Optional[str]]) -> Dict[str, str]:
        """
        Identity fields of this resource: declared values win over ambient defaults.
        A location declared as link (projects/p/regions/r) is reduced to its name.
        """
        values = {f: getattr(self, f, None) or defaults.get(f) for f in self.id_template.fields}
        return {k: name_from_self_link(v) if v else v for k, v in values.items()}  # type: ignore

    def expand(self, defaults: Dict[str, Optional[str]]) -> Json:
        return expand_payload(self.values(), self._declared, self.wire_fields, defaults)

    def changed_fields(self, remote: GcpReconcileResource, previously_declared: Iterable[str] = ()) -> Tuple[str, ...]:
        """
        Declared fields that are not reflected by the remote object.
        Every declared field forces a new resource, so any change requires destroy and create.
        previously_declared: fields declared when the remote object was created.
        Such a field that is not declared anymore differs, as long as the remote value is not empty.
        """
        return diff_fields(
            self.field_values(), remote.field_values(), self._declared, self.wire_fields, previously_declared
        )

    def hydrate(self, remote: GcpReconcileResource) -> None:
        """
        Take over the canonical values of the remote object. The set of declared fields is kept.
        """
        for name in self.schema_fields():
            setattr(self, name, getattr(remote, name))


GcpResourceType = TypeVar("GcpResourceType", bound=GcpReconcileResource)


class ResourceController(Generic[GcpResourceType]):
    """
    Create, read, delete and import resources of one kind.

    The identity of a resource is the only handle to the remote object:
        absent -> creating -> present -> deleting -> absent
    A present resource that can not be found by read is absent (drift).
    """

    def __init__(self, clazz: Type[GcpResourceType], context: ReconcileContext) -> None:
        if clazz.api_spec is None:
            raise ValueError(f"Resource kind {clazz.kind} does not define an api spec")
        self.clazz = clazz
        self.api_spec: GcpApiSpec = clazz.api_spec
        self.context = context
        self.client = context.client
        self.poller = context.poller()

    def create(self, desired: GcpResourceType) -> str:
        """
        Create the remote object and wait for the operation.
        On success, the id is assigned and the desired state is hydrated with the remote state.
        On failure, the desired state has no id.
        :return: the id of the created resource.
        """
        kind = self.clazz.kind
        desired.validate()
        identity = desired.identity_values(self.context.defaults)
        resource_id = self.clazz.id_template.format(identity)
        payload = desired.expand(self.context.defaults)
        log.info(f"Create {kind} {resource_id}")
        log.debug(f"Create {kind} {resource_id} with payload {payload}")
        # no identity is assigned, if the submission fails
        handle = GcpOperation.from_api(self.client.insert(self.api_spec, payload, **identity))
        desired.id = resource_id
        try:
            self.poller.wait(
                handle,
                project=identity.get("project"),
                timeout=self.context.timeout_for(self.clazz, "create"),
                min_poll_interval=self.context.config.poll_interval,
                activity=f"create {kind} {resource_id}",
            )
        except ReconcileError as e:
            log.warning(f"Create {kind} {resource_id} did not succeed. Identity is removed. Reason: {e}")
            desired.id = None
            raise
        remote = self.read(resource_id)
        if remote is None:
            desired.id = None
            raise NotFoundError(f"{kind} {resource_id} was created, but can not be read")
        desired.hydrate(remote)
        return resource_id

    def read(self, identity: str) -> Optional[GcpResourceType]:
        """
        Read the remote object.
        :return: the flattened remote state or None, if the object does not exist (anymore).
        """
        params = self.clazz.id_template.parse(identity)
        try:
            js = self.client.get(self.api_spec, **params)
        except NotFoundError:
            log.warning(f"{self.clazz.kind} {identity} does not exist anymore. Remove it from state.")
            return None
        remote = self.clazz.from_api(js, params)
        remote.id = self.clazz.id_template.format(remote.identity_values(params))
        if remote.id != identity:
            log.warning(f"{self.clazz.kind} {identity} is reported with identity {remote.id}")
        return remote

    def delete(self, identity: str) -> None:
        """
        Delete the remote object and wait for the operation.
        Deleting an object that does not exist is not an error.
        """
        kind = self.clazz.kind
        params = self.clazz.id_template.parse(identity)
        log.info(f"Delete {kind} {identity}")
        try:
            handle = GcpOperation.from_api(self.client.delete(self.api_spec, **params))
        except NotFoundError:
            log.info(f"{kind} {identity} does not exist. Nothing to delete.")
            return
        self.poller.wait(
            handle,
            project=params.get("project"),
            timeout=self.context.timeout_for(self.clazz, "delete"),
            min_poll_interval=self.context.config.poll_interval,
            activity=f"delete {kind} {identity}",
        )

    def import_resource(self, import_id: str) -> GcpResourceType:
        """
        Resolve the import id into the identity fields of the resource.
        Only the identity is seeded: all other fields are populated by a following read.
        """
        fields = resolve_import_id(import_id, self.clazz.import_patterns, self.context.defaults)
        seed = self.clazz(**{name: fields.get(name) for name in self.clazz.id_template.fields})
        seed.id = self.clazz.id_template.format(seed.identity_values(self.context.defaults))
        log.info(f"Import {self.clazz.kind} {import_id} as {seed.id}")
        return seed
