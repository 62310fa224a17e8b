from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Dict, List, Optional, Tuple, Type

import yaml
from attrs import define, evolve, field

from fixreconcile.context import ReconcileContext
from fixreconcile.errors import NotFoundError, ValidationError
from fixreconcile.resources.base import GcpReconcileResource, ResourceController
from fixreconcile.resources.compute import resource_kinds
from fixreconcile.state import ResourceRecord, State, StateStore
from fixreconcile.types import Json

log = logging.getLogger("fix.reconcile")

Desired = Dict[str, GcpReconcileResource]


class ChangeAction(Enum):
    create = "create"
    replace = "replace"
    delete = "delete"
    noop = "noop"


@define
class ResourceChange:
    address: str
    kind: str
    action: ChangeAction
    desired: Optional[GcpReconcileResource] = None
    record: Optional[ResourceRecord] = None
    changed: Tuple[str, ...] = field(factory=tuple)

    def __str__(self) -> str:
        reason = f" ({', '.join(self.changed)})" if self.changed else ""
        return f"{self.action.value} {self.address}{reason}"


def parse_address(address: str) -> Tuple[str, str]:
    kind, _, name = address.partition(".")
    if not kind or not name:
        raise ValidationError(f"Invalid resource address {address!r}. Expected <kind>.<name>")
    return kind, name


def parse_desired(content: Json, kinds: Dict[str, Type[GcpReconcileResource]] = resource_kinds) -> Desired:
    """
    Parse the desired configuration:

        gcp_address:
          web:
            name: web-ip
            address_type: EXTERNAL
        gcp_route:
          egress:
            name: egress
            ...

    :return: all declared resources by address <kind>.<logical name>
    """
    result: Desired = {}
    for kind, resources in (content or {}).items():
        if kind not in kinds:
            raise ValidationError(f"Unknown resource kind {kind}. Known kinds: {', '.join(sorted(kinds))}")
        if not isinstance(resources, dict):
            raise ValidationError(f"{kind}: expected a mapping of logical names to resource definitions")
        for logical_name, values in resources.items():
            if not isinstance(values, dict):
                raise ValidationError(f"{kind}.{logical_name}: expected a mapping of field names to values")
            result[f"{kind}.{logical_name}"] = kinds[kind].from_config(values)
    return result


def load_desired(path: str, kinds: Dict[str, Type[GcpReconcileResource]] = resource_kinds) -> Desired:
    with open(os.path.expanduser(path), "r", encoding="utf-8") as f:
        return parse_desired(yaml.safe_load(f) or {}, kinds)


class Reconciler:
    """
    Bring the remote objects in line with the desired configuration.

    Changes are executed one after the other. The state is saved after every step,
    so an interrupted run never loses the identity of a created object.
    """

    def __init__(
        self,
        context: ReconcileContext,
        store: Optional[StateStore] = None,
        kinds: Dict[str, Type[GcpReconcileResource]] = resource_kinds,
    ) -> None:
        self.context = context
        self.store = store
        self.kinds = kinds
        self._controllers: Dict[str, ResourceController[GcpReconcileResource]] = {}

    def controller(self, kind: str) -> ResourceController[GcpReconcileResource]:
        if kind not in self.kinds:
            raise ValidationError(f"Unknown resource kind {kind}")
        if kind not in self._controllers:
            self._controllers[kind] = ResourceController(self.kinds[kind], self.context)
        return self._controllers[kind]

    def plan(self, desired: Desired, state: State) -> List[ResourceChange]:
        """
        Compare the desired configuration with the state.
        Every field forces a new resource: a changed resource is replaced, never updated.
        The plan does not talk to the api: call refresh to detect drift first.
        """
        changes: List[ResourceChange] = []
        for address, resource in desired.items():
            record = state.get(address)
            if record is None:
                changes.append(ResourceChange(address, resource.kind, ChangeAction.create, resource))
                continue
            current = self.kinds[record.kind].from_attributes(record.attributes, record.declared)
            changed = resource.changed_fields(current, record.declared)
            desired_id = resource.id_template.format(resource.identity_values(self.context.defaults))
            if desired_id != record.id:
                changed = ("id",) + changed
            action = ChangeAction.replace if changed else ChangeAction.noop
            changes.append(ResourceChange(address, resource.kind, action, resource, record, changed))
        for record in state:
            if record.address not in desired:
                changes.append(ResourceChange(record.address, record.kind, ChangeAction.delete, record=record))
        for change in changes:
            if change.action != ChangeAction.noop:
                log.info(f"Plan: {change}")
        return changes

    def apply(self, changes: List[ResourceChange], state: State) -> State:
        """
        Execute the planned changes. A replace deletes the old object before the new one is created.
        Any error stops the run:
        - a failed create leaves no record.
        - a failed delete keeps the record, so the delete can be retried.
        - a timeout leaves the remote state unknown: refresh before the next run.
        """
        for change in changes:
            if change.action == ChangeAction.noop:
                # an unchanged resource takes over the declared fields of the configuration
                record, resource = change.record, change.desired
                if record is not None and resource is not None and record.declared != sorted(resource.declared):
                    state.put(evolve(record, declared=sorted(resource.declared)))
                    self._save(state)
                continue
            log.info(f"Apply: {change}")
            if change.action in (ChangeAction.delete, ChangeAction.replace) and change.record is not None:
                self.controller(change.record.kind).delete(change.record.id)
                state.remove(change.address)
                self._save(state)
            if change.action in (ChangeAction.create, ChangeAction.replace) and change.desired is not None:
                resource = change.desired
                resource_id = self.controller(change.kind).create(resource)
                state.put(self._record(change.address, resource_id, resource))
                self._save(state)
        return state

    def destroy(self, state: State) -> State:
        return self.apply([ResourceChange(r.address, r.kind, ChangeAction.delete, record=r) for r in state], state)

    def refresh(self, state: State) -> List[str]:
        """
        Read all resources of the state. Resources that do not exist anymore are removed.
        :return: the addresses of all removed resources.
        """
        dropped: List[str] = []
        for record in state:
            remote = self.controller(record.kind).read(record.id)
            if remote is None:
                log.warning(f"{record.address} ({record.id}) was deleted outside of this tool.")
                state.remove(record.address)
                dropped.append(record.address)
            else:
                attributes = remote.to_attributes()
                state.put(ResourceRecord(record.address, record.kind, record.id, attributes, record.declared))
        self._save(state)
        return dropped

    def import_resource(self, address: str, import_id: str, state: State) -> ResourceRecord:
        """
        Bring an existing remote object under management.
        """
        kind, _ = parse_address(address)
        if existing := state.get(address):
            raise ValidationError(f"{address} is already managed with id {existing.id}")
        seed = self.controller(kind).import_resource(import_id)
        if seed.id is None:
            raise ValidationError(f"Can not import {address}: {import_id} does not resolve to an identity")
        remote = self.controller(kind).read(seed.id)
        if remote is None:
            raise NotFoundError(f"Can not import {address}: {kind} {seed.id} does not exist")
        record = self._record(address, seed.id, remote)
        state.put(record)
        self._save(state)
        return record

    @staticmethod
    def _record(address: str, resource_id: str, resource: GcpReconcileResource) -> ResourceRecord:
        return ResourceRecord(address, resource.kind, resource_id, resource.to_attributes(), sorted(resource.declared))

    def _save(self, state: State) -> None:
        if self.store is not None:
            self.store.save(state)
