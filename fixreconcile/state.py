from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Dict, List, Optional, Iterator

from attrs import define, field

from fixreconcile.json import from_json, to_json
from fixreconcile.types import Json

log = logging.getLogger("fix.reconcile.state")

StateVersion = 1


@define
class ResourceRecord:
    """
    Persisted state of one managed resource.

    address: <kind>.<logical name>, the key of the resource in the desired configuration.
    id: the identity of the remote object.
    attributes: flat map of all fields by their schema name.
    declared: names of the fields declared by the user.
    """

    address: str
    kind: str
    id: str
    attributes: Json = field(factory=dict)
    declared: List[str] = field(factory=list)


@define
class State:
    version: int = StateVersion
    resources: Dict[str, ResourceRecord] = field(factory=dict)

    def get(self, address: str) -> Optional[ResourceRecord]:
        return self.resources.get(address)

    def put(self, record: ResourceRecord) -> None:
        self.resources[record.address] = record

    def remove(self, address: str) -> Optional[ResourceRecord]:
        return self.resources.pop(address, None)

    def __iter__(self) -> Iterator[ResourceRecord]:
        return iter(list(self.resources.values()))

    def __len__(self) -> int:
        return len(self.resources)


class StateStore:
    """
    Json file holding the state. The file is replaced atomically on every save.
    """

    def __init__(self, path: str) -> None:
        self.path = os.path.expanduser(path)

    def load(self) -> State:
        if not os.path.exists(self.path):
            log.debug(f"No state file at {self.path}. Start with empty state.")
            return State()
        with open(self.path, "r", encoding="utf-8") as f:
            content = json.load(f)
        state = from_json(content, State)
        if state.version != StateVersion:
            raise ValueError(f"State file {self.path} has unsupported version {state.version}")
        return state

    def save(self, state: State) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=".state-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(to_json(state), f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
        log.debug(f"State with {len(state)} resources written to {self.path}")
