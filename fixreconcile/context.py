from __future__ import annotations

import time
from datetime import timedelta
from typing import Callable, Dict, Optional, Type, Any

from attrs import frozen, field

from fixreconcile.config import GcpReconcileConfig
from fixreconcile.gcp_client import GcpClient, load_credentials
from fixreconcile.operation import OperationPoller


@frozen
class ReconcileContext:
    """
    Ambient state of one invocation: configured defaults and the api client.
    Created once at startup and passed to every controller. It is never changed afterwards.
    """

    config: GcpReconcileConfig
    client: GcpClient
    sleep: Callable[[float], None] = field(default=time.sleep, eq=False)

    @staticmethod
    def from_config(config: GcpReconcileConfig) -> ReconcileContext:
        credentials = load_credentials(config.service_account)
        client = GcpClient(credentials, project_id=config.project, region=config.region, zone=config.zone)
        return ReconcileContext(config, client)

    @property
    def defaults(self) -> Dict[str, Optional[str]]:
        return {"project": self.config.project, "region": self.config.region, "zone": self.config.zone}

    def poller(self) -> OperationPoller:
        return OperationPoller(self.client, self.config.max_poll_interval, self.sleep)

    def timeout_for(self, clazz: Type[Any], action: str) -> timedelta:
        """
        Timeout of the given action (create or delete) for the resource class.
        A configured timeout wins over the default timeout of the resource kind.
        """
        configured: Optional[timedelta] = getattr(self.config, f"{action}_timeout", None)
        if configured is not None:
            return configured
        return clazz.default_timeouts[action]  # type: ignore
