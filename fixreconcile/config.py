import logging
import os
from datetime import timedelta
from typing import ClassVar, Optional, Dict, Any

import yaml
from attrs import define, field, evolve

from fixreconcile.json import from_json
from fixreconcile.logger import LoggingConfig

log = logging.getLogger("fix.reconcile.config")


@define
class GcpReconcileConfig:
    kind: ClassVar[str] = "gcp"
    project: Optional[str] = field(
        default=None, metadata={"description": "Default project of all resources that do not define one"}
    )
    region: Optional[str] = field(
        default=None, metadata={"description": "Default region of all regional resources that do not define one"}
    )
    zone: Optional[str] = field(
        default=None, metadata={"description": "Default zone, used to resolve zonal references"}
    )
    service_account: Optional[str] = field(
        default=None,
        metadata={"description": "GCP service account file. Application default credentials are used if not set."},
    )
    poll_interval: timedelta = field(
        factory=lambda: timedelta(seconds=1),
        metadata={"description": "Minimum time between two polls of a long running operation"},
    )
    max_poll_interval: timedelta = field(
        factory=lambda: timedelta(seconds=10),
        metadata={"description": "Maximum time between two polls of a long running operation"},
    )
    create_timeout: Optional[timedelta] = field(
        default=None,
        metadata={"description": "Time to wait for a create operation. Defaults to the timeout of the resource kind."},
    )
    delete_timeout: Optional[timedelta] = field(
        default=None,
        metadata={"description": "Time to wait for a delete operation. Defaults to the timeout of the resource kind."},
    )


@define
class ReconcileConfig:
    gcp: GcpReconcileConfig = field(factory=GcpReconcileConfig)
    logging: LoggingConfig = field(factory=LoggingConfig)


def load_config(path: Optional[str]) -> ReconcileConfig:
    """
    Load the configuration from a yaml file:

        gcp:
          project: my-project
          region: us-central1
          create_timeout: 4min
        logging:
          verbose: true

    A missing path yields the default configuration.
    """
    if not path:
        return ReconcileConfig()
    file = os.path.expanduser(path)
    log.debug(f"Loading config from {file}")
    with open(file, "r", encoding="utf-8") as f:
        content = yaml.safe_load(f) or {}
    if not isinstance(content, dict):
        raise ValueError(f"Config file {file} does not contain a yaml object")
    return from_json(content, ReconcileConfig)


def override_config(config: ReconcileConfig, overrides: Dict[str, Any]) -> ReconcileConfig:
    """
    Override values of the gcp section with all values that are defined, e.g. via command line.
    """
    defined = {k: v for k, v in overrides.items() if v is not None}
    return evolve(config, gcp=evolve(config.gcp, **defined)) if defined else config
