from datetime import timedelta
from typing import Any

import pytest

from fixreconcile.config import GcpReconcileConfig, ReconcileConfig, load_config, override_config
from fixreconcile.context import ReconcileContext
from fixreconcile.gcp_client import GcpClient
from fixreconcile.resources.compute import GcpAddress, GcpRoute

config_yaml = """
gcp:
  project: my-project
  region: europe-west3
  poll_interval: 2s
  max_poll_interval: 30
  create_timeout: 10min
logging:
  verbose: true
"""


def test_default_config() -> None:
    config = load_config(None)
    assert config == ReconcileConfig()
    assert config.gcp.poll_interval == timedelta(seconds=1)
    assert config.gcp.max_poll_interval == timedelta(seconds=10)
    assert config.gcp.create_timeout is None
    assert config.logging.verbose is False


def test_load_config(tmp_path: Any) -> None:
    file = tmp_path / "config.yaml"
    file.write_text(config_yaml)
    config = load_config(str(file))
    assert config.gcp.project == "my-project"
    assert config.gcp.region == "europe-west3"
    assert config.gcp.zone is None
    assert config.gcp.poll_interval == timedelta(seconds=2)
    assert config.gcp.max_poll_interval == timedelta(seconds=30)
    assert config.gcp.create_timeout == timedelta(minutes=10)
    assert config.logging.verbose is True


def test_invalid_config(tmp_path: Any) -> None:
    file = tmp_path / "config.yaml"
    file.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_config(str(file))


def test_override_config() -> None:
    config = ReconcileConfig(GcpReconcileConfig(project="a", region="r"))
    overridden = override_config(config, {"project": "b", "region": None, "zone": "z"})
    assert overridden.gcp.project == "b"
    assert overridden.gcp.region == "r"
    assert overridden.gcp.zone == "z"
    assert override_config(config, {"project": None}) is config


def test_timeouts() -> None:
    client = GcpClient(None)
    context = ReconcileContext(GcpReconcileConfig(delete_timeout=timedelta(seconds=30)), client)
    assert context.timeout_for(GcpAddress, "create") == timedelta(minutes=4)
    assert context.timeout_for(GcpAddress, "delete") == timedelta(seconds=30)
    assert context.timeout_for(GcpRoute, "create") == timedelta(minutes=2)
    assert context.timeout_for(GcpRoute, "delete") == timedelta(seconds=30)


def test_context_defaults() -> None:
    config = GcpReconcileConfig(project="p", region="r", zone="z")
    assert ReconcileContext(config, GcpClient(None)).defaults == {"project": "p", "region": "r", "zone": "z"}
