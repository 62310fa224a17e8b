from datetime import timedelta
from typing import Iterator, List

from google.auth.credentials import AnonymousCredentials
from googleapiclient import discovery
from pytest import fixture

from fixreconcile import gcp_client
from fixreconcile.config import GcpReconcileConfig
from fixreconcile.context import ReconcileContext
from fixreconcile.gcp_client import GcpClient
from compute_api import FakeComputeApi


class RecordingSleep:
    """
    Sleep function that records every requested sleep without sleeping.
    """

    def __init__(self) -> None:
        self.sleeps: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.sleeps.append(seconds)


@fixture
def compute_api() -> Iterator[FakeComputeApi]:
    api = FakeComputeApi()
    # change discovery function factory for tests
    gcp_client._discovery_function = lambda *args, **kwargs: api
    yield api
    # reset the original discovery function
    gcp_client._discovery_function = discovery.build


@fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@fixture
def config() -> GcpReconcileConfig:
    return GcpReconcileConfig(
        project="test-project",
        region="us-east1",
        zone="us-east1-b",
        poll_interval=timedelta(milliseconds=10),
        max_poll_interval=timedelta(milliseconds=40),
    )


@fixture
def context(compute_api: FakeComputeApi, config: GcpReconcileConfig, sleep: RecordingSleep) -> ReconcileContext:
    client = GcpClient(AnonymousCredentials(), project_id=config.project, region=config.region, zone=config.zone)
    return ReconcileContext(config, client, sleep)
