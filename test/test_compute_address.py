import time
from datetime import timedelta

import pytest
from attrs import evolve

from fixreconcile.config import GcpReconcileConfig
from fixreconcile.context import ReconcileContext
from fixreconcile.errors import OperationError, OperationTimeoutError, TransportError, ValidationError
from fixreconcile.resources.base import ResourceController
from fixreconcile.resources.compute import GcpAddress
from compute_api import FakeComputeApi, http_error


@pytest.fixture
def controller(context: ReconcileContext) -> ResourceController[GcpAddress]:
    return ResourceController(GcpAddress, context)


def test_create_internal_address(controller: ResourceController[GcpAddress], compute_api: FakeComputeApi) -> None:
    compute_api.server_defaults["addresses"] = {"networkTier": "PREMIUM", "address": "35.1.2.3"}
    desired = GcpAddress.from_config({"name": "addr1", "address_type": "INTERNAL"})
    assert desired.declared == {"name", "address_type"}

    resource_id = controller.create(desired)
    assert resource_id == "test-project/us-east1/addr1"
    assert desired.id == resource_id

    # only declared values are sent
    inserts = compute_api.calls_of("addresses", "insert")
    assert len(inserts) == 1
    assert inserts[0]["body"] == {"name": "addr1", "addressType": "INTERNAL"}
    assert inserts[0]["project"] == "test-project"
    assert inserts[0]["region"] == "us-east1"

    # the desired state is hydrated with the values assigned by the server
    assert desired.address_type == "INTERNAL"
    assert desired.network_tier == "PREMIUM"
    assert desired.address == "35.1.2.3"
    assert desired.region == "us-east1"
    assert desired.project == "test-project"
    assert desired.self_link == (
        "https://www.googleapis.com/compute/v1/projects/test-project/regions/us-east1/addresses/addr1"
    )
    assert desired.creation_timestamp is not None
    assert desired.users == []
    # the declared fields do not change
    assert desired.declared == {"name", "address_type"}


def test_read(controller: ResourceController[GcpAddress], compute_api: FakeComputeApi) -> None:
    controller.create(GcpAddress.from_config({"name": "addr1", "subnetwork": "default"}))
    remote = controller.read("test-project/us-east1/addr1")
    assert remote is not None
    assert remote.id == "test-project/us-east1/addr1"
    assert remote.name == "addr1"
    # references are read as short names
    assert remote.subnetwork == "default"
    body = compute_api.calls_of("addresses", "insert")[0]["body"]
    assert body["subnetwork"] == "projects/test-project/regions/us-east1/subnetworks/default"
    # address type is not reported by the server: external is the default
    assert remote.address_type == "EXTERNAL"
    # network tier is not set: no default is assumed
    assert remote.network_tier is None


def test_read_absent_resource(controller: ResourceController[GcpAddress]) -> None:
    assert controller.read("test-project/us-east1/does-not-exist") is None


def test_declared_region_and_project(controller: ResourceController[GcpAddress], compute_api: FakeComputeApi) -> None:
    desired = GcpAddress.from_config(
        {"name": "addr1", "project": "other", "region": "projects/other/regions/europe-west3"}
    )
    assert controller.create(desired) == "other/europe-west3/addr1"
    insert = compute_api.calls_of("addresses", "insert")[0]
    assert insert["project"] == "other"
    assert insert["region"] == "europe-west3"
    assert insert["body"] == {"name": "addr1", "region": "projects/other/regions/europe-west3"}
    assert desired.region == "europe-west3"
    assert desired.changed_fields(desired) == ()


def test_failed_create_removes_identity(
    controller: ResourceController[GcpAddress], compute_api: FakeComputeApi
) -> None:
    compute_api.operation_errors = [{"code": "IP_IN_USE_BY_ANOTHER_RESOURCE", "message": "in use"}]
    desired = GcpAddress.from_config({"name": "addr1"})
    with pytest.raises(OperationError):
        controller.create(desired)
    assert desired.id is None
    assert compute_api.objects == {}


def test_rejected_insert_assigns_no_identity(
    controller: ResourceController[GcpAddress], compute_api: FakeComputeApi
) -> None:
    compute_api.errors["insert"] = http_error(403, "Permission denied")
    desired = GcpAddress.from_config({"name": "addr1"})
    with pytest.raises(TransportError) as e:
        controller.create(desired)
    assert e.value.status == 403
    assert "Permission denied" in str(e.value)
    assert desired.id is None
    assert compute_api.polls == 0


def test_create_timeout_removes_identity(
    context: ReconcileContext, compute_api: FakeComputeApi, config: GcpReconcileConfig
) -> None:
    compute_api.never_done = True
    timeout_config = evolve(config, create_timeout=timedelta(milliseconds=100))
    controller = ResourceController(GcpAddress, ReconcileContext(timeout_config, context.client, time.sleep))
    desired = GcpAddress.from_config({"name": "addr1"})
    with pytest.raises(OperationTimeoutError):
        controller.create(desired)
    assert desired.id is None


def test_delete(controller: ResourceController[GcpAddress], compute_api: FakeComputeApi) -> None:
    resource_id = controller.create(GcpAddress.from_config({"name": "addr1"}))
    assert len(compute_api.objects) == 1
    controller.delete(resource_id)
    assert compute_api.objects == {}
    assert controller.read(resource_id) is None
    # deleting again is not an error
    polls = compute_api.polls
    controller.delete(resource_id)
    assert compute_api.polls == polls


def test_delete_failure(controller: ResourceController[GcpAddress], compute_api: FakeComputeApi) -> None:
    resource_id = controller.create(GcpAddress.from_config({"name": "addr1"}))
    compute_api.operation_errors = [{"code": "RESOURCE_IN_USE_BY_ANOTHER_RESOURCE", "message": "in use"}]
    with pytest.raises(OperationError):
        controller.delete(resource_id)
    compute_api.errors["delete"] = http_error(503, "Service unavailable")
    with pytest.raises(TransportError):
        controller.delete(resource_id)
    # the address still exists: the delete can be retried
    assert controller.read(resource_id) is not None
    controller.delete(resource_id)
    assert controller.read(resource_id) is None


def test_import(controller: ResourceController[GcpAddress]) -> None:
    seed = controller.import_resource("projects/p1/regions/r1/addresses/a1")
    assert (seed.id, seed.project, seed.region, seed.name) == ("p1/r1/a1", "p1", "r1", "a1")
    seed = controller.import_resource("a1")
    assert seed.id == "test-project/us-east1/a1"
    assert seed.address_type is None


def test_from_api_defaults() -> None:
    address = GcpAddress.from_api({"name": "a1", "selfLink": "projects/p1/regions/r1/addresses/a1", "addressType": ""})
    assert address.address_type == "EXTERNAL"
    assert address.project == "p1"
    assert address.users == []


@pytest.mark.parametrize(
    "values, field_name",
    [
        ({"name": "Invalid_Name"}, "name"),
        ({"name": "a1", "address_type": "PRIVATE"}, "address_type"),
        ({"name": "a1", "network_tier": "GOLD"}, "network_tier"),
        ({"name": "a1", "users": ["x"]}, "users"),
        ({"name": "a1", "self_link": "x"}, "self_link"),
        ({"name": "a1", "purpose": "VPC_PEERING"}, "purpose"),
    ],
)
def test_validation(values: dict, field_name: str) -> None:
    with pytest.raises(ValidationError) as e:
        GcpAddress.from_config(values)
    assert e.value.field_name == field_name


def test_invalid_reference_is_rejected_before_submit(
    controller: ResourceController[GcpAddress], compute_api: FakeComputeApi
) -> None:
    with pytest.raises(ValidationError) as e:
        controller.create(GcpAddress.from_config({"name": "a1", "subnetwork": "networks/a/b"}))
    assert e.value.field_name == "subnetwork"
    assert compute_api.calls == []


def test_changed_fields() -> None:
    declared = GcpAddress.from_config({"name": "a1", "address_type": "INTERNAL", "subnetwork": "default"})
    remote = GcpAddress(
        name="a1",
        address_type="INTERNAL",
        subnetwork="default",
        network_tier="PREMIUM",
        address="10.0.0.2",
    )
    assert declared.changed_fields(remote) == ()
    remote.address_type = "EXTERNAL"
    assert declared.changed_fields(remote) == ("address_type",)
