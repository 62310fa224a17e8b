import time
from datetime import timedelta

import pytest

from fixreconcile.context import ReconcileContext
from fixreconcile.errors import OperationError, OperationTimeoutError, TransportError
from fixreconcile.operation import GcpOperation, OperationPoller, OperationState
from fixreconcile.resources.compute import GcpAddress
from compute_api import FakeComputeApi, http_error
from conftest import RecordingSleep

min_interval = timedelta(milliseconds=10)


def submit(context: ReconcileContext, name: str = "a1") -> GcpOperation:
    js = context.client.insert(GcpAddress.api_spec, {"name": name}, region="us-east1")
    return GcpOperation.from_api(js)


def test_operation_from_api() -> None:
    js = {
        "name": "operation-1",
        "status": "DONE",
        "operationType": "insert",
        "region": "https://www.googleapis.com/compute/v1/projects/p/regions/us-east1",
        "error": {"errors": [{"code": "QUOTA_EXCEEDED", "message": "Quota exceeded"}]},
    }
    op = GcpOperation.from_api(js)
    assert op.done
    assert op.scope == "regional"
    assert op.region == "us-east1"
    assert [str(e) for e in op.errors] == ["QUOTA_EXCEEDED: Quota exceeded"]
    assert op.raw == js
    assert GcpOperation.from_api({"name": "o", "zone": "zones/us-east1-b"}).scope == "zonal"
    assert GcpOperation.from_api({"name": "o"}).scope == "global"
    assert not OperationState.polling.is_terminal
    assert OperationState.timed_out.is_terminal


def test_done_operation_is_not_polled(
    context: ReconcileContext, compute_api: FakeComputeApi, sleep: RecordingSleep
) -> None:
    compute_api.polls_until_done = 0
    op = submit(context)
    assert op.done
    result = context.poller().wait(op, project="test-project", timeout=timedelta(minutes=1))
    assert result.state == OperationState.succeeded
    assert compute_api.polls == 0
    assert sleep.sleeps == []


def test_wait_until_done(context: ReconcileContext, compute_api: FakeComputeApi, sleep: RecordingSleep) -> None:
    compute_api.polls_until_done = 5
    op = submit(context)
    result = context.poller().wait(
        op, project="test-project", timeout=timedelta(minutes=1), min_poll_interval=min_interval
    )
    assert result.done
    assert result.state == OperationState.succeeded
    assert compute_api.polls == 5
    # one sleep between two polls, bounded by the configured intervals
    assert len(sleep.sleeps) == 5
    assert all(0.01 <= s <= 0.04 for s in sleep.sleeps)
    assert sleep.sleeps == sorted(sleep.sleeps)
    assert sleep.sleeps[-1] == 0.04


def test_failed_operation(context: ReconcileContext, compute_api: FakeComputeApi) -> None:
    compute_api.operation_errors = [{"code": "IP_IN_USE_BY_ANOTHER_RESOURCE", "message": "in use"}]
    op = submit(context)
    with pytest.raises(OperationError) as e:
        context.poller().wait(op, project="test-project", timeout=timedelta(minutes=1), min_poll_interval=min_interval)
    assert e.value.operation_name == op.name
    assert [d.code for d in e.value.details] == ["IP_IN_USE_BY_ANOTHER_RESOURCE"]
    assert "in use" in str(e.value)


def test_operation_timeout(context: ReconcileContext, compute_api: FakeComputeApi) -> None:
    compute_api.never_done = True
    op = submit(context)
    poller = OperationPoller(context.client, timedelta(milliseconds=20), time.sleep)
    with pytest.raises(OperationTimeoutError) as e:
        poller.wait(op, project="test-project", timeout=timedelta(milliseconds=100), min_poll_interval=min_interval)
    assert e.value.operation_name == op.name
    assert e.value.last_status == "RUNNING"
    assert e.value.retryable
    assert compute_api.polls > 0


def test_transport_error_while_polling(context: ReconcileContext, compute_api: FakeComputeApi) -> None:
    compute_api.polls_until_done = 3
    op = submit(context)
    compute_api.errors["get"] = http_error(503, "Service unavailable")
    with pytest.raises(TransportError) as e:
        context.poller().wait(op, project="test-project", timeout=timedelta(minutes=1), min_poll_interval=min_interval)
    assert e.value.status == 503
    # not retried
    assert compute_api.polls == 1
