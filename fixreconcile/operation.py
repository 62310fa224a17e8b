"""
Long running operations of the compute API.

Every mutating call (insert, delete) returns an operation handle.
The handle is polled until the operation is done or the deadline is reached:

    submitted -> polling -> succeeded | failed | timed_out
"""
from __future__ import annotations

import logging
import time
from datetime import timedelta
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Callable

from attrs import define, field
from tenacity import Retrying, RetryError, RetryCallState, retry_if_result, stop_after_delay, wait_exponential

from fixreconcile.durations import duration_str
from fixreconcile.errors import OperationError, OperationErrorDetail, OperationTimeoutError
from fixreconcile.gcp_client import GcpApiSpec, GcpClient
from fixreconcile.json_bender import Bender, S, ForallBend, ShortName, bend
from fixreconcile.types import Json

log = logging.getLogger("fix.reconcile.operation")


class OperationState(Enum):
    submitted = "submitted"
    polling = "polling"
    succeeded = "succeeded"
    failed = "failed"
    timed_out = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationState.succeeded, OperationState.failed, OperationState.timed_out)


OperationErrorMapping: Dict[str, Bender] = {
    "code": S("code"),
    "message": S("message"),
    "location": S("location"),
}


@define(eq=False, slots=False)
class GcpOperation:
    kind: ClassVar[str] = "gcp_operation"
    mapping: ClassVar[Dict[str, Bender]] = {
        "name": S("name"),
        "status": S("status"),
        "operation_type": S("operationType"),
        "target_link": S("targetLink"),
        "region": S("region") >> ShortName,
        "zone": S("zone") >> ShortName,
        "progress": S("progress"),
        "error_details": S("error", "errors", default=[]) >> ForallBend(OperationErrorMapping),
        "http_error_status_code": S("httpErrorStatusCode"),
        "http_error_message": S("httpErrorMessage"),
        "self_link": S("selfLink"),
    }
    name: Optional[str] = None
    status: Optional[str] = None
    operation_type: Optional[str] = None
    target_link: Optional[str] = None
    region: Optional[str] = None
    zone: Optional[str] = None
    progress: Optional[int] = None
    error_details: List[Json] = field(factory=list)
    http_error_status_code: Optional[int] = None
    http_error_message: Optional[str] = None
    self_link: Optional[str] = None
    raw: Optional[Json] = None
    state: OperationState = OperationState.submitted

    @classmethod
    def from_api(cls, js: Json) -> GcpOperation:
        return cls(**bend(cls.mapping, js), raw=js)

    @property
    def done(self) -> bool:
        return self.status == "DONE"

    @property
    def errors(self) -> List[OperationErrorDetail]:
        return [OperationErrorDetail(e.get("code"), e.get("message"), e.get("location")) for e in self.error_details]

    @property
    def scope(self) -> str:
        if self.zone:
            return "zonal"
        elif self.region:
            return "regional"
        else:
            return "global"

    def __str__(self) -> str:
        return f"Operation({self.operation_type} {self.name} status={self.status} state={self.state.value})"


# The operation collections to poll: scope -> api spec
OperationApiSpecs: Dict[str, GcpApiSpec] = {
    "zonal": GcpApiSpec(
        service="compute",
        version="v1",
        accessors=["zoneOperations"],
        action="get",
        request_parameter={"project": "{project}", "zone": "{zone}"},
        get_identifier="operation",
    ),
    "regional": GcpApiSpec(
        service="compute",
        version="v1",
        accessors=["regionOperations"],
        action="get",
        request_parameter={"project": "{project}", "region": "{region}"},
        get_identifier="operation",
    ),
    "global": GcpApiSpec(
        service="compute",
        version="v1",
        accessors=["globalOperations"],
        action="get",
        request_parameter={"project": "{project}"},
        get_identifier="operation",
    ),
}


class OperationPoller:
    """
    Wait for an operation to reach a terminal state.

    The poll interval starts with the minimum poll interval and backs off exponentially
    up to max_poll_interval. No wait ever exceeds the remaining time before the deadline.
    Transport errors while polling are not retried: they propagate to the caller.
    """

    def __init__(
        self,
        client: GcpClient,
        max_poll_interval: timedelta = timedelta(seconds=10),
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.max_poll_interval = max_poll_interval
        self.sleep = sleep

    def refresh(self, operation: GcpOperation, project: Optional[str]) -> GcpOperation:
        spec = OperationApiSpecs[operation.scope]
        params = {"name": operation.name, "project": project, "region": operation.region, "zone": operation.zone}
        return GcpOperation.from_api(self.client.get(spec, **params))

    def wait(
        self,
        operation: GcpOperation,
        *,
        project: Optional[str] = None,
        timeout: timedelta,
        min_poll_interval: timedelta = timedelta(seconds=1),
        activity: str = "operation",
    ) -> GcpOperation:
        """
        Block until the operation is done.

        :param operation: the handle returned by the mutating call.
        :param project: the project the operation lives in.
        :param timeout: the deadline, measured from the start of this call.
        :param min_poll_interval: lower bound of the time between two polls.
        :param activity: human readable description used in log messages, e.g. "create gcp_address a1".
        :return: the final operation in state succeeded.
        :raises OperationError: the operation finished with an error.
        :raises OperationTimeoutError: the operation did not finish in time. The remote state is unknown.
        :raises TransportError: polling the operation failed.
        """
        if operation.done:
            return self._finish(operation, activity)

        deadline = timeout.total_seconds()
        min_interval = min_poll_interval.total_seconds()
        max_interval = max(self.max_poll_interval.total_seconds(), min_interval)
        backoff = wait_exponential(multiplier=min_interval, min=min_interval, max=max_interval)
        last: List[GcpOperation] = [operation]

        def wait_interval(retry_state: RetryCallState) -> float:
            remaining = deadline - (retry_state.seconds_since_start or 0)
            return max(0.0, min(backoff(retry_state), remaining))

        def before_sleep(retry_state: RetryCallState) -> None:
            log.debug(
                f"{activity}: {last[0]} not done after {retry_state.attempt_number} polls. "
                f"Next poll in {retry_state.next_action.sleep if retry_state.next_action else 0:.1f}s"
            )

        def poll(retry_state: RetryCallState) -> GcpOperation:
            # the first attempt observes the submitted handle, every following attempt asks the server
            current = last[0] if retry_state.attempt_number == 1 else self.refresh(last[0], project)
            current.state = OperationState.polling
            last[0] = current
            return current

        log.info(f"{activity}: waiting for {operation} (timeout {duration_str(timeout)})")
        retrying = Retrying(
            retry=retry_if_result(lambda op: not op.done),
            stop=stop_after_delay(deadline),
            wait=wait_interval,
            sleep=self.sleep,
            before_sleep=before_sleep,
        )
        try:
            for attempt in retrying:
                with attempt:
                    result = poll(attempt.retry_state)
                if not attempt.retry_state.outcome.failed:  # type: ignore
                    attempt.retry_state.set_result(result)
        except RetryError:
            current = last[0]
            current.state = OperationState.timed_out
            log.warning(f"{activity}: {current} timed out after {duration_str(timeout)}")
            raise OperationTimeoutError(current.name, deadline, current.status) from None
        return self._finish(last[0], activity)

    @staticmethod
    def _finish(operation: GcpOperation, activity: str) -> GcpOperation:
        if operation.errors:
            operation.state = OperationState.failed
            log.warning(f"{activity}: {operation} failed: {', '.join(str(e) for e in operation.errors)}")
            raise OperationError(operation.name, operation.errors)
        operation.state = OperationState.succeeded
        log.info(f"{activity}: {operation} succeeded")
        return operation
