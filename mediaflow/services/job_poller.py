"""
Job Poller

Starts asynchronous operations on a remote service and checks their status
until a terminal state is reached or the caller stops polling.

A pending status is a normal outcome. Running out of attempts returns
the last observed status so the caller can check back later; cancelling stops
local polling only and leaves the remote job running.
"""

import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from mediaflow.core.errors import RemoteCallError, ValidationError
from mediaflow.core.logger import logger
from mediaflow.schemas.job_models import (
    REQUIRED_PARAMETERS,
    JobHandle,
    JobKind,
    JobPhase,
    JobStatus,
)


# ============================================================================
# INTERFACES (PROTOCOLS)
# ============================================================================

class RemoteJobService(Protocol):
    """Interface for a service that runs asynchronous jobs."""

    def start_job(self, kind: JobKind, params: Mapping[str, str]) -> JobHandle:
        """Submit a job and return its handle."""
        ...

    def get_job_status(self, handle: JobHandle) -> JobStatus:
        """Return the current status of a job."""
        ...


# ============================================================================
# VALIDATION
# ============================================================================

def validate_parameters(kind: JobKind, params: Mapping[str, Any]) -> Dict[str, str]:
    """
    Check that every required parameter for `kind` is a non-empty string and
    that no supplied parameter is empty.
    """
    missing = [
        name for name in REQUIRED_PARAMETERS[kind]
        if not isinstance(params.get(name), str) or not params[name].strip()
    ]
    empty = [
        name for name, value in params.items()
        if name not in missing and (not isinstance(value, str) or not value.strip())
    ]
    invalid = missing + empty
    if invalid:
        raise ValidationError(
            f"Fields should not be left empty: {', '.join(invalid)}",
            fields=invalid
        )
    return dict(params)


# ============================================================================
# MAIN SERVICE
# ============================================================================

class JobPoller:
    """Drives one RemoteJobService through start, poll and wait."""

    def __init__(self, job_service: RemoteJobService):
        self.job_service = job_service

    def start(self, kind: JobKind, parameters: Mapping[str, Any]) -> JobHandle:
        """
        Validate `parameters` and submit the job.

        Raises:
            ValidationError: a required field is missing or empty; the remote
                service is not contacted.
            RemoteCallError: the service rejected the request or returned no
                job identifier.
        """
        try:
            kind = JobKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown job kind '{kind}'", fields=["kind"]) from None
        params = validate_parameters(kind, parameters)

        try:
            handle = self.job_service.start_job(kind, params)
        except (RemoteCallError, ValidationError):
            raise
        except Exception as e:
            logger.error(f"Failed to start {kind.value}: {e}")
            raise RemoteCallError(f"Failed to start {kind.value}: {e}", operation="start_job") from e

        if handle is None or not handle.job_id:
            raise RemoteCallError(f"{kind.value} started without a job identifier", operation="start_job")

        logger.info(f"Started {kind.value} job_id={handle.job_id}")
        return handle

    def poll(self, handle: JobHandle) -> JobStatus:
        """Issue exactly one status check."""
        status = self.job_service.get_job_status(handle)
        logger.debug(f"Polled {handle.kind.value} job_id={handle.job_id} state={status.state.value}")
        return status

    def poll_until_terminal(
        self,
        handle: JobHandle,
        interval: float,
        max_attempts: int,
        cancel_event: Optional[threading.Event] = None
    ) -> JobStatus:
        """
        Poll once, then up to `max_attempts` more times `interval` seconds
        apart, stopping at the first terminal status.

        Returns the last observed status, which is non-terminal when the
        attempts run out or `cancel_event` is set.
        """
        if interval < 0:
            raise ValidationError("interval must not be negative", fields=["interval"])
        if max_attempts < 0:
            raise ValidationError("max_attempts must not be negative", fields=["max_attempts"])

        cancel_event = cancel_event or threading.Event()
        status = self.poll(handle)

        for attempt in range(max_attempts):
            if status.is_terminal or cancel_event.is_set():
                break
            # wait() returns True as soon as the event is set
            if cancel_event.wait(interval):
                logger.info(f"Polling cancelled for job_id={handle.job_id}; the remote job keeps running")
                break
            status = self.poll(handle)
            logger.info(
                f"Poll {attempt + 1}/{max_attempts} for job_id={handle.job_id}: {status.state.value}"
            )

        return status

    def dispatch(
        self,
        handle: JobHandle,
        status: JobStatus,
        on_success: Optional[Callable[[JobHandle, JobStatus], Any]] = None
    ) -> List[str]:
        """
        React to `status`: pending does nothing beyond the message, success
        runs `on_success` (result materialization), failure reports the reason.
        Returns the operator-facing message lines.
        """
        messages = render_status(handle, status)
        if status.phase is JobPhase.SUCCEEDED and on_success is not None:
            on_success(handle, status)
        elif status.phase is JobPhase.FAILED:
            logger.warning(f"{handle.kind.value} job_id={handle.job_id} failed: {status.reason_text}")
        return messages


def render_status(handle: JobHandle, status: JobStatus) -> List[str]:
    """Operator-facing lines for one status snapshot."""
    label = f"The {handle.kind.value} '{handle.job_id}'"

    if status.phase is JobPhase.PENDING:
        return [
            f"{label} is currently '{status.state.value}'.",
            "No output is available until it completes. Please try again later.",
        ]

    if status.phase is JobPhase.SUCCEEDED:
        lines = [f"{label} is '{status.state.value}'; processing the output."]
        if status.result_uri:
            lines.append(f"Output location: {status.result_uri}")
        return lines

    return [
        f"{label} has failed.",
        f"Reason: {status.reason_text}",
    ]
