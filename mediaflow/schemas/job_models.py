# schemas/job_models.py
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from mediaflow.core.errors import UnknownJobStateError
from mediaflow.schemas.batch_models import AnalysisResult

NO_REASON_SENTINEL = "No reason is available"


class JobKind(str, Enum):
    """Remote asynchronous operations that can be started and polled"""
    FACE_DETECTION = "face-detection-task"
    TEXT_DETECTION = "text-detection-task"
    TRANSCRIPTION = "transcription-task"
    TRANSLATION_BATCH = "translation-batch-job"
    SPEECH_SYNTHESIS = "speech-synthesis-task"


class JobPhase(str, Enum):
    """Canonical lifecycle phases every remote vocabulary maps onto"""
    PENDING = "pending"
    SUCCEEDED = "terminal-success"
    FAILED = "terminal-failure"


class JobState(str, Enum):
    QUEUED = "Queued"
    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def phase(self) -> JobPhase:
        return _STATE_PHASES[self]

    @property
    def is_terminal(self) -> bool:
        return self.phase is not JobPhase.PENDING


_STATE_PHASES: Dict[JobState, JobPhase] = {
    JobState.QUEUED: JobPhase.PENDING,
    JobState.IN_PROGRESS: JobPhase.PENDING,
    JobState.SUCCEEDED: JobPhase.SUCCEEDED,
    JobState.COMPLETED: JobPhase.SUCCEEDED,
    JobState.FAILED: JobPhase.FAILED,
}

_REKOGNITION_STATES: Dict[str, JobState] = {
    "IN_PROGRESS": JobState.IN_PROGRESS,
    "SUCCEEDED": JobState.SUCCEEDED,
    "FAILED": JobState.FAILED,
}

"""
Remote status vocabulary per job kind. Anything not listed here is an
UnknownJobStateError rather than a silent fall-through.
"""
REMOTE_STATE_MAP: Dict[JobKind, Dict[str, JobState]] = {
    JobKind.FACE_DETECTION: _REKOGNITION_STATES,
    JobKind.TEXT_DETECTION: _REKOGNITION_STATES,
    JobKind.TRANSCRIPTION: {
        "QUEUED": JobState.QUEUED,
        "IN_PROGRESS": JobState.IN_PROGRESS,
        "COMPLETED": JobState.COMPLETED,
        "FAILED": JobState.FAILED,
    },
    JobKind.TRANSLATION_BATCH: {
        "SUBMITTED": JobState.QUEUED,
        "IN_PROGRESS": JobState.IN_PROGRESS,
        "STOP_REQUESTED": JobState.IN_PROGRESS,
        "COMPLETED": JobState.COMPLETED,
        "COMPLETED_WITH_ERROR": JobState.FAILED,
        "STOPPED": JobState.FAILED,
        "FAILED": JobState.FAILED,
    },
    JobKind.SPEECH_SYNTHESIS: {
        "scheduled": JobState.QUEUED,
        "inProgress": JobState.IN_PROGRESS,
        "completed": JobState.COMPLETED,
        "failed": JobState.FAILED,
    },
}

"""
Parameters that must be present and non-empty before a job is started.
"""
REQUIRED_PARAMETERS: Dict[JobKind, Tuple[str, ...]] = {
    JobKind.FACE_DETECTION: ("bucket", "key"),
    JobKind.TEXT_DETECTION: ("bucket", "key"),
    JobKind.TRANSCRIPTION: ("bucket", "key", "format", "job"),
    JobKind.TRANSLATION_BATCH: (
        "job_name",
        "document_type",
        "input_uri",
        "output_uri",
        "role_arn",
        "target_languages",
    ),
    JobKind.SPEECH_SYNTHESIS: ("text", "voice_id", "engine", "output_format", "bucket"),
}


def parse_remote_state(kind: JobKind, raw_state: Optional[str]) -> JobState:
    """Map a service status string onto JobState for `kind`."""
    try:
        return REMOTE_STATE_MAP[kind][raw_state]
    except KeyError:
        raise UnknownJobStateError(kind.value, raw_state) from None


class JobHandle(BaseModel):
    """Identifies one remote asynchronous operation; immutable once created."""
    model_config = ConfigDict(frozen=True)

    job_id: str = Field(..., min_length=1, description="Identifier assigned by the remote service")
    kind: JobKind
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class JobStatus(BaseModel):
    """
    Snapshot returned by one poll. Produced fresh on every poll and never
    mutated, only replaced.
    """
    model_config = ConfigDict(frozen=True)

    state: JobState
    raw_state: str = Field("", description="Status string exactly as reported by the service")
    reason: Optional[str] = Field(None, description="Human-readable status or failure reason")
    result_uri: Optional[str] = Field(None, description="Where the output was written, if anywhere")
    results: List[AnalysisResult] = Field(default_factory=list, description="Inline analysis results")

    @property
    def phase(self) -> JobPhase:
        return self.state.phase

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def reason_text(self) -> str:
        return self.reason or NO_REASON_SENTINEL
