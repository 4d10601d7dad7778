import pytest

from mediaflow.core.aws_client import AwsCredentials
from mediaflow.core.errors import ScratchConflictError, UnknownJobStateError
from mediaflow.core.scratch import ScratchArea, file_destination
from mediaflow.core.session import build_session, reload_session
from mediaflow.schemas.job_models import JobHandle, JobKind, JobPhase, JobState, parse_remote_state


def _factories(built):
    def factory(name):
        def build(credentials):
            client = {"service": name, "credentials": credentials}
            built.append(client)
            return client
        return build
    return {"s3": factory("s3"), "polly": factory("polly")}


def test_build_session_constructs_every_client():
    built = []
    session = build_session(AwsCredentials("AKIA1", "secret1", region="eu-west-1"), _factories(built))

    assert session.region == "eu-west-1"
    assert session.client("s3")["credentials"].access_key_id == "AKIA1"
    assert len(built) == 2


def test_reload_session_rebuilds_all_clients_and_keeps_old_session():
    built = []
    factories = _factories(built)
    old = build_session(AwsCredentials("AKIA1", "secret1", region="eu-west-1"), factories)

    new = reload_session(old, AwsCredentials(access_key_id="AKIA2", secret_access_key="secret2"), factories)

    assert new is not old
    assert new.region == "eu-west-1"
    assert new.client("s3")["credentials"].access_key_id == "AKIA2"
    assert new.client("polly")["credentials"].access_key_id == "AKIA2"
    assert old.client("s3")["credentials"].access_key_id == "AKIA1"
    assert len(built) == 4


def test_session_reports_missing_client():
    session = build_session(AwsCredentials("AKIA1", "secret1", region="us-east-1"), _factories([]))
    with pytest.raises(KeyError):
        session.client("translate")


@pytest.mark.parametrize(
    "kind, raw, expected",
    [
        (JobKind.SPEECH_SYNTHESIS, "scheduled", JobState.QUEUED),
        (JobKind.SPEECH_SYNTHESIS, "inProgress", JobState.IN_PROGRESS),
        (JobKind.SPEECH_SYNTHESIS, "completed", JobState.COMPLETED),
        (JobKind.TRANSCRIPTION, "QUEUED", JobState.QUEUED),
        (JobKind.TRANSCRIPTION, "COMPLETED", JobState.COMPLETED),
        (JobKind.FACE_DETECTION, "SUCCEEDED", JobState.SUCCEEDED),
        (JobKind.TEXT_DETECTION, "FAILED", JobState.FAILED),
        (JobKind.TRANSLATION_BATCH, "SUBMITTED", JobState.QUEUED),
        (JobKind.TRANSLATION_BATCH, "COMPLETED_WITH_ERROR", JobState.FAILED),
    ],
)
def test_remote_state_mapping(kind, raw, expected):
    assert parse_remote_state(kind, raw) is expected


def test_unknown_remote_state_is_an_error():
    with pytest.raises(UnknownJobStateError) as exc_info:
        parse_remote_state(JobKind.SPEECH_SYNTHESIS, "IN_PROGRESS")
    assert exc_info.value.raw_state == "IN_PROGRESS"


def test_phases():
    assert JobState.QUEUED.phase is JobPhase.PENDING
    assert JobState.SUCCEEDED.phase is JobState.COMPLETED.phase is JobPhase.SUCCEEDED
    assert JobState.FAILED.is_terminal
    assert not JobState.IN_PROGRESS.is_terminal


def test_scratch_create_and_release(tmp_path):
    scratch = ScratchArea({"a": tmp_path / "a", "b": tmp_path / "nested" / "b"}).create()

    assert scratch["a"].is_dir() and scratch["b"].is_dir()
    scratch.release("a")
    assert not scratch["a"].exists()
    scratch.release_all()
    assert scratch.existing() == []


def test_scratch_conflict_rolls_back_fresh_directories(tmp_path):
    (tmp_path / "b").mkdir()
    scratch = ScratchArea({"a": tmp_path / "a", "b": tmp_path / "b"})

    with pytest.raises(ScratchConflictError) as exc_info:
        scratch.create()

    assert exc_info.value.path == tmp_path / "b"
    assert not (tmp_path / "a").exists()
    assert (tmp_path / "b").exists()


def test_file_destination_suffix(tmp_path):
    assert file_destination(tmp_path, "x/face.jpg") == tmp_path / "x" / "face.jpg"
    assert file_destination(tmp_path, "x/face.jpg", 2) == tmp_path / "x" / "face_2.jpg"
    assert (tmp_path / "x").is_dir()


def test_job_service_uses_session_clients():
    from mediaflow.integrations.job_services import AwsJobService

    class Polly:
        def get_speech_synthesis_task(self, TaskId):
            return {"SynthesisTask": {"TaskStatus": "inProgress"}}

    session = build_session(
        AwsCredentials("AKIA1", "secret1", region="us-east-1"),
        {"polly": lambda credentials: Polly()},
    )
    handle = JobHandle(job_id="t-1", kind=JobKind.SPEECH_SYNTHESIS)

    status = AwsJobService.from_session(session).get_job_status(handle)

    assert status.state is JobState.IN_PROGRESS
