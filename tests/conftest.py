from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from mediaflow.core.errors import RemoteCallError
from mediaflow.schemas.batch_models import AnalysisAttribute, AnalysisResult, BoundingBox, ObjectRef
from mediaflow.schemas.job_models import JobHandle, JobStatus


def make_image_bytes(size=(800, 600), color=(200, 200, 200), fmt="JPEG") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def face_result(gender="Male", confidence=0.98, with_region=True) -> AnalysisResult:
    return AnalysisResult(
        attributes={
            "gender": AnalysisAttribute(value=gender, confidence=confidence),
            "age_range": AnalysisAttribute(value="25-35", confidence=0.99),
            "beard": AnalysisAttribute(value="False", confidence=0.9),
            "smile": AnalysisAttribute(value="True", confidence=0.8),
        },
        region=BoundingBox(width=0.25, height=0.5, left=0.25, top=0.25) if with_region else None,
    )


class FakeObjectStore:
    """In-memory object store keyed by object key."""

    def __init__(self, objects=None, container="media", fail_download=(), fail_list=False):
        self.container = container
        self.objects = dict(objects or {})
        self.fail_download = set(fail_download)
        self.fail_list = fail_list
        self.uploads = []
        self.downloads = []

    def list(self, prefix):
        if self.fail_list:
            raise RemoteCallError("listing denied", operation="list")
        return [
            ObjectRef(container=self.container, key=key)
            for key in sorted(self.objects)
            if key.startswith(prefix)
        ]

    def download(self, ref, destination):
        if ref.key in self.fail_download:
            raise RemoteCallError(f"no such key {ref.key}", operation="download")
        self.downloads.append(ref.key)
        Path(destination).write_bytes(self.objects[ref.key])
        return Path(destination)

    def upload(self, local_path, ref):
        self.uploads.append((Path(local_path).name, ref))


class FakeAnalysisService:
    """Returns canned results per key; an Exception value is raised instead."""

    def __init__(self, results=None):
        self.results = dict(results or {})
        self.calls = []

    def analyze(self, ref):
        self.calls.append(ref.key)
        outcome = self.results.get(ref.key, [])
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)


class FakeJobService:
    """Hands out queued statuses in order; the last one repeats."""

    def __init__(self, statuses=(), job_id="job-1"):
        self.statuses = list(statuses)
        self.job_id = job_id
        self.started = []
        self.status_calls = 0

    def start_job(self, kind, params):
        self.started.append((kind, dict(params)))
        return JobHandle(job_id=self.job_id, kind=kind)

    def get_job_status(self, handle) -> JobStatus:
        index = min(self.status_calls, len(self.statuses) - 1)
        self.status_calls += 1
        return self.statuses[index]


class RecordingRenderer:
    def __init__(self):
        self.calls = []

    def render_table(self, headers, rows):
        self.calls.append((list(headers), [list(r) for r in rows]))
        return b"table"


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path
