"""
Job Results

Turns the output of a succeeded job into local files. Used as the
`on_success` hook of JobPoller.dispatch, so nothing here runs for pending or
failed jobs.

- face / text video detection: text + table report of every detection
- transcription: transcript JSON downloaded and flattened to plain text
- speech synthesis: output URI appended to the audio URI log
- translation: output stays in S3; only the location is reported
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from mediaflow.core.config import settings
from mediaflow.core.errors import ParseError
from mediaflow.core.logger import logger
from mediaflow.core.scratch import ScratchArea, file_destination
from mediaflow.schemas.batch_models import BatchRecord, ObjectRef
from mediaflow.schemas.job_models import JobHandle, JobKind, JobStatus
from mediaflow.services.batch_pipeline import RemoteObjectStore
from mediaflow.services.report_aggregator import (
    VIDEO_FACE_LAYOUT,
    VIDEO_TEXT_LAYOUT,
    ReportAggregator,
    ReportLayout,
    ReportRenderer,
)

TRANSCRIPTS = "transcripts"


@dataclass
class MaterializedOutput:
    paths: List[Path] = field(default_factory=list)
    preview: str = ""


def parse_transcript(path: Path) -> str:
    """
    Extract the transcript text from a Transcribe result file
    (`results.transcripts[*].transcript`).

    Raises:
        ParseError: the file is not JSON or lacks the transcript entries.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise ParseError(f"{path} is not valid JSON: {e}", source=path) from e

    try:
        transcripts = document["results"]["transcripts"]
        texts = [entry["transcript"] for entry in transcripts]
    except (KeyError, TypeError) as e:
        raise ParseError(f"{path} has no results.transcripts entries", source=path) from e

    if not all(isinstance(text, str) for text in texts):
        raise ParseError(f"{path} contains a non-text transcript", source=path)
    return "\n".join(texts)


class JobResultMaterializer:

    def __init__(
        self,
        output_dir: Optional[Path] = None,
        object_store: Optional[RemoteObjectStore] = None,
        renderer: Optional[ReportRenderer] = None
    ):
        self.output_dir = Path(output_dir) if output_dir else Path(".")
        self._object_store = object_store
        self.renderer = renderer
        self.last_output: Optional[MaterializedOutput] = None

    def object_store_for(self, ref: ObjectRef) -> RemoteObjectStore:
        if self._object_store is None:
            from mediaflow.integrations.s3_client import S3ObjectStore
            self._object_store = S3ObjectStore(ref.container)
        return self._object_store

    def __call__(self, handle: JobHandle, status: JobStatus) -> MaterializedOutput:
        if handle.kind is JobKind.FACE_DETECTION:
            output = self._detection_report(
                handle, status, VIDEO_FACE_LAYOUT,
                settings.VIDEO_FACE_REPORT_TEXT, settings.VIDEO_FACE_REPORT_TABLE
            )
        elif handle.kind is JobKind.TEXT_DETECTION:
            output = self._detection_report(
                handle, status, VIDEO_TEXT_LAYOUT,
                settings.VIDEO_TEXT_REPORT_TEXT, settings.VIDEO_TEXT_REPORT_TABLE
            )
        elif handle.kind is JobKind.TRANSCRIPTION:
            output = self._transcript(handle, status)
        elif handle.kind is JobKind.SPEECH_SYNTHESIS:
            output = self._audio_uri(status)
        else:
            logger.info(f"Translation output for job_id={handle.job_id} is at {status.result_uri}")
            output = MaterializedOutput()

        self.last_output = output
        return output

    def _detection_report(
        self,
        handle: JobHandle,
        status: JobStatus,
        layout: ReportLayout,
        text_name: str,
        table_name: str
    ) -> MaterializedOutput:
        source = ObjectRef(container="rekognition", key=handle.job_id)
        records = [BatchRecord(object_ref=source, result=result) for result in status.results]
        if not records:
            records = [BatchRecord.absent(source)]

        aggregator = ReportAggregator(layout=layout, renderer=self.renderer)
        text_report, table_report = aggregator.aggregate(records)
        text_path, table_path = aggregator.persist(
            text_report,
            table_report,
            self.output_dir / text_name,
            self.output_dir / table_name
        )
        return MaterializedOutput(
            paths=[text_path, table_path],
            preview=aggregator.preview(text_report, saved_to=text_path)
        )

    def _transcript(self, handle: JobHandle, status: JobStatus) -> MaterializedOutput:
        if not status.result_uri:
            raise ParseError(f"Transcription job {handle.job_id} reported no transcript location")

        from mediaflow.integrations.s3_client import parse_s3_location
        ref = parse_s3_location(status.result_uri)

        scratch = ScratchArea({TRANSCRIPTS: self.output_dir / settings.TRANSCRIBE_OUTPUT_DIR}).create()
        local_path = self.object_store_for(ref).download(
            ref, file_destination(scratch.path(TRANSCRIPTS), ref.name)
        )
        text = parse_transcript(local_path)

        transcript_path = self.output_dir / settings.TRANSCRIPT_FILE
        transcript_path.write_text(text, encoding="utf-8")
        scratch.release_all()

        logger.info(f"Transcript for job_id={handle.job_id} written to {transcript_path}")
        return MaterializedOutput(paths=[transcript_path], preview=text)

    def _audio_uri(self, status: JobStatus) -> MaterializedOutput:
        if not status.result_uri:
            raise ParseError("Speech synthesis task reported no output location")
        line = f"URL for the synthesized audio: {status.result_uri}\n"
        audio_path = self.output_dir / settings.AUDIO_URI_FILE
        with open(audio_path, "a", encoding="utf-8") as f:
            f.write(line)
        return MaterializedOutput(paths=[audio_path], preview=line)
