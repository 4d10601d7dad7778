"""
End-to-end batch workflows built from the pipeline, the analyzers and the
report aggregator. Every collaborator can be passed in; the defaults talk to
AWS.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from mediaflow.core.config import settings
from mediaflow.core.logger import logger
from mediaflow.core.errors import ValidationError
from mediaflow.core.scratch import ScratchArea, file_destination
from mediaflow.schemas.batch_models import BatchRecord
from mediaflow.services.annotator import FaceAnnotator
from mediaflow.services.batch_pipeline import (
    DOWNLOADS,
    BatchPipeline,
    Compressor,
    RemoteAnalysisService,
    RemoteObjectStore,
)
from mediaflow.services.report_aggregator import (
    CELEBRITY_LAYOUT,
    FACE_DETAILS_LAYOUT,
    TEXT_DETECTION_LAYOUT,
    VOICE_LAYOUT,
    ReportAggregator,
    ReportRenderer,
)
from mediaflow.utils.log_record import log_batch_record

AUDIO = "audio"


@dataclass
class WorkflowResult:
    records: List[BatchRecord]
    text_path: Path
    table_path: Path
    preview: str
    uploaded: List[str] = field(default_factory=list)


def run_face_details_batch(
    bucket: str,
    prefix: str,
    object_store: Optional[RemoteObjectStore] = None,
    analysis_service: Optional[RemoteAnalysisService] = None,
    compressor: Optional[Compressor] = None,
    renderer: Optional[ReportRenderer] = None,
    upload_prefix: Optional[str] = None,
    output_dir: Optional[Path] = None,
    replace_existing: bool = False
) -> WorkflowResult:
    """
    Detect faces in every image under `prefix`, write an annotated copy per
    face, compress the copies and optionally upload them under
    `upload_prefix`. Reports land in `output_dir`.
    """
    if object_store is None:
        from mediaflow.integrations.s3_client import S3ObjectStore
        object_store = S3ObjectStore(bucket)
    if analysis_service is None:
        from mediaflow.integrations.rekognition_client import RekognitionFaceAnalyzer
        analysis_service = RekognitionFaceAnalyzer()
    if compressor is None:
        from mediaflow.integrations.image_compressor import PillowCompressor
        compressor = PillowCompressor()

    pipeline = BatchPipeline(
        object_store,
        analysis_service,
        compressor=compressor,
        upload_prefix=upload_prefix,
        upload_container=bucket
    )
    records = pipeline.run(prefix, FaceAnnotator(), replace_existing=replace_existing)
    return _report(
        records,
        ReportAggregator(layout=FACE_DETAILS_LAYOUT, renderer=renderer),
        output_dir,
        settings.FACE_REPORT_TEXT,
        settings.FACE_REPORT_TABLE
    )


def run_text_details_batch(
    bucket: str,
    prefix: str,
    object_store: Optional[RemoteObjectStore] = None,
    analysis_service: Optional[RemoteAnalysisService] = None,
    renderer: Optional[ReportRenderer] = None,
    output_dir: Optional[Path] = None,
    replace_existing: bool = False
) -> WorkflowResult:
    """Detect text lines in every image under `prefix`. Analysis only: no artifacts are written."""
    if object_store is None:
        from mediaflow.integrations.s3_client import S3ObjectStore
        object_store = S3ObjectStore(bucket)
    if analysis_service is None:
        from mediaflow.integrations.rekognition_client import RekognitionTextAnalyzer
        analysis_service = RekognitionTextAnalyzer()

    scratch = ScratchArea({DOWNLOADS: Path(settings.DOWNLOAD_DIR)})
    pipeline = BatchPipeline(object_store, analysis_service, scratch=scratch)
    records = pipeline.run(prefix, replace_existing=replace_existing)
    return _report(
        records,
        ReportAggregator(layout=TEXT_DETECTION_LAYOUT, renderer=renderer),
        output_dir,
        settings.TEXT_REPORT_TEXT,
        settings.TEXT_REPORT_TABLE
    )


def write_voice_report(
    catalog=None,
    renderer: Optional[ReportRenderer] = None,
    output_dir: Optional[Path] = None,
    engine: Optional[str] = None,
    language_code: Optional[str] = None
) -> WorkflowResult:
    """List the available speech synthesis voices into the voice report."""
    if catalog is None:
        from mediaflow.integrations.polly_client import PollyVoiceCatalog
        catalog = PollyVoiceCatalog()
    records = catalog.list_voices(engine=engine, language_code=language_code)
    return _report(
        records,
        ReportAggregator(layout=VOICE_LAYOUT, renderer=renderer),
        output_dir,
        settings.VOICE_REPORT_TEXT,
        settings.VOICE_REPORT_TABLE
    )


def run_celebrity_batch(
    source: str,
    bucket: Optional[str] = None,
    object_store: Optional[RemoteObjectStore] = None,
    analysis_service: Optional[RemoteAnalysisService] = None,
    renderer: Optional[ReportRenderer] = None,
    output_dir: Optional[Path] = None,
    replace_existing: bool = False
) -> WorkflowResult:
    """
    Recognize celebrities in every image under `source`: an S3 prefix in
    `bucket`, or a local directory when no bucket is given. Images are
    staged in the celebrity download directory, which must not exist yet.
    """
    if object_store is None:
        if bucket:
            from mediaflow.integrations.s3_client import S3ObjectStore
            object_store = S3ObjectStore(bucket)
        else:
            from mediaflow.integrations.s3_client import LocalObjectStore
            object_store = LocalObjectStore()
    if analysis_service is None:
        from mediaflow.integrations.rekognition_client import RekognitionCelebrityAnalyzer
        analysis_service = RekognitionCelebrityAnalyzer()

    scratch = ScratchArea({DOWNLOADS: Path(settings.CELEBRITY_DOWNLOAD_DIR)})
    pipeline = BatchPipeline(object_store, analysis_service, scratch=scratch)
    records = pipeline.run(source, replace_existing=replace_existing)
    return _report(
        records,
        ReportAggregator(layout=CELEBRITY_LAYOUT, renderer=renderer),
        output_dir,
        settings.CELEBRITY_REPORT_TEXT,
        settings.CELEBRITY_REPORT_TABLE
    )


def generate_all_voices_audio(
    text: str,
    engine: str,
    language_code: str,
    output_dir: Path,
    catalog=None,
    synthesizer=None,
    text_type: str = "ssml"
) -> List[BatchRecord]:
    """
    Synthesize `text` once per voice available for `engine` and
    `language_code`, writing `<voice id>.mp3` files into `output_dir`.

    `output_dir` is created by this call and must not exist beforehand. A
    voice that fails to synthesize keeps its record with the error and no
    artifact; the other voices still run.

    Raises:
        ValidationError: a field is empty.
        ScratchConflictError: `output_dir` already exists.
    """
    fields = {"text": text, "engine": engine, "language_code": language_code, "output_dir": str(output_dir or "")}
    empty = [name for name, value in fields.items() if not value or not value.strip()]
    if empty:
        raise ValidationError(f"Fields should not be left empty: {', '.join(empty)}", fields=empty)

    if catalog is None:
        from mediaflow.integrations.polly_client import PollyVoiceCatalog
        catalog = PollyVoiceCatalog()
    if synthesizer is None:
        from mediaflow.integrations.polly_client import PollySpeechSynthesizer
        synthesizer = PollySpeechSynthesizer()

    voices = catalog.list_voices(engine=engine, language_code=language_code)
    audio_dir = ScratchArea({AUDIO: Path(output_dir)}).create().path(AUDIO)
    logger.info(f"Generating {len(voices)} voices ({engine}, {language_code}) into {audio_dir}")

    records = []
    for voice in voices:
        voice_id = voice.result.value_of("voice_id") if voice.result else None
        if not voice_id:
            records.append(log_batch_record(voice.model_copy(update={"error": "voice has no id"})))
            continue
        destination = file_destination(audio_dir, f"{voice_id}.mp3")
        try:
            audio = synthesizer.synthesize(
                text, voice_id, engine, language_code=language_code, text_type=text_type
            )
            destination.write_bytes(audio)
        except Exception as e:
            logger.error(f"Voice {voice_id} failed: {e}")
            record = voice.model_copy(update={"error": f"synthesis failed: {e}"})
        else:
            record = voice.model_copy(update={"artifact_path": destination})
        records.append(log_batch_record(record))

    written = sum(1 for r in records if r.artifact_path is not None)
    logger.info(f"Wrote {written}/{len(records)} voice files to {audio_dir}")
    return records


def _report(records, aggregator: ReportAggregator, output_dir, text_name: str, table_name: str) -> WorkflowResult:
    output_dir = Path(output_dir) if output_dir else Path(".")
    text_report, table_report = aggregator.aggregate(records)
    text_path, table_path = aggregator.persist(
        text_report,
        table_report,
        output_dir / text_name,
        output_dir / table_name
    )
    uploaded = [r.uploaded_ref.uri for r in records if r.uploaded_ref is not None]
    logger.info(f"Wrote {len(records)} records to {text_path} and {table_path}")
    return WorkflowResult(
        records=records,
        text_path=text_path,
        table_path=table_path,
        preview=aggregator.preview(text_report, saved_to=text_path),
        uploaded=uploaded
    )
