# integrations/job_services.py
"""
Starts and inspects asynchronous AWS jobs:

- Rekognition video face / text detection
- Transcribe transcription jobs
- Translate batch (document) translation jobs
- Polly speech synthesis tasks

Every status string goes through parse_remote_state, so a value AWS adds
later raises UnknownJobStateError instead of being treated as pending.
"""
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from botocore.exceptions import BotoCoreError, ClientError

from mediaflow.core.errors import RemoteCallError, ValidationError
from mediaflow.core.logger import logger
from mediaflow.core.session import DEFAULT_FACTORIES, Session
from mediaflow.integrations.rekognition_client import (
    face_detail_to_result,
    text_detection_to_result,
)
from mediaflow.schemas.batch_models import AnalysisResult
from mediaflow.schemas.job_models import (
    JobHandle,
    JobKind,
    JobState,
    JobStatus,
    parse_remote_state,
)

"""
Translate batch jobs take one document format per job.
"""
DOCUMENT_CONTENT_TYPES: Dict[str, str] = {
    "plain": "text/plain",
    "html": "text/html",
    "word": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "ppt": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "xliff": "application/x-xliff+xml",
}

MAX_TARGET_LANGUAGES = 10


def media_uri(bucket: str, key: str) -> str:
    return key if key.startswith("s3://") else f"s3://{bucket}/{key}"


class AwsJobService:
    """RemoteJobService over the AWS SDK clients of one Session."""

    def __init__(self, clients: Optional[Mapping[str, Any]] = None):
        self._clients: Dict[str, Any] = dict(clients or {})

    @classmethod
    def from_session(cls, session: Session) -> "AwsJobService":
        return cls(session.clients)

    def _client(self, service_name: str):
        if service_name not in self._clients:
            self._clients[service_name] = DEFAULT_FACTORIES[service_name](None)
        return self._clients[service_name]

    # ========================================================================
    # START
    # ========================================================================

    def start_job(self, kind: JobKind, params: Mapping[str, str]) -> JobHandle:
        starters: Dict[JobKind, Callable[[Mapping[str, str]], str]] = {
            JobKind.FACE_DETECTION: self._start_face_detection,
            JobKind.TEXT_DETECTION: self._start_text_detection,
            JobKind.TRANSCRIPTION: self._start_transcription,
            JobKind.TRANSLATION_BATCH: self._start_translation,
            JobKind.SPEECH_SYNTHESIS: self._start_speech_synthesis,
        }
        try:
            job_id = starters[kind](params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to start {kind.value}: {e}")
            raise RemoteCallError(str(e), operation=f"start {kind.value}") from e
        return JobHandle(job_id=job_id, kind=kind)

    def _start_face_detection(self, params: Mapping[str, str]) -> str:
        response = self._client("rekognition").start_face_detection(
            Video={"S3Object": {"Bucket": params["bucket"], "Name": params["key"]}},
            FaceAttributes="ALL"
        )
        return response.get("JobId", "")

    def _start_text_detection(self, params: Mapping[str, str]) -> str:
        response = self._client("rekognition").start_text_detection(
            Video={"S3Object": {"Bucket": params["bucket"], "Name": params["key"]}}
        )
        return response.get("JobId", "")

    def _start_transcription(self, params: Mapping[str, str]) -> str:
        request = {
            "TranscriptionJobName": params["job"],
            "Media": {"MediaFileUri": media_uri(params["bucket"], params["key"])},
            "MediaFormat": params["format"],
            "OutputBucketName": params["bucket"],
        }
        if params.get("language_code"):
            request["LanguageCode"] = params["language_code"]
        else:
            request["IdentifyLanguage"] = True
        response = self._client("transcribe").start_transcription_job(**request)
        return response.get("TranscriptionJob", {}).get("TranscriptionJobName", "")

    def _start_translation(self, params: Mapping[str, str]) -> str:
        content_type = DOCUMENT_CONTENT_TYPES.get(params["document_type"].strip().lower())
        if content_type is None:
            raise ValidationError(
                f"Unsupported document type '{params['document_type']}'. "
                f"Valid types: {', '.join(sorted(DOCUMENT_CONTENT_TYPES))}",
                fields=["document_type"]
            )
        targets = params["target_languages"].split()
        if len(targets) > MAX_TARGET_LANGUAGES:
            raise ValidationError(
                f"At most {MAX_TARGET_LANGUAGES} target language codes are allowed",
                fields=["target_languages"]
            )
        response = self._client("translate").start_text_translation_job(
            JobName=params["job_name"],
            InputDataConfig={"S3Uri": params["input_uri"], "ContentType": content_type},
            OutputDataConfig={"S3Uri": params["output_uri"]},
            DataAccessRoleArn=params["role_arn"],
            SourceLanguageCode=params.get("source_language", "auto"),
            TargetLanguageCodes=targets,
            ClientToken=str(uuid4())
        )
        return response.get("JobId", "")

    def _start_speech_synthesis(self, params: Mapping[str, str]) -> str:
        request = {
            "Text": params["text"],
            "VoiceId": params["voice_id"],
            "Engine": params["engine"],
            "OutputFormat": params["output_format"],
            "OutputS3BucketName": params["bucket"],
            "TextType": params.get("text_type", "text"),
        }
        if params.get("key_prefix"):
            request["OutputS3KeyPrefix"] = params["key_prefix"]
        if params.get("language_code"):
            request["LanguageCode"] = params["language_code"]
        response = self._client("polly").start_speech_synthesis_task(**request)
        return response.get("SynthesisTask", {}).get("TaskId", "")

    # ========================================================================
    # STATUS
    # ========================================================================

    def get_job_status(self, handle: JobHandle) -> JobStatus:
        readers: Dict[JobKind, Callable[[JobHandle], JobStatus]] = {
            JobKind.FACE_DETECTION: self._face_detection_status,
            JobKind.TEXT_DETECTION: self._text_detection_status,
            JobKind.TRANSCRIPTION: self._transcription_status,
            JobKind.TRANSLATION_BATCH: self._translation_status,
            JobKind.SPEECH_SYNTHESIS: self._speech_synthesis_status,
        }
        try:
            return readers[handle.kind](handle)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to read status of {handle.kind.value} {handle.job_id}: {e}")
            raise RemoteCallError(str(e), operation=f"status {handle.kind.value}") from e

    def _video_detection_status(
        self,
        handle: JobHandle,
        operation: str,
        items_key: str,
        to_result: Callable[[Dict[str, Any]], AnalysisResult]
    ) -> JobStatus:
        fetch = getattr(self._client("rekognition"), operation)
        response = fetch(JobId=handle.job_id)
        raw_state = response.get("JobStatus")
        state = parse_remote_state(handle.kind, raw_state)

        results: List[AnalysisResult] = []
        if state is JobState.SUCCEEDED:
            while True:
                results.extend(to_result(item) for item in response.get(items_key, []))
                next_token = response.get("NextToken")
                if not next_token:
                    break
                response = fetch(JobId=handle.job_id, NextToken=next_token)

        return JobStatus(
            state=state,
            raw_state=raw_state,
            reason=response.get("StatusMessage"),
            results=results
        )

    def _face_detection_status(self, handle: JobHandle) -> JobStatus:
        return self._video_detection_status(
            handle,
            "get_face_detection",
            "Faces",
            lambda item: face_detail_to_result(item.get("Face", {}), timestamp=item.get("Timestamp"))
        )

    def _text_detection_status(self, handle: JobHandle) -> JobStatus:
        return self._video_detection_status(
            handle,
            "get_text_detection",
            "TextDetections",
            lambda item: text_detection_to_result(item.get("TextDetection", {}), timestamp=item.get("Timestamp"))
        )

    def _transcription_status(self, handle: JobHandle) -> JobStatus:
        response = self._client("transcribe").get_transcription_job(TranscriptionJobName=handle.job_id)
        job = response.get("TranscriptionJob", {})
        raw_state = job.get("TranscriptionJobStatus")
        return JobStatus(
            state=parse_remote_state(handle.kind, raw_state),
            raw_state=raw_state,
            reason=job.get("FailureReason"),
            result_uri=(job.get("Transcript") or {}).get("TranscriptFileUri")
        )

    def _translation_status(self, handle: JobHandle) -> JobStatus:
        response = self._client("translate").describe_text_translation_job(JobId=handle.job_id)
        job = response.get("TextTranslationJobProperties", {})
        raw_state = job.get("JobStatus")
        return JobStatus(
            state=parse_remote_state(handle.kind, raw_state),
            raw_state=raw_state,
            reason=job.get("Message"),
            result_uri=(job.get("OutputDataConfig") or {}).get("S3Uri")
        )

    def _speech_synthesis_status(self, handle: JobHandle) -> JobStatus:
        response = self._client("polly").get_speech_synthesis_task(TaskId=handle.job_id)
        task = response.get("SynthesisTask", {})
        raw_state = task.get("TaskStatus")
        return JobStatus(
            state=parse_remote_state(handle.kind, raw_state),
            raw_state=raw_state,
            reason=task.get("TaskStatusReason"),
            result_uri=task.get("OutputUri")
        )
