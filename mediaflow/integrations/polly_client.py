# integrations/polly_client.py
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from mediaflow.core.aws_client import get_polly_client
from mediaflow.core.errors import RemoteCallError
from mediaflow.core.logger import logger
from mediaflow.schemas.batch_models import (
    AnalysisAttribute,
    AnalysisResult,
    BatchRecord,
    ObjectRef,
)


def voice_to_record(voice: Dict[str, Any]) -> BatchRecord:
    """One catalog entry from DescribeVoices as a report record."""
    values = {
        "gender": voice.get("Gender"),
        "voice_id": voice.get("Id"),
        "language_code": voice.get("LanguageCode"),
        "language_name": voice.get("LanguageName"),
        "voice_name": voice.get("Name"),
        "supported_engines": ", ".join(voice.get("SupportedEngines", [])) or None,
    }
    attributes = {
        name: AnalysisAttribute(value=str(value))
        for name, value in values.items()
        if value is not None
    }
    return BatchRecord(
        object_ref=ObjectRef(container="polly", key=f"voices/{voice.get('Id', 'unknown')}"),
        result=AnalysisResult(attributes=attributes)
    )


class PollyVoiceCatalog:
    """Lists the voices Amazon Polly offers, following NextToken pages."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_polly_client()
        return self._client

    def list_voices(self, engine: Optional[str] = None, language_code: Optional[str] = None) -> List[BatchRecord]:
        request: Dict[str, Any] = {}
        if engine:
            request["Engine"] = engine
        if language_code:
            request["LanguageCode"] = language_code

        voices: List[Dict[str, Any]] = []
        try:
            while True:
                response = self.client.describe_voices(**request)
                voices.extend(response.get("Voices", []))
                next_token = response.get("NextToken")
                if not next_token:
                    break
                request["NextToken"] = next_token
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to describe Polly voices: {e}")
            raise RemoteCallError(str(e), operation="describe_voices") from e

        logger.info(f"Polly offers {len(voices)} voices")
        return [voice_to_record(voice) for voice in voices]


class PollySpeechSynthesizer:
    """Synchronous SynthesizeSpeech; returns the audio bytes."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_polly_client()
        return self._client

    def synthesize(
        self,
        text: str,
        voice_id: str,
        engine: str,
        language_code: Optional[str] = None,
        text_type: str = "ssml",
        output_format: str = "mp3"
    ) -> bytes:
        request: Dict[str, Any] = {
            "Text": text,
            "TextType": text_type,
            "VoiceId": voice_id,
            "Engine": engine,
            "OutputFormat": output_format,
        }
        if language_code:
            request["LanguageCode"] = language_code
        try:
            response = self.client.synthesize_speech(**request)
            stream = response["AudioStream"]
            try:
                return stream.read()
            finally:
                stream.close()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Speech synthesis failed for voice {voice_id}: {e}")
            raise RemoteCallError(str(e), operation="synthesize_speech") from e
