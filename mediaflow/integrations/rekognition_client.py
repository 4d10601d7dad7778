# integrations/rekognition_client.py
"""
Single-shot image analysis with Amazon Rekognition.

Rekognition reports confidence as a percentage; results carry it as a
fraction in [0, 1].
"""
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from mediaflow.core.aws_client import get_rekognition_client
from mediaflow.core.errors import RemoteCallError
from mediaflow.core.logger import logger
from mediaflow.schemas.batch_models import (
    AnalysisAttribute,
    AnalysisResult,
    BoundingBox,
    ObjectRef,
)


def _fraction(confidence: Optional[float]) -> Optional[float]:
    if confidence is None:
        return None
    return min(max(float(confidence) / 100.0, 0.0), 1.0)


def _bounding_box(box: Optional[Dict[str, Any]]) -> Optional[BoundingBox]:
    if not box or not all(k in box for k in ("Width", "Height", "Left", "Top")):
        return None
    return BoundingBox(width=box["Width"], height=box["Height"], left=box["Left"], top=box["Top"])


def face_detail_to_result(detail: Dict[str, Any], timestamp: Optional[int] = None) -> AnalysisResult:
    """Map one Rekognition FaceDetail onto an AnalysisResult."""
    attributes: Dict[str, AnalysisAttribute] = {}

    for name, key in (("gender", "Gender"), ("beard", "Beard"), ("smile", "Smile")):
        value = detail.get(key) or {}
        if "Value" in value:
            attributes[name] = AnalysisAttribute(
                value=str(value["Value"]),
                confidence=_fraction(value.get("Confidence"))
            )

    # AgeRange carries no confidence of its own; the face confidence stands in
    age_range = detail.get("AgeRange") or {}
    if "Low" in age_range and "High" in age_range:
        attributes["age_range"] = AnalysisAttribute(
            value=f"{age_range['Low']}-{age_range['High']}",
            confidence=_fraction(detail.get("Confidence"))
        )

    if timestamp is not None:
        attributes["timestamp"] = AnalysisAttribute(value=str(timestamp))

    return AnalysisResult(attributes=attributes, region=_bounding_box(detail.get("BoundingBox")))


def text_detection_to_result(detection: Dict[str, Any], timestamp: Optional[int] = None) -> AnalysisResult:
    """Map one Rekognition TextDetection onto an AnalysisResult."""
    attributes: Dict[str, AnalysisAttribute] = {}
    if "DetectedText" in detection:
        attributes["text"] = AnalysisAttribute(
            value=detection["DetectedText"],
            confidence=_fraction(detection.get("Confidence"))
        )
    if "Type" in detection:
        attributes["type"] = AnalysisAttribute(value=detection["Type"])
    if timestamp is not None:
        attributes["timestamp"] = AnalysisAttribute(value=str(timestamp))

    geometry = detection.get("Geometry") or {}
    return AnalysisResult(attributes=attributes, region=_bounding_box(geometry.get("BoundingBox")))


class _RekognitionAnalyzer:

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_rekognition_client()
        return self._client

    @staticmethod
    def _image(ref: ObjectRef) -> Dict[str, Any]:
        if ref.is_local:
            return {"Bytes": ref.local_path.read_bytes()}
        return {"S3Object": {"Bucket": ref.container, "Name": ref.key}}

    def _call(self, operation: str, ref: ObjectRef, **kwargs) -> Dict[str, Any]:
        try:
            return getattr(self.client, operation)(Image=self._image(ref), **kwargs)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Rekognition {operation} failed for {ref}: {e}")
            raise RemoteCallError(str(e), operation=operation) from e


class RekognitionFaceAnalyzer(_RekognitionAnalyzer):
    """DetectFaces with all facial attributes; one result per face."""

    def analyze(self, ref: ObjectRef) -> List[AnalysisResult]:
        response = self._call("detect_faces", ref, Attributes=["ALL"])
        details = response.get("FaceDetails", [])
        logger.info(f"Detected {len(details)} faces in {ref}")
        return [face_detail_to_result(detail) for detail in details]


class RekognitionTextAnalyzer(_RekognitionAnalyzer):
    """DetectText; one result per detected line (words are skipped)."""

    def __init__(self, client=None, include_words: bool = False):
        super().__init__(client)
        self.include_words = include_words

    def analyze(self, ref: ObjectRef) -> List[AnalysisResult]:
        response = self._call("detect_text", ref)
        detections = [
            d for d in response.get("TextDetections", [])
            if self.include_words or d.get("Type") == "LINE"
        ]
        logger.info(f"Detected {len(detections)} text items in {ref}")
        return [text_detection_to_result(d) for d in detections]


def celebrity_to_result(celebrity: Dict[str, Any]) -> AnalysisResult:
    """Map one Rekognition CelebrityFaces entry onto an AnalysisResult."""
    attributes: Dict[str, AnalysisAttribute] = {}
    if "Name" in celebrity:
        attributes["name"] = AnalysisAttribute(
            value=celebrity["Name"],
            confidence=_fraction(celebrity.get("MatchConfidence"))
        )
    if "Id" in celebrity:
        attributes["celebrity_id"] = AnalysisAttribute(value=celebrity["Id"])
    urls = celebrity.get("Urls") or []
    if urls:
        attributes["urls"] = AnalysisAttribute(value=", ".join(urls))
    known_gender = (celebrity.get("KnownGender") or {}).get("Type")
    if known_gender:
        attributes["known_gender"] = AnalysisAttribute(value=known_gender)

    face = celebrity.get("Face") or {}
    return AnalysisResult(attributes=attributes, region=_bounding_box(face.get("BoundingBox")))


class RekognitionCelebrityAnalyzer(_RekognitionAnalyzer):
    """RecognizeCelebrities; one result per recognized face, unrecognized faces are only counted."""

    def analyze(self, ref: ObjectRef) -> List[AnalysisResult]:
        response = self._call("recognize_celebrities", ref)
        celebrities = response.get("CelebrityFaces", [])
        unrecognized = len(response.get("UnrecognizedFaces", []))
        logger.info(f"Recognized {len(celebrities)} celebrities in {ref} ({unrecognized} unrecognized faces)")
        return [celebrity_to_result(c) for c in celebrities]
