# schemas/batch_models.py
from pathlib import Path, PurePosixPath
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BoundingBox(BaseModel):
    """
    Region of a detection, each value a fraction of the source dimensions.

    Services are expected to keep all four values within [0, 1] with
    width + left <= 1 and height + top <= 1, but do not always honor that.
    Out-of-range values are accepted here and clamped by `to_pixels`.
    """
    model_config = ConfigDict(frozen=True)

    width: float
    height: float
    left: float
    top: float

    def is_within_unit(self) -> bool:
        values = (self.width, self.height, self.left, self.top)
        return (
            all(0.0 <= v <= 1.0 for v in values)
            and self.width + self.left <= 1.0
            and self.height + self.top <= 1.0
        )

    def to_pixels(self, image_width: int, image_height: int) -> Tuple[int, int, int, int]:
        """Return (x0, y0, x1, y1) clamped to the image."""
        def clamp(value: float) -> float:
            return min(max(value, 0.0), 1.0)

        x0 = clamp(self.left)
        y0 = clamp(self.top)
        x1 = clamp(self.left + max(self.width, 0.0))
        y1 = clamp(self.top + max(self.height, 0.0))
        return (
            int(round(x0 * image_width)),
            int(round(y0 * image_height)),
            int(round(x1 * image_width)),
            int(round(y1 * image_height)),
        )


class AnalysisAttribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0, description="Confidence as a fraction")


class AnalysisResult(BaseModel):
    """One detected entity (e.g. one face) for one object."""
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "attributes": {
                    "gender": {"value": "Male", "confidence": 0.98},
                    "smile": {"value": "False", "confidence": 0.91}
                },
                "region": {"width": 0.4, "height": 0.5, "left": 0.3, "top": 0.2}
            }
        }
    )

    attributes: Dict[str, AnalysisAttribute] = Field(default_factory=dict)
    region: Optional[BoundingBox] = None

    def has_attributes(self, names) -> bool:
        return all(name in self.attributes for name in names)

    def value_of(self, name: str) -> Optional[str]:
        attribute = self.attributes.get(name)
        return attribute.value if attribute else None


class ObjectRef(BaseModel):
    """A storage location (container + key) or a local file path."""
    model_config = ConfigDict(frozen=True)

    container: Optional[str] = None
    key: Optional[str] = None
    local_path: Optional[Path] = None

    @model_validator(mode="after")
    def _one_location(self):
        remote = self.container is not None or self.key is not None
        if remote and self.local_path is not None:
            raise ValueError("ObjectRef is either container + key or a local path, not both")
        if remote and not (self.container and self.key):
            raise ValueError("ObjectRef needs both a container and a key")
        if not remote and self.local_path is None:
            raise ValueError("ObjectRef needs a container + key or a local path")
        return self

    @classmethod
    def from_uri(cls, uri: str) -> "ObjectRef":
        if uri.startswith("s3://"):
            container, _, key = uri[len("s3://"):].partition("/")
            return cls(container=container, key=key)
        return cls(local_path=Path(uri))

    @property
    def is_local(self) -> bool:
        return self.local_path is not None

    @property
    def name(self) -> str:
        if self.local_path is not None:
            return self.local_path.name
        return PurePosixPath(self.key).name

    @property
    def uri(self) -> str:
        if self.local_path is not None:
            return str(self.local_path)
        return f"s3://{self.container}/{self.key}"

    def relative_key(self, prefix: str = "") -> str:
        """
        Path of this object below `prefix`, safe to join onto a scratch directory.
        Distinct keys map to distinct relative paths.
        """
        if self.local_path is not None:
            raw = self.local_path.as_posix()
            base = Path(prefix).as_posix() if prefix else ""
        else:
            raw = self.key
            base = prefix
        if base and raw.startswith(base):
            raw = raw[len(base):]
        parts = [p for p in PurePosixPath(raw).parts if p not in ("", "/", ".", "..")]
        return "/".join(parts) or self.name

    def __str__(self) -> str:
        return self.uri


class BatchRecord(BaseModel):
    """
    One report row. `result is None` is the absence marker: no usable result
    for this object, which is different from a result whose values are empty.
    """
    model_config = ConfigDict(frozen=True)

    object_ref: ObjectRef
    result: Optional[AnalysisResult] = None
    artifact_path: Optional[Path] = None
    uploaded_ref: Optional[ObjectRef] = None
    error: Optional[str] = None

    @property
    def is_absent(self) -> bool:
        return self.result is None

    @classmethod
    def absent(cls, object_ref: ObjectRef, error: Optional[str] = None) -> "BatchRecord":
        return cls(object_ref=object_ref, result=None, error=error)
