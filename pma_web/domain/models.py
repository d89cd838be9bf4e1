######## models.py
########

from __future__ import annotations

import io
import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional, Union

DEFAULT_MEDIA_TYPE = "application/octet-stream"


def _guess_media_type(filename: str, declared: Optional[str] = None) -> str:
    declared = (declared or "").strip()
    if declared:
        return declared
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed or DEFAULT_MEDIA_TYPE


@dataclass(frozen=True)
class MediaAsset:
    """
    A user-supplied video or image, held in memory (or referenced on disk)
    for as long as the owning session keeps it.
    """
    filename: str
    media_type: str
    source: Union[Path, BinaryIO]

    @classmethod
    def from_upload(cls, upload) -> "MediaAsset":
        # Werkzeug closes the upload stream when the request ends, so keep a copy
        buf = io.BytesIO(upload.read())
        filename = upload.filename or "upload"
        return cls(
            filename=filename,
            media_type=_guess_media_type(filename, upload.mimetype),
            source=buf,
        )

    @classmethod
    def from_path(cls, path: Path, media_type: Optional[str] = None) -> "MediaAsset":
        path = Path(path)
        return cls(
            filename=path.name,
            media_type=_guess_media_type(path.name, media_type),
            source=path,
        )

    @property
    def size_bytes(self) -> Optional[int]:
        if isinstance(self.source, Path):
            try:
                return self.source.stat().st_size
            except OSError:
                return None
        if isinstance(self.source, io.BytesIO):
            return self.source.getbuffer().nbytes
        return None


@dataclass(frozen=True)
class EncodedPart:
    data: str           # base64, no data-URL prefix
    media_type: str


@dataclass(frozen=True)
class VideoPart:
    encoded: EncodedPart

    def to_wire(self) -> dict:
        return {"inlineData": {"mimeType": self.encoded.media_type, "data": self.encoded.data}}


@dataclass(frozen=True)
class ImagePart:
    encoded: EncodedPart

    def to_wire(self) -> dict:
        return {"inlineData": {"mimeType": self.encoded.media_type, "data": self.encoded.data}}


@dataclass(frozen=True)
class TextPart:
    text: str

    def to_wire(self) -> dict:
        return {"text": self.text}


RequestPart = Union[VideoPart, ImagePart, TextPart]


@dataclass(frozen=True)
class AuditRequest:
    video: Optional[MediaAsset]
    log_text: str
    blueprint: Optional[MediaAsset]
    diagnostic_goal: str

    def has_input(self) -> bool:
        return bool(self.video or (self.log_text or "").strip() or self.blueprint)


@dataclass(frozen=True)
class AuditResult:
    anomaly_detection: str
    root_cause_analysis: str
    prescribed_fix: str

    def as_dict(self) -> dict:
        return {
            "anomalyDetection": self.anomaly_detection,
            "rootCauseAnalysis": self.root_cause_analysis,
            "prescribedFix": self.prescribed_fix,
        }


class AuditStatus(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    SUCCESS = "success"
    ERROR = "error"
