import mimetypes
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


@dataclass(frozen=True)
class MediaBlob:
    """In-memory media file handed to and returned from the compressors."""

    data: bytes
    filename: str
    mime_type: str
    last_modified: float = field(default_factory=time.time)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return self.filename.lower().rsplit(".", 1)[-1] if "." in self.filename else ""

    @classmethod
    def from_path(cls, path: str, mime_type: Optional[str] = None) -> "MediaBlob":
        if mime_type is None:
            mime_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        with open(path, "rb") as fh:
            data = fh.read()
        return cls(
            data=data,
            filename=os.path.basename(path),
            mime_type=mime_type,
            last_modified=os.path.getmtime(path),
        )


class Outcome(str, Enum):
    COMPRESSED = "compressed"
    NOT_SMALLER = "not_smaller"
    FAILED = "failed"


@dataclass(frozen=True)
class CompressionResult:
    """Outcome of one compression call.

    `blob` is always safe to upload: either the smaller re-encoded file or
    the untouched input when the outcome is NOT_SMALLER or FAILED.
    """

    blob: MediaBlob
    outcome: Outcome
    original_size: int
    error: Optional[str] = None
    details: Dict = field(default_factory=dict)

    @property
    def used_original(self) -> bool:
        return self.outcome is not Outcome.COMPRESSED

    @property
    def compression_ratio(self) -> float:
        if not self.original_size:
            return 1.0
        return self.blob.size / float(self.original_size)

    def as_dict(self) -> Dict:
        return {
            "status": "success" if self.outcome is Outcome.COMPRESSED else "skipped",
            "outcome": self.outcome.value,
            "original_size": self.original_size,
            "compressed_size": self.blob.size,
            "compression_ratio": self.compression_ratio,
            "format": self.blob.mime_type,
            "error": self.error,
            **self.details,
        }


def retag_filename(filename: str, extension: str) -> str:
    """Swap the extension of `filename` for `extension` (given with the dot)."""
    if "." in filename:
        return filename.rsplit(".", 1)[0] + extension
    return filename + extension


def keep_smaller(original: MediaBlob, candidate: MediaBlob, **details) -> CompressionResult:
    """Return `candidate` only if it is strictly smaller than `original`."""
    if candidate.size < original.size:
        return CompressionResult(
            blob=candidate,
            outcome=Outcome.COMPRESSED,
            original_size=original.size,
            details=details,
        )
    return CompressionResult(
        blob=original,
        outcome=Outcome.NOT_SMALLER,
        original_size=original.size,
        details=details,
    )


def fallback(original: MediaBlob, error: str, **details) -> CompressionResult:
    return CompressionResult(
        blob=original,
        outcome=Outcome.FAILED,
        original_size=original.size,
        error=error,
        details=details,
    )
