"""
File classifier — maps a file extension to the extraction it needs.

Pure lookup, no I/O. Unknown extensions are a normal outcome
(FileKind.UNSUPPORTED), never an error.
"""

from __future__ import annotations

from enum import Enum


class FileKind(str, Enum):
    OCR           = "ocr"             # document text detection
    TRANSCRIPTION = "transcription"   # speech-to-text
    UNSUPPORTED   = "unsupported"


_EXTENSION_KINDS: dict[str, FileKind] = {
    "pdf": FileKind.OCR,
    "mp3": FileKind.TRANSCRIPTION,
    "mp4": FileKind.TRANSCRIPTION,
    "wav": FileKind.TRANSCRIPTION,
}


def classify(extension: str | None) -> FileKind:
    if not extension:
        return FileKind.UNSUPPORTED
    return _EXTENSION_KINDS.get(extension.lstrip(".").lower(), FileKind.UNSUPPORTED)
