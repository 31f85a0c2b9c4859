"""
Unit Tests — File Classifier & Object References
═════════════════════════════════════════════════
Tests for app/processing/classifier.py and ObjectRef in app/storage/s3.py

Coverage:
  ✅ pdf → OCR, mp3/mp4/wav → TRANSCRIPTION
  ✅ Extension match is case-insensitive and tolerates a leading dot
  ✅ Unknown / empty extensions → UNSUPPORTED (never an error)
  ✅ Extension is taken from the last path segment only
"""

from __future__ import annotations

import pytest

from app.processing.classifier import FileKind, classify
from app.storage.s3 import ObjectRef, extension_of


@pytest.mark.unit
class TestClassify:

    @pytest.mark.parametrize("ext", ["pdf", "PDF", ".pdf"])
    def test_pdf_is_ocr(self, ext):
        assert classify(ext) is FileKind.OCR

    @pytest.mark.parametrize("ext", ["mp3", "mp4", "wav", "WAV"])
    def test_audio_is_transcription(self, ext):
        assert classify(ext) is FileKind.TRANSCRIPTION

    @pytest.mark.parametrize("ext", ["docx", "txt", "png", "", None])
    def test_everything_else_is_unsupported(self, ext):
        assert classify(ext) is FileKind.UNSUPPORTED


@pytest.mark.unit
class TestExtensionOf:

    def test_lowercases_suffix(self):
        assert extension_of("case1/Scan.PDF") == "pdf"

    def test_no_dot_means_no_extension(self):
        assert extension_of("case1/README") == ""

    def test_dot_in_folder_name_is_ignored(self):
        assert extension_of("case.v2/notes") == ""

    def test_last_suffix_wins(self):
        assert extension_of("case1/archive.tar.gz") == "gz"

    def test_object_ref_carries_extension(self):
        ref = ObjectRef.from_key("case1/call.Mp3")
        assert ref.key == "case1/call.Mp3"
        assert ref.extension == "mp3"
        assert classify(ref.extension) is FileKind.TRANSCRIPTION
