"""Tests for scribe.refine.corrector and scribe.refine.prompts."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from scribe.data_models import TranscriptionInput
from scribe.exceptions import CorrectionError
from scribe.refine.corrector import GeminiCorrector, parse_correction_response
from scribe.refine.prompts import (
    build_correction_prompt,
    build_transcription_prompt,
    language_name,
)


class TestParseCorrectionResponse:
    def test_valid(self) -> None:
        result = parse_correction_response(
            '{"corrected_text": "Fixed", "correction_count": 3}', "orig",
        )
        assert result.corrected_text == "Fixed"
        assert result.correction_count == 3

    def test_missing_text_keeps_original(self) -> None:
        result = parse_correction_response('{"correction_count": "x"}', "orig")
        assert result.corrected_text == "orig"
        assert result.correction_count == 0

    def test_invalid_json(self) -> None:
        with pytest.raises(CorrectionError, match="truncated"):
            parse_correction_response('{"corrected_text": "cut', "orig")

    def test_non_object(self) -> None:
        with pytest.raises(CorrectionError):
            parse_correction_response("[1, 2]", "orig")


class TestGeminiCorrector:
    @patch("scribe.refine.corrector.gemini")
    def test_text_only(self, mock_gemini: MagicMock) -> None:
        mock_gemini.generate.return_value = '{"corrected_text": "Acme", "correction_count": 1}'
        result = GeminiCorrector("key", language="en").correct(
            "acne", previous_context="before", next_context="after",
        )
        assert result.corrected_text == "Acme"
        contents = mock_gemini.generate.call_args[0][1]
        assert len(contents) == 1
        assert "before" in contents[0]
        assert "after" in contents[0]
        mock_gemini.upload_input.assert_not_called()

    @patch("scribe.refine.corrector.gemini")
    def test_with_audio_uploads_and_deletes(self, mock_gemini: MagicMock) -> None:
        mock_gemini.generate.return_value = '{"corrected_text": "x", "correction_count": 0}'
        audio = TranscriptionInput(b"wav", "audio/wav", "chunk.wav")
        GeminiCorrector("key").correct("x", audio=audio)
        contents = mock_gemini.generate.call_args[0][1]
        assert contents[0] is mock_gemini.upload_input.return_value
        mock_gemini.delete_upload.assert_called_once_with(mock_gemini.upload_input.return_value)

    @patch("scribe.refine.corrector.gemini")
    def test_request_failure(self, mock_gemini: MagicMock) -> None:
        mock_gemini.generate.side_effect = RuntimeError("503")
        with pytest.raises(CorrectionError, match="503"):
            GeminiCorrector("key").correct("x")


class TestPrompts:
    def test_language_name(self) -> None:
        assert language_name("de") == "German"
        assert language_name("pt") == "pt"
        assert language_name(None) == "the original spoken language"

    def test_transcription_prompt_toggles(self) -> None:
        prompt = build_transcription_prompt(
            "en", speaker_identification=False, timestamps=True,
            duration_seconds=3725, custom_instructions="Use British spelling",
        )
        assert "[1:02:05]" in prompt
        assert "Speaker 1" not in prompt
        assert "Use British spelling" in prompt

    def test_correction_prompt_audio(self) -> None:
        assert "attached audio" in build_correction_prompt("t", "en", with_audio=True)
        assert "attached audio" not in build_correction_prompt("t", "en")
