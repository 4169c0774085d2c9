"""Tests for the submit-and-poll AssemblyAI transcriber."""

from __future__ import annotations

import asyncio
import threading

import pytest
import requests
from conftest import FakeResponse, FakeSession

from fluentsub.assemblyai_transcriber import AssemblyAITranscriber
from fluentsub.config_loader import AppConfig
from fluentsub.exceptions import ConfigurationError, TranscriptionError

CONFIG = AppConfig(assemblyai_key="test-key", assemblyai_base_url="https://api.example.test/v2")


def scripted_backend(statuses: list[dict]):
    """Upload and submit succeed; each GET pops the next status (the last one repeats)."""
    remaining = list(statuses)

    def handler(method: str, url: str, kwargs: dict) -> FakeResponse:
        if method == "POST" and url.endswith("/upload"):
            return FakeResponse({"upload_url": "https://cdn.example.test/upload/1"})
        if method == "POST" and url.endswith("/transcript"):
            return FakeResponse({"id": "job-1"})
        if method == "GET" and url.endswith("/transcript/job-1"):
            return FakeResponse(remaining.pop(0) if len(remaining) > 1 else remaining[0])
        return FakeResponse({"error": "not found"}, status_code=404)

    return handler


def make_transcriber(session: FakeSession, **kwargs) -> AssemblyAITranscriber:
    kwargs.setdefault("poll_interval", 0.01)
    return AssemblyAITranscriber(CONFIG, session=session, **kwargs)


def test_completed_words_map_to_tokens(audio_file: str) -> None:
    session = FakeSession(scripted_backend([
        {"status": "queued"},
        {"status": "processing"},
        {"status": "completed", "words": [{"text": "hi", "start": 100, "end": 400, "confidence": 0.9}]},
    ]))

    result = asyncio.run(make_transcriber(session).transcribe(audio_file))

    assert [token.to_dict() for token in result] == [
        {"id": 0, "value": "hi", "startTimeMs": 100, "endTimeMs": 400, "score": 0.9}
    ]
    assert [c[0] for c in session.calls] == ["POST", "POST", "GET", "GET", "GET"]


def test_requests_carry_credentials_and_payloads(audio_file: str) -> None:
    session = FakeSession(scripted_backend([{"status": "completed", "words": []}]))

    result = asyncio.run(make_transcriber(session).transcribe(audio_file))

    assert result == []
    (_, upload_url, upload), (_, submit_url, submit) = session.calls[:2]
    assert upload_url == "https://api.example.test/v2/upload"
    assert upload["headers"]["authorization"] == "test-key"
    assert upload["data"] == b"RIFF0000WAVEfmt "
    assert submit["json"] == {"audio_url": "https://cdn.example.test/upload/1", "speech_model": "universal"}


def test_ids_follow_word_order(audio_file: str) -> None:
    words = [
        {"text": "b", "start": 500, "end": 600, "confidence": 0.5},
        {"text": "a", "start": 100, "end": 200, "confidence": 0.7},
        {"text": "c", "start": 700, "end": 800},
    ]
    session = FakeSession(scripted_backend([{"status": "completed", "words": words}]))

    result = asyncio.run(make_transcriber(session).transcribe(audio_file))

    assert [(t.id, t.value) for t in result] == [(0, "b"), (1, "a"), (2, "c")]
    assert result[2].score == 0.8


def test_backend_error_status_fails(audio_file: str) -> None:
    session = FakeSession(scripted_backend([{"status": "error", "error": "bad audio"}]))

    with pytest.raises(TranscriptionError) as excinfo:
        asyncio.run(make_transcriber(session).transcribe(audio_file))

    assert "bad audio" in str(excinfo.value.cause)


def test_http_failure_on_upload_is_not_retried(audio_file: str) -> None:
    session = FakeSession(lambda method, url, kwargs: FakeResponse({"error": "unauthorized"}, status_code=401))

    with pytest.raises(TranscriptionError, match="401"):
        asyncio.run(make_transcriber(session).transcribe(audio_file))

    assert len(session.calls) == 1


def test_transport_errors_are_wrapped(audio_file: str) -> None:
    def handler(method: str, url: str, kwargs: dict) -> FakeResponse:
        raise requests.ConnectionError("connection refused")

    with pytest.raises(TranscriptionError) as excinfo:
        asyncio.run(make_transcriber(FakeSession(handler)).transcribe(audio_file))

    assert isinstance(excinfo.value.cause, requests.ConnectionError)


def test_malformed_upload_response_is_wrapped(audio_file: str) -> None:
    session = FakeSession(lambda method, url, kwargs: FakeResponse({"unexpected": True}))

    with pytest.raises(TranscriptionError) as excinfo:
        asyncio.run(make_transcriber(session).transcribe(audio_file))

    assert isinstance(excinfo.value.cause, KeyError)


def test_non_object_status_payload_is_a_transcription_error(audio_file: str) -> None:
    session = FakeSession(scripted_backend([["unexpected"]]))

    with pytest.raises(TranscriptionError, match="instead of a JSON object"):
        asyncio.run(make_transcriber(session).transcribe(audio_file))

    assert [c[0] for c in session.calls] == ["POST", "POST", "GET"]


def test_polling_gives_up_after_ceiling(audio_file: str) -> None:
    session = FakeSession(scripted_backend([{"status": "processing"}]))

    with pytest.raises(TranscriptionError, match="timed out"):
        asyncio.run(make_transcriber(session, max_poll_seconds=0.05).transcribe(audio_file))


def test_cancel_during_poll_sleep_stops_polling(audio_file: str) -> None:
    """Once cancellation is observed no further HTTP call is made."""
    cancel_event = threading.Event()
    backend = scripted_backend([{"status": "processing"}])

    def handler(method: str, url: str, kwargs: dict) -> FakeResponse:
        response = backend(method, url, kwargs)
        if method == "GET":
            cancel_event.set()  # lands while the transcriber sleeps before the next poll
        return response

    session = FakeSession(handler)

    with pytest.raises(TranscriptionError) as excinfo:
        asyncio.run(make_transcriber(session, poll_interval=5.0).transcribe(audio_file, cancel_event))

    assert excinfo.value.aborted
    assert [c[0] for c in session.calls] == ["POST", "POST", "GET"]


def test_missing_audio_file_fails(tmp_path) -> None:
    session = FakeSession(scripted_backend([{"status": "completed", "words": []}]))

    with pytest.raises(TranscriptionError):
        asyncio.run(make_transcriber(session).transcribe(str(tmp_path / "nope.wav")))

    assert session.calls == []


def test_missing_key_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        AssemblyAITranscriber(AppConfig())
