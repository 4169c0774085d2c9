"""Shared test fixtures for the fluentsub test suite."""

from __future__ import annotations

import json
import stat
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Iterable

import pytest

VALID_URL = "https://www.youtube.com/watch?v=AAAAAAAAAAA"


@pytest.fixture()
def make_script(tmp_path: Path) -> Callable[[str], str]:
    """Return a factory writing executable shell scripts that stand in for yt-dlp."""

    def _make(body: str, name: str = "yt-dlp") -> str:
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body)
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return _make


# Writes a small payload to the path following "-o", then exits with $EXIT_CODE.
WRITE_OUTPUT_SCRIPT = """
out=""
while [ $# -gt 0 ]; do
  if [ "$1" = "-o" ]; then out="$2"; fi
  shift
done
printf 'RIFFdata' > "$out"
echo "extracted" >&2
exit ${EXIT_CODE:-0}
"""


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self.payload = payload
        self.status_code = status_code
        self.ok = 200 <= status_code < 400
        self.text = json.dumps(payload)

    def json(self) -> Any:
        return self.payload


class FakeSession:
    """Scripted requests.Session recording every call it receives.

    `handler(method, url, kwargs)` returns a FakeResponse.
    """

    def __init__(self, handler: Callable[[str, str, dict], FakeResponse]) -> None:
        self.handler = handler
        self.calls: list[tuple[str, str, dict]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        return self.handler(method, url, kwargs)


class FakeSignal:
    """Mimics the SDK EventSignal: callbacks are invoked synchronously on fire()."""

    def __init__(self) -> None:
        self.callbacks: list[Callable[[Any], None]] = []

    def connect(self, callback: Callable[[Any], None]) -> None:
        self.callbacks.append(callback)

    def fire(self, evt: Any) -> None:
        for callback in self.callbacks:
            callback(evt)


class FakeFuture:
    def __init__(self, action: Callable[[], Any] | None = None) -> None:
        self.action = action

    def get(self) -> Any:
        return self.action() if self.action is not None else None


class FakeRecognizer:
    """Plays back a script of (signal_name, event) pairs once recognition starts."""

    def __init__(self, script: Iterable[tuple[str, Any]] = (), once_result: Any = None) -> None:
        self.recognized = FakeSignal()
        self.session_stopped = FakeSignal()
        self.canceled = FakeSignal()
        self.script = list(script)
        self.once_result = once_result
        self.started = False
        self.stopped = False

    def start_continuous_recognition_async(self) -> FakeFuture:
        def _play() -> None:
            self.started = True
            for signal_name, evt in self.script:
                getattr(self, signal_name).fire(evt)

        return FakeFuture(_play)

    def stop_continuous_recognition_async(self) -> FakeFuture:
        def _stop() -> None:
            self.stopped = True

        return FakeFuture(_stop)

    def recognize_once_async(self) -> FakeFuture:
        once = self.once_result
        return FakeFuture(once if callable(once) else (lambda: once))


def recognized(text: str, offset: int, duration: int, confidence: float | None = None) -> tuple[str, Any]:
    raw = json.dumps({"NBest": [{"Confidence": confidence}]}) if confidence is not None else None
    return "recognized", SimpleNamespace(result=SimpleNamespace(text=text, offset=offset, duration=duration, json=raw))


def session_stopped() -> tuple[str, Any]:
    return "session_stopped", SimpleNamespace()


def canceled(reason: str, error_details: str = "") -> tuple[str, Any]:
    details = SimpleNamespace(reason=SimpleNamespace(name=reason), error_details=error_details)
    return "canceled", SimpleNamespace(cancellation_details=details, result=SimpleNamespace())


@pytest.fixture()
def audio_file(tmp_path: Path) -> str:
    path = tmp_path / "audio.wav"
    path.write_bytes(b"RIFF0000WAVEfmt ")
    return str(path)


@pytest.fixture(autouse=True)
def _clear_credential_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer credentials in the environment from leaking into tests."""
    for name in ("ASSEMBLYAI_KEY", "AZURE_SPEECH_KEY", "AZURE_SPEECH_REGION", "FLUENTSUB_BACKEND", "YT_DLP_PATH"):
        monkeypatch.delenv(name, raising=False)
