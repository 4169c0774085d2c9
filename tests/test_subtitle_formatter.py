"""Tests for JSON and SRT rendering."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from fluentsub.exceptions import FormattingError
from fluentsub.models import SubtitleToken
from fluentsub.subtitle_formatter import JSONFormatter, SRTFormatter, get_formatter
from fluentsub.utils import format_time_srt, ticks_to_ms

TOKENS = [
    SubtitleToken(id=0, value="hello", start_time_ms=0, end_time_ms=5, score=0.8),
    SubtitleToken(id=1, value="  ", start_time_ms=5, end_time_ms=10, score=0.1),
    SubtitleToken(id=2, value="world", start_time_ms=3_723_004, end_time_ms=3_724_000, score=0.9),
]


def test_json_formatter_renders_token_dicts() -> None:
    rendered = JSONFormatter().render(TOKENS)
    assert json.loads(rendered)[2] == {
        "id": 2, "value": "world", "startTimeMs": 3_723_004, "endTimeMs": 3_724_000, "score": 0.9
    }
    assert rendered.startswith("[\n  {")


def test_srt_formatter_skips_blank_tokens_and_renumbers() -> None:
    assert SRTFormatter().render(TOKENS) == (
        "1\n00:00:00,000 --> 00:00:00,005\nhello\n"
        "\n"
        "2\n01:02:03,004 --> 01:02:04,000\nworld\n"
    )


def test_write_creates_utf8_file(tmp_path: Path) -> None:
    path = tmp_path / "out.json"
    JSONFormatter().write([SubtitleToken(0, "grüße", 0, 1, 0.5)], str(path))
    assert "grüße" in path.read_text(encoding="utf-8")


def test_write_failure_raises_formatting_error(tmp_path: Path) -> None:
    with pytest.raises(FormattingError):
        JSONFormatter().write(TOKENS, str(tmp_path / "missing-dir" / "out.json"))


def test_get_formatter() -> None:
    assert isinstance(get_formatter("SRT"), SRTFormatter)
    with pytest.raises(FormattingError):
        get_formatter("vtt")


def test_time_helpers() -> None:
    assert ticks_to_ms(50_000) == 5
    assert ticks_to_ms(9_999) == 0
    assert format_time_srt(-5) == "00:00:00,000"
