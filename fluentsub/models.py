"""Data models for FluentSub."""

import re
from dataclasses import dataclass
from typing import List

from .exceptions import InvalidUrlError

# Fallback confidence values used when the recognizer reports none.
DEFAULT_SEGMENT_SCORE = 0.8
SINGLE_SHOT_SCORE = 0.5

VIDEO_URL_PATTERN = re.compile(
    r"^https?://(www\.)?(youtube\.com/watch\?v=|youtu\.be/)[A-Za-z0-9_-]{11}.*$"
)


@dataclass(frozen=True)
class SubtitleToken:
    """One recognized utterance segment, times in milliseconds."""
    id: int
    value: str
    start_time_ms: int
    end_time_ms: int
    score: float

    def __post_init__(self):
        if self.id < 0:
            raise ValueError(f"Token id must be non-negative, got {self.id}")
        if self.end_time_ms < self.start_time_ms:
            raise ValueError(
                f"Token {self.id} ends before it starts ({self.start_time_ms} > {self.end_time_ms})"
            )
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"Token {self.id} score out of range: {self.score}")

    def to_dict(self) -> dict:
        """Returns the token in its published (camelCase) shape."""
        return {
            "id": self.id,
            "value": self.value,
            "startTimeMs": self.start_time_ms,
            "endTimeMs": self.end_time_ms,
            "score": self.score,
        }


SubtitleResult = List[SubtitleToken]


class SourceUrl(str):
    """A video URL that has passed validation. Build it with `validate_url`."""

    @property
    def video_id(self) -> str:
        marker = "watch?v=" if "watch?v=" in self else "youtu.be/"
        return self.split(marker, 1)[1][:11]


def validate_url(raw_url: str) -> SourceUrl:
    """
    Checks a raw string against the supported video URL grammar.

    Args:
        raw_url: The URL as given by the user.

    Returns:
        The URL wrapped as a SourceUrl.

    Raises:
        InvalidUrlError: If the string does not match the grammar.
    """
    if isinstance(raw_url, SourceUrl):
        return raw_url
    candidate = (raw_url or "").strip()
    if not VIDEO_URL_PATTERN.match(candidate):
        raise InvalidUrlError(raw_url)
    return SourceUrl(candidate)


def result_to_dicts(result: SubtitleResult) -> List[dict]:
    return [token.to_dict() for token in result]
