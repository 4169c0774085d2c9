"""Handles rendering subtitle results as JSON or SRT."""

import json
import logging
from abc import ABC, abstractmethod

from .models import SubtitleResult, result_to_dicts
from .exceptions import FormattingError
from .utils import format_time_srt

logger = logging.getLogger(__name__)

class SubtitleFormatter(ABC):
    """Abstract base class for subtitle formatters."""

    extension = ""

    @abstractmethod
    def render(self, result: SubtitleResult) -> str:
        """
        Renders the tokens as text.

        Args:
            result: The tokens produced by the pipeline.

        Returns:
            The complete document as a string.
        """
        pass

    def write(self, result: SubtitleResult, output_path: str) -> None:
        """
        Renders the result and writes it to `output_path` (UTF-8).

        Raises:
            FormattingError: If writing fails.
        """
        text = self.render(result)
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(text)
            logger.info(f"Successfully wrote {len(result)} subtitle tokens to {output_path}")
        except IOError as e:
            logger.error(f"Failed to write subtitle file to {output_path}: {e}", exc_info=True)
            raise FormattingError(f"Could not write subtitle file: {e}") from e


class JSONFormatter(SubtitleFormatter):
    """Formats the tokens as a pretty-printed JSON array."""

    extension = "json"

    def render(self, result: SubtitleResult) -> str:
        return json.dumps(result_to_dicts(result), indent=2, ensure_ascii=False)


class SRTFormatter(SubtitleFormatter):
    """Formats subtitles into the SRT (SubRip Text) format, one cue per token."""

    extension = "srt"

    def render(self, result: SubtitleResult) -> str:
        blocks = []
        for token in result:
            if not token.value.strip():
                continue
            start = format_time_srt(token.start_time_ms)
            end = format_time_srt(token.end_time_ms)
            blocks.append(f"{len(blocks) + 1}\n{start} --> {end}\n{token.value.strip()}\n")
        logger.debug(f"Rendered {len(blocks)} SRT cues from {len(result)} tokens")
        return "\n".join(blocks)


FORMATTERS = {
    "json": JSONFormatter,
    "srt": SRTFormatter,
}

def get_formatter(name: str) -> SubtitleFormatter:
    """Returns the formatter registered under `name`."""
    try:
        return FORMATTERS[name.lower()]()
    except KeyError:
        raise FormattingError(f"Unsupported output format '{name}'. Choose one of {sorted(FORMATTERS)}.") from None
