"""Common contract for Speech-to-Text backends."""

import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Optional

from .models import SubtitleResult
from .exceptions import TranscriptionError

logger = logging.getLogger(__name__)

class Transcriber(ABC):
    """Abstract base class for transcription services."""

    @abstractmethod
    async def transcribe(
        self,
        audio_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> SubtitleResult:
        """
        Transcribes the given audio file.

        Args:
            audio_path: Path to a fully written audio file.
            cancel_event: Optional cooperative cancellation signal.

        Returns:
            The recognized tokens in the order the backend reported them.

        Raises:
            TranscriptionError: If transcription fails or is cancelled.
        """
        pass

def read_audio(audio_path: str) -> bytes:
    """Reads the whole audio file into memory."""
    if not os.path.exists(audio_path):
        raise TranscriptionError(FileNotFoundError(f"Audio file not found: {audio_path}"))
    try:
        with open(audio_path, "rb") as f:
            data = f.read()
    except OSError as e:
        logger.error(f"Could not read audio file {audio_path}: {e}", exc_info=True)
        raise TranscriptionError(e) from e
    logger.debug(f"Read {len(data)} bytes of audio from {audio_path}")
    return data
