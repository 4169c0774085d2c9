"""Orchestrates the URL to subtitle pipeline."""

import enum
import logging
import threading
import time
from typing import Callable, Optional

from .audio_acquirer import AUDIO_FORMAT, YtDlpAudioAcquirer
from .exceptions import FluentSubError
from .models import SubtitleResult, validate_url
from .subtitle_formatter import JSONFormatter, SubtitleFormatter
from .temp_resource import temporary_resource
from .transcriber import Transcriber

logger = logging.getLogger(__name__)


class PipelineState(enum.Enum):
    VALIDATING = "validating"
    ACQUIRING = "acquiring"
    TRANSCRIBING = "transcribing"
    DONE = "done"
    FAILED = "failed"


class SubtitlePipeline:
    """
    Manages the end-to-end process of turning a video URL into subtitle tokens.

    Each stage runs exactly once and strictly in order. The temporary audio
    file belongs to this pipeline run and is removed before `run` returns,
    whatever the outcome.
    """

    def __init__(
        self,
        audio_acquirer: YtDlpAudioAcquirer,
        transcriber: Transcriber,
        progress: Optional[Callable[[str], None]] = None,
        formatter: Optional[SubtitleFormatter] = None,
    ):
        """
        Initializes the SubtitlePipeline.

        Args:
            audio_acquirer: Downloads the audio track into a given path.
            transcriber: Any Transcriber implementation.
            progress: Optional callback receiving informational messages and,
                      last, the rendered result. Has no effect on control flow.
            formatter: Renders the final result for `progress`. Defaults to JSON.
        """
        self.audio_acquirer = audio_acquirer
        self.transcriber = transcriber
        self.progress = progress
        self.formatter = formatter or JSONFormatter()
        self.state = PipelineState.VALIDATING
        self.failure: Optional[BaseException] = None

    def _emit(self, message: str) -> None:
        if self.progress is not None:
            self.progress(message)

    async def run(self, raw_url: str, cancel_event: Optional[threading.Event] = None) -> SubtitleResult:
        """
        Executes the full pipeline for a single URL.

        Args:
            raw_url: The URL as supplied by the user.
            cancel_event: Optional cooperative cancellation signal shared by all stages.

        Returns:
            The recognized tokens.

        Raises:
            InvalidUrlError: If the URL fails validation (nothing is acquired).
            DownloadError: If audio acquisition fails or is cancelled.
            TranscriptionError: If transcription fails or is cancelled.
            FluentSubError: For unexpected failures, wrapped.
        """
        start_time = time.time()
        self.state = PipelineState.VALIDATING
        self.failure = None
        try:
            url = validate_url(raw_url)
            logger.info(f"--- Starting FluentSub process for: {url} ---")
            self._emit(f"Processing URL: {url}")

            logger.info("Step 1: Downloading audio...")
            self.state = PipelineState.ACQUIRING
            with temporary_resource(AUDIO_FORMAT) as reserved_path:
                audio_path = await self.audio_acquirer.get_audio(url, reserved_path, cancel_event)
                self._emit(f"Audio downloaded to: {audio_path}")

                logger.info("Step 2: Transcribing audio...")
                self.state = PipelineState.TRANSCRIBING
                result = await self.transcriber.transcribe(audio_path, cancel_event)
            self.state = PipelineState.DONE

        except FluentSubError as e:
            self.failure = e
            logger.error(f"FluentSub process failed during {self.state.value}: {e}", exc_info=False) # No stack needed for expected errors
            self.state = PipelineState.FAILED
            raise
        except Exception as e:
            self.failure = e
            logger.critical(f"An unexpected critical error occurred during {self.state.value}: {e}", exc_info=True)
            self.state = PipelineState.FAILED
            raise FluentSubError(f"An unexpected critical error occurred: {e}") from e
        finally:
            if self.state is not PipelineState.DONE:
                self.state = PipelineState.FAILED

        logger.info(f"--- FluentSub process completed with {len(result)} tokens in {time.time() - start_time:.2f} seconds ---")
        self._emit(self.formatter.render(result))
        return result
