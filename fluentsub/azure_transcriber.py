"""Handles Speech-to-Text transcription with the Azure Speech SDK.

The SDK delivers results through callbacks on its own threads. They are
forwarded into a bounded asyncio queue of typed events and consumed by a
single collector loop that stops at the first terminal event.

Blocking SDK calls run on daemon threads rather than the loop's executor,
so a call abandoned after a timeout or cancellation cannot hold up
`asyncio.run` at shutdown.
"""

import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .cancel import CANCEL_CHECK_INTERVAL, is_cancelled
from .config_loader import AppConfig
from .exceptions import ConfigurationError, TranscriptionError
from .models import DEFAULT_SEGMENT_SCORE, SINGLE_SHOT_SCORE, SubtitleResult, SubtitleToken
from .transcriber import Transcriber, read_audio
from .utils import ticks_to_ms

logger = logging.getLogger(__name__)

EVENT_QUEUE_SIZE = 4096
SINGLE_SHOT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class SegmentRecognized:
    text: str
    offset: int
    duration: int
    confidence: Optional[float] = None


@dataclass(frozen=True)
class SessionStopped:
    pass


@dataclass(frozen=True)
class RecognitionCanceled:
    reason: str
    error_details: str = ""

    def __str__(self) -> str:
        return f"{self.reason}: {self.error_details}" if self.error_details else self.reason


RecognitionEvent = Union[SegmentRecognized, SessionStopped, RecognitionCanceled]


def _enum_name(value: Any) -> str:
    return getattr(value, "name", str(value))


def _confidence(result: Any) -> Optional[float]:
    """Best-candidate confidence from the detailed JSON result, if present."""
    raw = getattr(result, "json", None)
    if not raw:
        return None
    try:
        best = json.loads(raw).get("NBest") or []
        return float(best[0]["Confidence"]) if best else None
    except (ValueError, KeyError, TypeError, AttributeError):
        logger.debug("Recognition result carried no usable confidence")
        return None


def segment_from_event(evt: Any) -> SegmentRecognized:
    result = evt.result
    return SegmentRecognized(
        text=result.text or "",
        offset=int(result.offset),
        duration=int(result.duration),
        confidence=_confidence(result),
    )


def canceled_from_event(evt: Any) -> RecognitionCanceled:
    details = getattr(evt, "cancellation_details", None) or getattr(evt.result, "cancellation_details", None)
    if details is None:
        return RecognitionCanceled(reason="Canceled")
    return RecognitionCanceled(
        reason=_enum_name(details.reason),
        error_details=getattr(details, "error_details", "") or "",
    )


def call_in_thread(func: Callable[..., Any], *args: Any) -> "asyncio.Future":
    """
    Runs a blocking call on a daemon thread and returns an awaitable future.

    Cancelling the returned future abandons the call: the thread keeps
    running to completion, but its outcome is discarded and it never
    keeps the interpreter or the event loop alive.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def _settle(result: Any, error: Optional[BaseException]) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def _target() -> None:
        try:
            outcome = (func(*args), None)
        except Exception as e:
            outcome = (None, e)
        try:
            loop.call_soon_threadsafe(_settle, *outcome)
        except RuntimeError:
            # Event loop already closed; nobody is waiting any more.
            logger.debug(f"Discarding result of abandoned speech SDK call {func!r}")

    threading.Thread(target=_target, name="speech-sdk-call", daemon=True).start()
    return future


class EventChannel:
    """Bounded queue of recognition events that fails loudly on overflow."""

    def __init__(self, maxsize: int):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.overflowed = False

    def offer(self, event: RecognitionEvent) -> None:
        if self.overflowed:
            return
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.overflowed = True
            logger.error(f"Recognition event queue full at {self.queue.maxsize} events, dropped {type(event).__name__}")

    async def get(self, cancel_event: Optional[threading.Event]) -> RecognitionEvent:
        while True:
            if is_cancelled(cancel_event):
                logger.warning("Speech recognition cancelled by caller; discarding partial results")
                raise TranscriptionError("aborted")
            if self.overflowed:
                raise TranscriptionError(f"recognition event queue overflowed ({self.queue.maxsize} events)")
            try:
                return await asyncio.wait_for(self.queue.get(), timeout=CANCEL_CHECK_INTERVAL)
            except asyncio.TimeoutError:
                continue


class AzureSpeechTranscriber(Transcriber):
    """Implements transcription using Azure continuous speech recognition."""

    def __init__(self, config: AppConfig, recognizer_factory: Optional[Callable[[bytes], Any]] = None):
        """
        Initializes the AzureSpeechTranscriber.

        Args:
            config: Resolved application config; must carry the speech key and region.
            recognizer_factory: Optional callable building a recognizer from the
                                raw audio bytes. Defaults to an SDK recognizer
                                reading from a push stream.

        Raises:
            ConfigurationError: If the key or region is missing.
        """
        if not config.azure_speech_key or not config.azure_speech_region:
            raise ConfigurationError("Azure speech key and region must both be configured.")
        self.key = config.azure_speech_key
        self.region = config.azure_speech_region
        self.language = config.language
        self.recognizer_factory = recognizer_factory or self._create_recognizer
        logger.info(f"Initializing AzureSpeechTranscriber for region '{self.region}' (language {self.language})")

    def _create_recognizer(self, audio: bytes):
        import azure.cognitiveservices.speech as speechsdk

        speech_config = speechsdk.SpeechConfig(subscription=self.key, region=self.region)
        speech_config.speech_recognition_language = self.language
        speech_config.output_format = speechsdk.OutputFormat.Detailed

        stream = speechsdk.audio.PushAudioInputStream()
        stream.write(audio)
        stream.close() # Signals end of input
        audio_config = speechsdk.audio.AudioConfig(stream=stream)
        return speechsdk.SpeechRecognizer(speech_config=speech_config, audio_config=audio_config)

    async def transcribe(
        self,
        audio_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> SubtitleResult:
        """
        Transcribes the audio file with continuous recognition.

        Args:
            audio_path: Path to the audio file (WAV).
            cancel_event: Optional cooperative cancellation signal.

        Returns:
            One token per finalized utterance. Partial results are discarded
            on cancellation.

        Raises:
            TranscriptionError: If the backend cancels with an error, sends an
                                unusable event, the call fails, or the caller cancels.
        """
        logger.info(f"Starting transcription for: {audio_path}")
        audio = read_audio(audio_path)
        loop = asyncio.get_running_loop()
        channel = EventChannel(EVENT_QUEUE_SIZE)

        def forward(convert: Callable[[Any], RecognitionEvent], evt: Any) -> None:
            # Runs on an SDK thread.
            try:
                event = convert(evt)
            except Exception as e:
                logger.error(f"Could not interpret speech SDK event: {e}", exc_info=True)
                event = RecognitionCanceled(reason="InvalidEvent", error_details=str(e))
            loop.call_soon_threadsafe(channel.offer, event)

        try:
            recognizer = await call_in_thread(self.recognizer_factory, audio)
            recognizer.recognized.connect(lambda evt: forward(segment_from_event, evt))
            recognizer.session_stopped.connect(lambda evt: forward(lambda _: SessionStopped(), evt))
            recognizer.canceled.connect(lambda evt: forward(canceled_from_event, evt))
            await call_in_thread(lambda: recognizer.start_continuous_recognition_async().get())
        except Exception as e:
            logger.error(f"Could not start speech recognition for {audio_path}: {e}", exc_info=True)
            raise TranscriptionError(e) from e

        try:
            tokens = await self._collect(channel, cancel_event)
        finally:
            await self._stop(recognizer)
        logger.info(f"Transcription completed with {len(tokens)} segments.")
        return tokens

    async def _collect(self, channel: EventChannel, cancel_event: Optional[threading.Event]) -> SubtitleResult:
        tokens: SubtitleResult = []
        while True:
            event = await channel.get(cancel_event)
            if isinstance(event, SegmentRecognized):
                start_ms = ticks_to_ms(event.offset)
                try:
                    token = SubtitleToken(
                        id=len(tokens),
                        value=event.text,
                        start_time_ms=start_ms,
                        end_time_ms=ticks_to_ms(event.offset + event.duration),
                        score=DEFAULT_SEGMENT_SCORE if event.confidence is None else event.confidence,
                    )
                except ValueError as e:
                    logger.error(f"Rejected recognized segment {event}: {e}")
                    raise TranscriptionError(e) from e
                tokens.append(token)
                logger.debug(f"Segment {token.id} at {start_ms}ms: '{event.text[:50]}'")
            elif isinstance(event, SessionStopped):
                return tokens
            elif isinstance(event, RecognitionCanceled):
                if event.reason == "EndOfStream":
                    # The push stream was drained; session_stopped follows.
                    logger.debug("Recognizer reached end of audio stream")
                    continue
                logger.error(f"Speech recognition canceled: {event}")
                raise TranscriptionError(event)

    async def _stop(self, recognizer) -> None:
        try:
            await call_in_thread(lambda: recognizer.stop_continuous_recognition_async().get())
        except Exception as e:
            # Must not mask the error that ended the collector.
            logger.warning(f"Could not stop speech recognition cleanly: {e}", exc_info=False)

    async def recognize_once(
        self,
        audio_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> SubtitleResult:
        """
        Recognizes a single utterance from the audio file.

        The backend reports no confidence in this mode, so the token gets
        the fixed SINGLE_SHOT_SCORE.

        Raises:
            TranscriptionError: If no result arrives within 30 seconds, the
                                result reason is not RecognizedSpeech, or the
                                caller cancels.
        """
        logger.info(f"Starting single-shot recognition for: {audio_path}")
        audio = read_audio(audio_path)
        loop = asyncio.get_running_loop()
        try:
            recognizer = await call_in_thread(self.recognizer_factory, audio)
        except Exception as e:
            raise TranscriptionError(e) from e
        pending = call_in_thread(lambda: recognizer.recognize_once_async().get())

        deadline = loop.time() + SINGLE_SHOT_TIMEOUT_SECONDS
        while True:
            done, _ = await asyncio.wait({pending}, timeout=CANCEL_CHECK_INTERVAL)
            if done:
                break
            if is_cancelled(cancel_event):
                pending.cancel()
                raise TranscriptionError("aborted")
            if loop.time() >= deadline:
                pending.cancel()
                logger.error(f"No recognition result within {SINGLE_SHOT_TIMEOUT_SECONDS:.0f}s")
                raise TranscriptionError(f"timed out after {SINGLE_SHOT_TIMEOUT_SECONDS:.0f}s")

        try:
            result = pending.result()
        except Exception as e:
            raise TranscriptionError(e) from e

        reason = _enum_name(result.reason)
        if reason != "RecognizedSpeech":
            details = getattr(result, "cancellation_details", None)
            suffix = f" ({details.error_details})" if details is not None and getattr(details, "error_details", None) else ""
            raise TranscriptionError(f"Speech recognition failed: {reason}{suffix}")

        return [SubtitleToken(
            id=0,
            value=result.text or "",
            start_time_ms=ticks_to_ms(result.offset),
            end_time_ms=ticks_to_ms(result.offset + result.duration),
            score=SINGLE_SHOT_SCORE,
        )]
