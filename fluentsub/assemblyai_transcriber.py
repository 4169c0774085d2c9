"""Handles Speech-to-Text transcription with the AssemblyAI REST API."""

import asyncio
import functools
import logging
import threading
from typing import Any, Dict, List, Optional

import requests

from .cancel import is_cancelled, wait_for_cancel
from .config_loader import AppConfig
from .exceptions import ConfigurationError, TranscriptionError
from .models import DEFAULT_SEGMENT_SCORE, SubtitleResult, SubtitleToken
from .transcriber import Transcriber, read_audio

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"


class AssemblyAITranscriber(Transcriber):
    """Uploads audio, submits a transcription job and polls it to completion."""

    def __init__(
        self,
        config: AppConfig,
        session: Optional[requests.Session] = None,
        poll_interval: Optional[float] = None,
        max_poll_seconds: Optional[float] = None,
    ):
        """
        Initializes the AssemblyAITranscriber.

        Args:
            config: Resolved application config; must carry `assemblyai_key`.
            session: Optional requests session (one is created if omitted).
            poll_interval: Seconds between status checks. Defaults to config.
            max_poll_seconds: Ceiling on total polling time. Defaults to config.

        Raises:
            ConfigurationError: If the API key is missing.
        """
        if not config.assemblyai_key:
            raise ConfigurationError("AssemblyAI API key is not configured (ASSEMBLYAI_KEY).")
        self.api_key = config.assemblyai_key
        self.base_url = config.assemblyai_base_url.rstrip("/")
        self.speech_model = config.speech_model
        self.request_timeout = config.request_timeout
        self.poll_interval = config.poll_interval if poll_interval is None else poll_interval
        self.max_poll_seconds = config.max_poll_seconds if max_poll_seconds is None else max_poll_seconds
        self.session = session or requests.Session()
        logger.info(f"Initializing AssemblyAITranscriber against {self.base_url} (model '{self.speech_model}')")

    async def transcribe(
        self,
        audio_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> SubtitleResult:
        """
        Transcribes the audio file through upload, submit and poll.

        Args:
            audio_path: Path to the audio file.
            cancel_event: Optional cooperative cancellation signal, checked
                          before each poll request.

        Returns:
            One token per recognized word.

        Raises:
            TranscriptionError: On transport, parse or backend errors, timeout, or cancellation.
        """
        logger.info(f"Starting transcription for: {audio_path}")
        audio = read_audio(audio_path)
        try:
            logger.info("Uploading audio to AssemblyAI...")
            upload = await self._run(self._request, "POST", "/upload", data=audio,
                                     headers={"Content-Type": "application/octet-stream"})
            upload_url = upload["upload_url"]
            logger.info(f"Upload complete: {upload_url}")

            logger.info("Requesting transcription...")
            job = await self._run(self._request, "POST", "/transcript",
                                  json={"audio_url": upload_url, "speech_model": self.speech_model})
            transcript_id = job["id"]
            logger.info(f"Transcription job submitted: {transcript_id}")

            return await self._poll(transcript_id, cancel_event)
        except TranscriptionError:
            raise
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            logger.error(f"AssemblyAI transcription failed for {audio_path}: {e}", exc_info=True)
            raise TranscriptionError(e) from e

    async def _poll(self, transcript_id: str, cancel_event: Optional[threading.Event]) -> SubtitleResult:
        logger.info("Polling for transcription completion...")
        loop = asyncio.get_running_loop()
        started = loop.time()
        while True:
            if is_cancelled(cancel_event):
                logger.warning(f"Transcription {transcript_id} cancelled while polling")
                raise TranscriptionError("aborted")
            elapsed = loop.time() - started
            if elapsed > self.max_poll_seconds:
                raise TranscriptionError(f"timed out after {elapsed:.0f}s waiting for job {transcript_id}")

            status = await self._run(self._request, "GET", f"/transcript/{transcript_id}")
            state = status.get("status")
            if state == STATUS_COMPLETED:
                tokens = self._to_tokens(status.get("words") or [])
                logger.info(f"Transcription completed with {len(tokens)} words.")
                return tokens
            if state == STATUS_ERROR:
                logger.error(f"AssemblyAI reported an error for {transcript_id}: {status.get('error')}")
                raise TranscriptionError(f"AssemblyAI transcription failed: {status.get('error')}")

            logger.debug(f"Job {transcript_id} status '{state}', next check in {self.poll_interval}s")
            await wait_for_cancel(cancel_event, self.poll_interval)

    @staticmethod
    def _to_tokens(words: List[Dict[str, Any]]) -> SubtitleResult:
        return [
            SubtitleToken(
                id=i,
                value=word.get("text") or "",
                start_time_ms=int(word["start"]),
                end_time_ms=int(word["end"]),
                score=float(word["confidence"]) if word.get("confidence") is not None else DEFAULT_SEGMENT_SCORE,
            )
            for i, word in enumerate(words)
        ]

    def _request(self, method: str, path: str, headers: Optional[dict] = None, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        response = self.session.request(
            method,
            url,
            headers={"authorization": self.api_key, **(headers or {})},
            timeout=self.request_timeout,
            **kwargs,
        )
        if not response.ok:
            raise TranscriptionError(f"{method} {url} returned HTTP {response.status_code}: {response.text[:500]}")
        payload = response.json()
        if not isinstance(payload, dict):
            raise TranscriptionError(f"{method} {url} returned {type(payload).__name__} instead of a JSON object")
        return payload

    @staticmethod
    async def _run(func, *args, **kwargs):
        # requests is blocking; keep the event loop free while it waits.
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
