"""Acquires a local WAV audio track for a video URL using yt-dlp."""

import asyncio
import logging
import os
import threading
from typing import Optional, Sequence

from .cancel import CANCEL_CHECK_INTERVAL, is_cancelled
from .exceptions import DownloadError
from .models import SourceUrl

logger = logging.getLogger(__name__)

AUDIO_FORMAT = "wav"
STDERR_TAIL_CHARS = 2000


async def terminate_process(
    process: asyncio.subprocess.Process,
    *,
    terminate_grace_seconds: float = 3.0,
) -> None:
    """Terminate a subprocess and escalate to kill if needed."""
    if process.returncode is not None:
        return

    try:
        process.terminate()
    except ProcessLookupError:
        return

    try:
        await asyncio.wait_for(process.wait(), timeout=terminate_grace_seconds)
        return
    except (asyncio.TimeoutError, ProcessLookupError):
        pass

    try:
        process.kill()
    except ProcessLookupError:
        return

    try:
        await process.wait()
    except ProcessLookupError:
        pass


class YtDlpAudioAcquirer:
    """Downloads the audio track of a video as a WAV file."""

    def __init__(
        self,
        yt_dlp_path: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        terminate_grace_seconds: float = 3.0,
        extra_args: Sequence[str] = (),
    ):
        """
        Initializes the YtDlpAudioAcquirer.

        Args:
            yt_dlp_path: Optional path to the yt-dlp executable.
                         If None, assumes yt-dlp is in the system PATH.
            timeout_seconds: Optional ceiling on a single download. None waits forever.
            terminate_grace_seconds: How long to wait after SIGTERM before killing.
            extra_args: Additional yt-dlp arguments appended after the standard ones.
        """
        self.yt_dlp_cmd = yt_dlp_path or "yt-dlp"
        self.timeout_seconds = timeout_seconds
        self.terminate_grace_seconds = terminate_grace_seconds
        self.extra_args = list(extra_args)
        logger.info(f"Using yt-dlp command: {self.yt_dlp_cmd}")

    def build_command(self, url: SourceUrl, output_path: str) -> list:
        return [
            self.yt_dlp_cmd,
            url,
            "-x",
            "--audio-format", AUDIO_FORMAT,
            "-o", output_path,
            *self.extra_args,
        ]

    async def get_audio(
        self,
        url: SourceUrl,
        output_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """
        Runs yt-dlp to extract the audio of `url` into `output_path`.

        Args:
            url: A validated video URL.
            output_path: Reserved path the WAV file should be written to.
            cancel_event: Optional cooperative cancellation signal.

        Returns:
            `output_path`, once yt-dlp has exited successfully.

        Raises:
            DownloadError: If yt-dlp cannot be started, exits non-zero,
                           times out, or the caller cancels.
        """
        cmd = self.build_command(url, output_path)
        logger.info(f"Running yt-dlp to extract audio of {url} to {output_path}...")
        logger.debug(f"yt-dlp command: {cmd}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Could not start yt-dlp ({self.yt_dlp_cmd}): {e}", exc_info=True)
            raise DownloadError(e) from e

        stderr_task = asyncio.ensure_future(process.stderr.read())
        try:
            returncode = await self._wait_for_exit(process, cancel_event)
        except BaseException:
            stderr_task.cancel()
            await terminate_process(process, terminate_grace_seconds=self.terminate_grace_seconds)
            raise

        stderr_output = (await stderr_task).decode("utf-8", errors="replace")
        if returncode != 0:
            logger.error(f"yt-dlp exited with code {returncode} for {url}")
            logger.error(f"yt-dlp stderr: {stderr_output[-STDERR_TAIL_CHARS:] or 'No stderr output'}")
            raise DownloadError(returncode)

        if not os.path.exists(output_path):
            logger.warning(f"yt-dlp reported success but {output_path} does not exist")
        logger.info(f"Successfully extracted audio to: {output_path}")
        return output_path

    async def _wait_for_exit(
        self,
        process: asyncio.subprocess.Process,
        cancel_event: Optional[threading.Event],
    ) -> int:
        loop = asyncio.get_running_loop()
        deadline = None if self.timeout_seconds is None else loop.time() + self.timeout_seconds
        wait_task = asyncio.ensure_future(process.wait())
        try:
            while True:
                done, _ = await asyncio.wait({wait_task}, timeout=CANCEL_CHECK_INTERVAL)
                if done:
                    return wait_task.result()
                if is_cancelled(cancel_event):
                    logger.warning("Audio download cancelled; terminating yt-dlp")
                    raise DownloadError("aborted")
                if deadline is not None and loop.time() >= deadline:
                    logger.error(f"yt-dlp did not finish within {self.timeout_seconds:.1f}s")
                    raise DownloadError(f"timed out after {self.timeout_seconds:.1f}s")
        finally:
            if not wait_task.done():
                wait_task.cancel()

