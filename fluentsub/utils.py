"""Utility functions for FluentSub."""

import os
import logging
from .exceptions import FileSystemError

logger = logging.getLogger(__name__)

# Speech service offsets are reported in 100-nanosecond ticks.
TICKS_PER_MILLISECOND = 10_000

def ensure_dir_exists(dir_path: str) -> None:
    """
    Ensures that a directory exists. Creates it if it doesn't.

    Args:
        dir_path: The path to the directory.

    Raises:
        FileSystemError: If the directory cannot be created due to permissions
                         or if the path exists but is not a directory.
    """
    if not dir_path:
        raise ValueError("Directory path cannot be empty.")
    try:
        if not os.path.exists(dir_path):
            os.makedirs(dir_path)
            logger.info(f"Created directory: {dir_path}")
        elif not os.path.isdir(dir_path):
            raise FileSystemError(f"Path exists but is not a directory: {dir_path}")
    except OSError as e:
        logger.error(f"Error creating or accessing directory {dir_path}: {e}", exc_info=True)
        raise FileSystemError(f"Could not create or access directory {dir_path}: {e}") from e

def ticks_to_ms(ticks: int) -> int:
    """Converts a 100ns tick count into whole milliseconds."""
    return int(ticks) // TICKS_PER_MILLISECOND

def format_time_srt(milliseconds: int) -> str:
    """
    Formats milliseconds into SRT time format HH:MM:SS,ms.

    Args:
        milliseconds: Time in milliseconds.

    Returns:
        Formatted time string.
    """
    if milliseconds < 0:
        milliseconds = 0 # Ensure non-negative time
    milliseconds = int(milliseconds)
    hrs = milliseconds // 3600000
    milliseconds %= 3600000
    mins = milliseconds // 60000
    milliseconds %= 60000
    secs = milliseconds // 1000
    milliseconds %= 1000
    return f"{hrs:02d}:{mins:02d}:{secs:02d},{milliseconds:03d}"
