"""Reserves uniquely named temporary files and guarantees their removal."""

import itertools
import logging
import os
import tempfile
import time
from contextlib import contextmanager
from typing import Iterator

from .exceptions import ResourceError

logger = logging.getLogger(__name__)

FILE_PREFIX = "fluentsub"

_PROCESS_START_MS = int(time.time() * 1000)
_sequence = itertools.count()


def _temp_root() -> str:
    try:
        return os.path.realpath(tempfile.gettempdir())
    except OSError as e:
        raise ResourceError(f"Could not resolve the system temp directory: {e}") from e


def acquire(extension: str) -> str:
    """
    Reserves a unique path in the real system temp directory.

    The file itself is not created; whoever writes to the path owns its
    contents until `release` is called.

    Args:
        extension: File extension without the leading dot (e.g. "wav").

    Returns:
        Absolute path of the reserved file name.

    Raises:
        ResourceError: If the temp directory cannot be resolved.
    """
    name = f"{FILE_PREFIX}-{_PROCESS_START_MS}-{os.getpid()}-{next(_sequence)}.{extension.lstrip('.')}"
    path = os.path.join(_temp_root(), name)
    logger.debug(f"Reserved temporary file: {path}")
    return path


def release(path: str) -> None:
    """Deletes the file at `path` if present. Never raises."""
    try:
        os.remove(path)
        logger.info(f"Cleaned up temporary file: {path}")
    except FileNotFoundError:
        logger.debug(f"Temporary file already gone: {path}")
    except OSError as e:
        logger.warning(f"Could not remove temporary file {path}: {e}", exc_info=False)


@contextmanager
def temporary_resource(extension: str) -> Iterator[str]:
    """Acquires a temporary path and releases it exactly once on scope exit."""
    path = acquire(extension)
    try:
        yield path
    finally:
        release(path)
