#!/usr/bin/env python3
"""
FluentSub Batch Processing Entry Point

Processes every video URL listed in a text file (one per line, '#' starts a
comment), writing one subtitle file per video into an output directory.
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from typing import List

# Progress bar library
from tqdm import tqdm

from fluentsub.cli import add_common_arguments, build_components, load_app_config
from fluentsub.cancel import install_signal_handlers, new_cancel_event
from fluentsub.exceptions import ConfigurationError, FileSystemError, FluentSubError
from fluentsub.log_setup import setup_logging
from fluentsub.models import validate_url
from fluentsub.pipeline import SubtitlePipeline
from fluentsub.subtitle_formatter import get_formatter
from fluentsub.utils import ensure_dir_exists

# Initialize logger for this script
logger = logging.getLogger(__name__)

def read_url_list(input_file: str) -> List[str]:
    """
    Reads video URLs from a text file, skipping blank lines and comments.

    Args:
        input_file: Path to the URL list.

    Returns:
        The URLs in file order, duplicates removed.

    Raises:
        FileNotFoundError: If the input file doesn't exist.
    """
    if not os.path.isfile(input_file):
        raise FileNotFoundError(f"URL list not found: {input_file}")

    urls = []
    with open(input_file, 'r', encoding='utf-8') as f:
        for line in f:
            url = line.split('#', 1)[0].strip()
            if url and url not in urls:
                urls.append(url)
    logger.info(f"Read {len(urls)} URLs from {input_file}")
    return urls


def output_name(url: str, extension: str) -> str:
    """Names the subtitle file after the video id, falling back to a timestamp."""
    try:
        return f"{validate_url(url).video_id}.{extension}"
    except FluentSubError:
        return f"invalid_{int(time.time() * 1000)}.{extension}"


def run_batch_processing():
    """Parses arguments, sets up, and runs the batch subtitle generation."""
    parser = argparse.ArgumentParser(
        description="FluentSub Batch: Generate subtitles for every URL listed in a file.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "-i", "--input-file",
        required=True,
        help="Text file with one video URL per line."
    )
    parser.add_argument(
        "-d", "--output-dir",
        required=True,
        help="Directory to save the generated subtitle files."
    )
    add_common_arguments(parser)
    args = parser.parse_args()

    # --- Setup Logging (Initial) ---
    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    setup_logging(log_level=log_level, log_dir=None)

    # --- Load Configuration ---
    try:
        config = load_app_config(args.config, {
            "backend": args.backend,
            "output_format": args.format,
            "yt_dlp_path": args.yt_dlp_path,
        })
    except (ConfigurationError, FileNotFoundError) as e:
        logger.critical(f"Failed to load configuration: {e}", exc_info=True)
        sys.exit(1)

    # --- Re-configure Logging (Final) ---
    setup_logging(log_level=log_level, log_dir=config.log_dir, log_file='fluentsub_batch.log')
    logger.info("Logging re-configured with settings from config file for batch processing.")

    try:
        urls = read_url_list(args.input_file)
        ensure_dir_exists(args.output_dir)
    except (FileNotFoundError, FileSystemError) as e:
        logger.critical(f"Input/output error: {e}")
        sys.exit(1)
    if not urls:
        logger.warning(f"No URLs found in {args.input_file}. Exiting.")
        sys.exit(0)

    # --- Initialize Components (ONCE) ---
    try:
        formatter = get_formatter(config.output_format)
        audio_acquirer, transcriber = build_components(config)
        pipeline = SubtitlePipeline(audio_acquirer=audio_acquirer, transcriber=transcriber)
    except FluentSubError as e:
        logger.critical(f"Failed to initialize FluentSub components: {e}", exc_info=True)
        sys.exit(1)

    cancel_event = new_cancel_event()
    install_signal_handlers(cancel_event)

    # --- Process URLs Sequentially ---
    total = len(urls)
    succeeded = 0
    failed = 0
    batch_start_time = time.time()
    logger.info(f"--- Starting Batch Subtitle Generation for {total} URLs ---")

    with tqdm(total=total, unit="video", desc="Starting Batch") as pbar:
        for url in urls:
            if cancel_event.is_set():
                logger.warning("Batch cancelled; skipping remaining URLs.")
                break
            pbar.set_description(f"Processing: {url[-30:]}")
            output_path = os.path.join(args.output_dir, output_name(url, formatter.extension))
            try:
                result = asyncio.run(pipeline.run(url, cancel_event))
                formatter.write(result, output_path)
                succeeded += 1
            except FluentSubError as e:
                logger.error(f"FluentSub failed for '{url}': {e}")
                failed += 1
            finally:
                pbar.update(1) # Increment progress bar regardless of success/failure

    logger.info(f"--- Batch Subtitle Generation Finished ---")
    logger.info(f"Total time: {time.time() - batch_start_time:.2f} seconds")
    logger.info(f"Successfully processed: {succeeded}/{total} URLs")
    logger.info(f"Failed: {failed}/{total} URLs")

    sys.exit(1 if failed or succeeded < total else 0)


if __name__ == "__main__":
    run_batch_processing()
