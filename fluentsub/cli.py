"""Command-Line Interface handler for FluentSub."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional, Tuple

from .config_loader import AppConfig, ConfigLoader
from .log_setup import setup_logging
from .audio_acquirer import YtDlpAudioAcquirer
from .transcriber import Transcriber
from .assemblyai_transcriber import AssemblyAITranscriber
from .azure_transcriber import AzureSpeechTranscriber
from .subtitle_formatter import get_formatter
from .pipeline import SubtitlePipeline
from .cancel import install_signal_handlers, new_cancel_event
from .exceptions import FluentSubError, ConfigurationError

logger = logging.getLogger(__name__) # Get logger for this module

DEFAULT_CONFIG_PATH = "config.yaml"
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def build_components(config: AppConfig) -> Tuple[YtDlpAudioAcquirer, Transcriber]:
    """Creates the audio acquirer and the transcriber selected by `config.backend`."""
    config.require_credentials()
    audio_acquirer = YtDlpAudioAcquirer(
        yt_dlp_path=config.yt_dlp_path,
        timeout_seconds=config.download_timeout,
    )
    if config.backend == "azure":
        transcriber = AzureSpeechTranscriber(config)
    else:
        transcriber = AssemblyAITranscriber(config)
    return audio_acquirer, transcriber


def load_app_config(config_path: str, overrides: dict) -> AppConfig:
    """Loads the config file (optional when it is the default path) and applies CLI overrides."""
    config_loader = ConfigLoader()
    config = config_loader.load_config(config_path, required=config_path != DEFAULT_CONFIG_PATH)
    return config.with_overrides(**overrides)


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config",
        default=DEFAULT_CONFIG_PATH,
        help="Path to the configuration YAML file. Optional unless given explicitly."
    )
    parser.add_argument(
        "--backend",
        default=None, # Default taken from config
        choices=["assemblyai", "azure"],
        help="Override the transcription backend specified in config."
    )
    parser.add_argument(
        "--format",
        default=None, # Default taken from config
        choices=["json", "srt"],
        help="Override the output format specified in config."
    )
    parser.add_argument(
        "--yt-dlp-path",
        default=None,
        help="Path to the yt-dlp executable (defaults to the one on PATH)."
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=LOG_LEVELS,
        help="Set the logging level for console and file output."
    )


class CLIHandler:
    """Parses arguments and orchestrates the FluentSub process."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            description="FluentSub: Generate timed subtitle tokens for a YouTube video.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter # Show defaults in help
        )
        parser.add_argument(
            "url",
            help="YouTube video URL (youtube.com/watch?v=... or youtu.be/...)."
        )
        parser.add_argument(
            "-o", "--output",
            default=None,
            help="Also write the subtitles to this file."
        )
        add_common_arguments(parser)
        return parser

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Parses arguments, sets up logging, loads config, and runs the pipeline."""
        args = self.parser.parse_args(argv)

        # --- Setup Logging ---
        log_level = getattr(logging, args.log_level.upper(), logging.INFO)
        # Console only until the config tells us where log files go
        setup_logging(log_level=log_level, log_dir=None)

        # --- Load Configuration ---
        try:
            config = load_app_config(args.config, {
                "backend": args.backend,
                "output_format": args.format,
                "yt_dlp_path": args.yt_dlp_path,
            })
        except ConfigurationError as e:
            logger.critical(f"Failed to load configuration from {args.config}: {e}", exc_info=True)
            sys.exit(1)
        except FileNotFoundError:
             logger.critical(f"Configuration file not found: {args.config}", exc_info=True)
             sys.exit(1)

        # --- Re-configure Logging with settings from Config ---
        setup_logging(log_level=log_level, log_dir=config.log_dir, log_file=config.log_file)
        logger.info("Logging re-configured with settings from config file.")

        # --- Instantiate Components ---
        try:
            logger.info(f"Initializing FluentSub components (backend: {config.backend})...")
            formatter = get_formatter(config.output_format)
            audio_acquirer, transcriber = build_components(config)
            pipeline = SubtitlePipeline(
                audio_acquirer=audio_acquirer,
                transcriber=transcriber,
                progress=lambda message: print(message, flush=True),
                formatter=formatter,
            )
            logger.info("Components initialized successfully.")

            cancel_event = new_cancel_event()
            install_signal_handlers(cancel_event)

            # --- Run Pipeline ---
            result = asyncio.run(pipeline.run(args.url, cancel_event))
            if args.output:
                formatter.write(result, args.output)
            logger.info("FluentSub finished successfully.")
            sys.exit(0)

        except FluentSubError as e:
             # Catch errors originating from our application logic
             logger.error(f"A FluentSub error occurred ({type(e).__name__}): {e}")
             sys.exit(1)
        except KeyboardInterrupt:
             logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
             sys.exit(1)
        except Exception as e:
             # Catch any other unexpected errors
             logger.critical(f"An unexpected critical error occurred at the top level: {e}", exc_info=True)
             sys.exit(2) # Use a different exit code for unexpected crashes
