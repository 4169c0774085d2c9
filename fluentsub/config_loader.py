"""Handles loading configuration from YAML files and the environment."""

import yaml
import os
import logging
from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

BACKENDS = ("assemblyai", "azure")

# Environment variables take precedence over values from the YAML file.
ENV_OVERRIDES = {
    "ASSEMBLYAI_KEY": "assemblyai_key",
    "AZURE_SPEECH_KEY": "azure_speech_key",
    "AZURE_SPEECH_REGION": "azure_speech_region",
    "FLUENTSUB_BACKEND": "backend",
    "YT_DLP_PATH": "yt_dlp_path",
}

@dataclass(frozen=True)
class AppConfig:
    """Settings resolved once at startup and handed to each component."""
    backend: str = "assemblyai"
    assemblyai_key: Optional[str] = None
    assemblyai_base_url: str = "https://api.assemblyai.com/v2"
    speech_model: str = "universal"
    azure_speech_key: Optional[str] = None
    azure_speech_region: Optional[str] = None
    language: str = "en-US"
    yt_dlp_path: Optional[str] = None
    download_timeout: Optional[float] = None
    request_timeout: float = 60.0
    poll_interval: float = 3.0
    max_poll_seconds: float = 20 * 60
    output_format: str = "json"
    log_dir: str = "logs"
    log_file: str = "fluentsub.log"

    def with_overrides(self, **overrides) -> "AppConfig":
        """Returns a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def require_credentials(self) -> None:
        """
        Checks that the selected backend can be constructed.

        Raises:
            ConfigurationError: If the backend is unknown or its credentials are missing.
        """
        if self.backend not in BACKENDS:
            raise ConfigurationError(f"Unknown transcription backend '{self.backend}'. Choose one of {BACKENDS}.")
        if self.backend == "assemblyai" and not self.assemblyai_key:
            raise ConfigurationError("ASSEMBLYAI_KEY is not set.")
        if self.backend == "azure":
            if not self.azure_speech_key:
                raise ConfigurationError("AZURE_SPEECH_KEY is not set.")
            if not self.azure_speech_region:
                raise ConfigurationError("AZURE_SPEECH_REGION is not set.")

class ConfigLoader:
    """Loads configuration settings from a YAML file plus environment variables."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def load_config(self, config_path: Optional[str] = None, required: bool = False) -> AppConfig:
        """
        Loads configuration from the specified YAML file path.

        Args:
            config_path: The path to the YAML configuration file, or None.
            required: Whether a missing file is an error. When False, a missing
                      file falls back to defaults plus environment variables.

        Returns:
            The resolved AppConfig.

        Raises:
            FileNotFoundError: If a required configuration file does not exist.
            ConfigurationError: If the file cannot be parsed as YAML, contains
                              invalid values, or if there are other reading errors.
        """
        values = {}
        if config_path and os.path.exists(config_path):
            values.update(self._read_yaml(config_path))
        elif config_path and required:
            logger.error(f"Configuration file not found at path: {config_path}")
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        else:
            logger.info("No configuration file found; using defaults and environment.")

        for env_name, field_name in ENV_OVERRIDES.items():
            if self.environ.get(env_name):
                logger.debug(f"Using {env_name} from environment")
                values[field_name] = self.environ[env_name]

        known = {f.name for f in fields(AppConfig)}
        unknown = sorted(set(values) - known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")
        try:
            return AppConfig(**{k: v for k, v in values.items() if k in known})
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration values: {e}") from e

    def _read_yaml(self, config_path: str) -> dict:
        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.isfile(config_path):
             logger.error(f"Configuration path is not a file: {config_path}")
             raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except IOError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            # Handle cases where YAML loads something other than a dictionary (e.g., just a string)
            logger.error(f"Configuration file {config_path} did not load as a dictionary (root object).")
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")
        logger.info(f"Configuration loaded successfully from {config_path}")
        return config
