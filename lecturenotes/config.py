"""
Configuration management with three-tier precedence system:
1. Default values from codebase
2. Environment variables from .env
3. Explicit overrides passed by the caller (e.g. the app factory or tests)

Precedence: Overrides > Environment Variables > Defaults
"""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class ConfigManager:
    """Manages configuration with three-tier precedence."""

    # Default values (Tier 1 - Codebase defaults)
    DEFAULTS = {
        "API_BASE_URL": "http://localhost:5001",
        "HOST": "0.0.0.0",
        "PORT": "5001",
        "LOG_LEVEL": "INFO",
        "OPENAI_API_KEY": "",
        "LLM_API_BASE_URL": "",
        "LLM_MODEL": "gpt-4o-mini",
        "TRANSCRIPTION_BACKEND": "openai",
        "TRANSCRIPTION_MODEL": "whisper-1",
        "TRANSCRIPTION_LANGUAGE": "en",
        "WHISPER_MODEL": "base",
        "JOBS_DIR": "lectures",
        "FFMPEG_PATH": "ffmpeg",
        "FFPROBE_PATH": "ffprobe",
        "PIPELINE_WORKERS": "",
    }

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize the configuration.

        Args:
            overrides: Values that take precedence over environment and defaults
        """
        self.overrides = dict(overrides or {})

    def get(self, key: str, override: Optional[Any] = None) -> Any:
        """
        Get configuration value with three-tier precedence.

        Args:
            key: Configuration key
            override: Call-site value (highest priority)

        Returns:
            Configuration value from highest priority source
        """
        if override is not None and override != "":
            return override

        stored = self.overrides.get(key)
        if stored is not None and stored != "":
            return stored

        # Tier 2: Environment variable
        env_value = os.getenv(key)
        if env_value is not None and env_value != "":
            return env_value

        # Tier 1: Default value
        return self.DEFAULTS.get(key, "")

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """Get a configuration value as an integer, or ``default`` when unset."""
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"Configuration value {key}={value!r} is not an integer")

    def get_float(self, key: str, default: Optional[float] = None) -> Optional[float]:
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"Configuration value {key}={value!r} is not a number")

    def get_source(self, key: str) -> str:
        """
        Get the source a configuration value comes from.

        Returns:
            One of 'override', 'env' or 'default'
        """
        stored = self.overrides.get(key)
        if stored is not None and stored != "":
            return "override"

        env_value = os.getenv(key)
        if env_value is not None and env_value != "":
            return "env"

        return "default"
