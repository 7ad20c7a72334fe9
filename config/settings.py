"""Environment-level configuration for the case engine.

This module isolates things that depend on the deployment environment
(API keys, model choices, retention windows) from pure game-design options,
which live in `mystery_config`.
"""

import os
import tempfile
from dataclasses import dataclass
from typing import Optional


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class EnvironmentSettings:
    """Environment / deployment settings."""

    openai_api_key: Optional[str] = None
    hf_token: Optional[str] = None
    elevenlabs_api_key: Optional[str] = None
    text_model: str = "gpt-4o-mini"
    text_temperature: float = 0.9
    image_model: str = "Tongyi-MAI/Z-Image-Turbo"
    media_dir: str = os.path.join(tempfile.gettempdir(), "obscura_media")
    generation_attempts: int = 3
    operation_retention_seconds: int = 3600
    operation_sweep_seconds: int = 1800
    # IST (UTC+5:30) decides when a new investigation day starts
    utc_offset_minutes: int = 330

    @classmethod
    def from_env(cls) -> "EnvironmentSettings":
        """Build settings from environment variables."""
        defaults = cls()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            hf_token=os.getenv("HF_TOKEN"),
            elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY"),
            text_model=os.getenv("TEXT_MODEL", defaults.text_model),
            text_temperature=_float_env("TEXT_TEMPERATURE", defaults.text_temperature),
            image_model=os.getenv("IMAGE_MODEL", defaults.image_model),
            media_dir=os.getenv("MEDIA_DIR", defaults.media_dir),
            generation_attempts=_int_env("GENERATION_ATTEMPTS", defaults.generation_attempts),
            operation_retention_seconds=_int_env(
                "OPERATION_RETENTION_SECONDS", defaults.operation_retention_seconds
            ),
            operation_sweep_seconds=_int_env(
                "OPERATION_SWEEP_SECONDS", defaults.operation_sweep_seconds
            ),
            utc_offset_minutes=_int_env("GAME_UTC_OFFSET_MINUTES", defaults.utc_offset_minutes),
        )


def get_env_settings() -> EnvironmentSettings:
    """Convenience accessor for environment settings."""
    return EnvironmentSettings.from_env()
