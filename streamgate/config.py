"""Environment-driven settings for the API process."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name, str(default)) or str(default)
    try:
        return max(int(raw), minimum)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    environment: str = "production"
    locale: str = "th"
    chunk_size: int = 1024 * 256
    ytdlp_binary: str = "yt-dlp"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def development(self) -> bool:
        """Raw upstream error text is only exposed in development."""
        return self.environment.lower() == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.getenv("APP_ENV", "production") or "production",
            locale=os.getenv("APP_LOCALE", "th") or "th",
            chunk_size=_env_int("STREAM_CHUNK_SIZE", 1024 * 256),
            ytdlp_binary=os.getenv("YTDLP_BINARY", "yt-dlp") or "yt-dlp",
            log_level=(os.getenv("LOG_LEVEL", "INFO") or "INFO").upper(),
            host=os.getenv("HOST", "0.0.0.0") or "0.0.0.0",
            port=_env_int("PORT", 8000),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
