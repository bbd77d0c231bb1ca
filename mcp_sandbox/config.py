from __future__ import annotations

import logging
import sys
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process-wide settings read from ``MCP_SANDBOX_*`` environment variables.

    Per-request options (diff source, thresholds, limits) are tool arguments,
    not settings.
    """

    model_config = SettingsConfigDict(env_prefix="MCP_SANDBOX_")

    log_level: str = "INFO"
    docs_dir: Path = Path("docs")
    max_output_bytes: int = 10 * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    return Settings()


def setup_logging(log_level: str | None = None) -> None:
    """Send log records to stderr; stdout belongs to the stdio transport."""
    if log_level is None:
        log_level = get_settings().log_level
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
