"""Runtime settings and logging setup."""

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s]: %(message)s"
LOG_DATE_FORMAT = "%d/%m/%Y %H:%M:%S"

# LOG_LEVEL values: 0 silences output, 1 is info, 2 is debug, anything else errors only
LOG_LEVELS = {
    "0": logging.CRITICAL + 10,
    "1": logging.INFO,
    "2": logging.DEBUG,
}


class Settings(BaseSettings):
    """Settings read from the environment (and .env, loaded by the CLI).

    Environment variables:
        PKGRATER_DATA_DIR: Directory holding the package store, cost cache and metrics.
        GITHUB_TOKEN: GitHub personal access token.
        LOG_LEVEL: 0 silent, 1 info, 2 debug, anything else errors only.
        LOG_FILE: Also write log records to this file.
        NPM_REGISTRY_URL: npm registry base URL.
    """

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    data_dir: Path = Field(default=Path("data"), validation_alias="PKGRATER_DATA_DIR")
    github_token: str | None = Field(default=None, validation_alias="GITHUB_TOKEN")
    log_level: int = Field(default=logging.ERROR, validation_alias="LOG_LEVEL")
    log_file: Path | None = Field(default=None, validation_alias="LOG_FILE")
    registry_url: str = Field(default="https://registry.npmjs.org", validation_alias="NPM_REGISTRY_URL")

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, v: object) -> object:
        """Map the 0/1/2 LOG_LEVEL values onto logging levels."""
        if isinstance(v, str):
            return LOG_LEVELS.get(v.strip(), logging.ERROR)
        return v

    @field_validator("github_token", "log_file", mode="before")
    @classmethod
    def empty_as_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def packages_file(self) -> Path:
        return self.data_dir / "packages.json"

    @property
    def cost_cache_file(self) -> Path:
        return self.data_dir / "cost_cache.json"

    @property
    def metrics_file(self) -> Path:
        return self.data_dir / ".metrics.json"


def configure_logging(
    level: int = logging.ERROR,
    log_file: Path | None = None,
    console: Console | None = None,
) -> logging.Logger:
    """Attach rich console output (and an optional log file) to the package logger.

    Args:
        level: Minimum level to emit.
        log_file: Also append plain-text records to this file.
        console: Console to render to. Defaults to stderr.

    Returns:
        The configured ``pkgrater`` logger.
    """
    logger = logging.getLogger("pkgrater")
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        log_time_format=LOG_DATE_FORMAT,
    )
    rich_handler.setLevel(level)
    logger.addHandler(rich_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger
