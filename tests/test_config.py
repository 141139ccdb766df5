"""Tests for runtime settings and logging setup."""

import logging
from pathlib import Path

import pytest

from pkgrater.config import Settings, configure_logging


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without pkgrater variables set."""
    for name in ("PKGRATER_DATA_DIR", "GITHUB_TOKEN", "LOG_LEVEL", "LOG_FILE", "NPM_REGISTRY_URL"):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self) -> None:
        """Without environment variables the defaults apply."""
        settings = Settings()
        assert settings.data_dir == Path("data")
        assert settings.github_token is None
        assert settings.log_level == logging.ERROR
        assert settings.registry_url == "https://registry.npmjs.org"

    def test_reads_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Each field is read from its environment variable."""
        monkeypatch.setenv("PKGRATER_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
        monkeypatch.setenv("NPM_REGISTRY_URL", "http://localhost:4873")
        monkeypatch.setenv("LOG_FILE", str(tmp_path / "pkgrater.log"))

        settings = Settings()
        assert settings.data_dir == tmp_path
        assert settings.github_token == "ghp_test"
        assert settings.registry_url == "http://localhost:4873"
        assert settings.log_file == tmp_path / "pkgrater.log"
        assert settings.packages_file == tmp_path / "packages.json"
        assert settings.cost_cache_file == tmp_path / "cost_cache.json"
        assert settings.metrics_file == tmp_path / ".metrics.json"

    @pytest.mark.parametrize(
        "value, level",
        [("0", logging.CRITICAL + 10), ("1", logging.INFO), ("2", logging.DEBUG), ("verbose", logging.ERROR)],
    )
    def test_log_level(self, value: str, level: int, monkeypatch: pytest.MonkeyPatch) -> None:
        """LOG_LEVEL 0/1/2 map to silent, info and debug; anything else is errors only."""
        monkeypatch.setenv("LOG_LEVEL", value)
        assert Settings().log_level == level

    def test_empty_values_are_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Blank token and log file variables count as unset."""
        monkeypatch.setenv("GITHUB_TOKEN", "")
        monkeypatch.setenv("LOG_FILE", "  ")
        settings = Settings()
        assert settings.github_token is None
        assert settings.log_file is None

    def test_field_names_accepted(self, tmp_path: Path) -> None:
        """Settings can also be built directly by field name."""
        settings = Settings(data_dir=tmp_path, log_level=logging.INFO)
        assert settings.data_dir == tmp_path
        assert settings.log_level == logging.INFO


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_file_handler(self, tmp_path: Path) -> None:
        """A log file receives formatted records."""
        log_file = tmp_path / "logs" / "pkgrater.log"
        logger = configure_logging(logging.INFO, log_file)
        logging.getLogger("pkgrater.costs").info("cost computed")
        for handler in logger.handlers:
            handler.flush()

        assert "[INFO] [pkgrater.costs]: cost computed" in log_file.read_text()
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
