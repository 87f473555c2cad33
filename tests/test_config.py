"""Tests for settings loading."""

import pytest
from pydantic import ValidationError
from py_meshsplit.config import Settings, get_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate settings from the caller's environment and .env file."""
    monkeypatch.chdir(tmp_path)
    for name in ("SEED_COUNT", "SHAPE", "DOMAIN_HALF_EXTENT", "TOLERANCE", "MAX_WORKERS", "LOG_FORMAT"):
        monkeypatch.delenv(f"MESHSPLIT_{name}", raising=False)


class TestSettings:
    """Test defaults and overrides."""

    def test_defaults(self):
        """Test the documented defaults."""
        settings = Settings()

        assert settings.domain_half_extent == 2.0
        assert settings.seed_count == 60
        assert settings.random_seed == 0
        assert settings.tolerance is None
        assert settings.shape == "cube"
        assert settings.output_dir == "out"
        assert settings.keep_empty is False
        assert settings.max_workers is None
        assert settings.log_format == "plain"

    def test_environment(self, monkeypatch):
        """Test MESHSPLIT_* environment variables."""
        monkeypatch.setenv("MESHSPLIT_SEED_COUNT", "5")
        monkeypatch.setenv("MESHSPLIT_SHAPE", "sphere")
        monkeypatch.setenv("MESHSPLIT_TOLERANCE", "1e-5")
        settings = Settings()

        assert settings.seed_count == 5
        assert settings.shape == "sphere"
        assert settings.tolerance == pytest.approx(1e-5)

    def test_env_file(self, tmp_path):
        """Test values read from a .env file in the working directory."""
        (tmp_path / ".env").write_text("MESHSPLIT_SEED_COUNT=7\n")

        assert Settings().seed_count == 7

    @pytest.mark.parametrize("name, value", [
        ("DOMAIN_HALF_EXTENT", "-1"),
        ("SEED_COUNT", "0"),
        ("SHAPE", "torus"),
        ("TOLERANCE", "0"),
        ("LOG_FORMAT", "xml"),
    ])
    def test_invalid_values(self, monkeypatch, name, value):
        """Test that invalid settings are rejected."""
        monkeypatch.setenv(f"MESHSPLIT_{name}", value)
        with pytest.raises(ValidationError):
            Settings()

    def test_overrides_skip_none(self, monkeypatch):
        """Test that None overrides fall back to the environment."""
        monkeypatch.setenv("MESHSPLIT_SEED_COUNT", "9")
        settings = get_settings(seed_count=None, shape="cylinder")

        assert settings.seed_count == 9
        assert settings.shape == "cylinder"
