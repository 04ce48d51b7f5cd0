"""Unit tests for environment-driven settings."""

from pathlib import Path

from ocrbatch.core.settings import AppSettings, BackendSettings, EngineSettings


class TestSettings:
    """Tests for settings defaults and overrides."""

    def test_defaults(self, monkeypatch):
        for name in ("OCR_BATCH_API_URL", "OCR_BATCH_POLL_INTERVAL_SECONDS", "OCR_BATCH_DEFAULT_BATCH_SIZE"):
            monkeypatch.delenv(name, raising=False)

        assert BackendSettings().OCR_BATCH_API_URL == "http://localhost:5000/api"
        assert EngineSettings().OCR_BATCH_POLL_INTERVAL_SECONDS == 2.0
        assert EngineSettings().OCR_BATCH_DEFAULT_BATCH_SIZE == 5

    def test_env_overrides(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("OCR_BATCH_API_URL", "https://ocr.internal/api/")
        monkeypatch.setenv("OCR_BATCH_VERIFY_SSL", "false")
        monkeypatch.setenv("OCR_BATCH_STATE_DIR", str(tmp_path))
        monkeypatch.setenv("LOG_JSON", "0")

        backend = BackendSettings()

        assert backend.OCR_BATCH_API_URL == "https://ocr.internal/api"
        assert backend.OCR_BATCH_VERIFY_SSL is False
        assert EngineSettings().state_dir == tmp_path.resolve()
        assert AppSettings().LOG_JSON is False
