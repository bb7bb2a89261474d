"""Settings validation tests."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from shared.config import Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.source_mode == "fixture"
        assert settings.cache_length == timedelta(hours=24)
        assert settings.delete_batch_size == 500
        assert settings.average_sample_limit == 30

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SK_CACHE_LENGTH_HOURS", "6")
        monkeypatch.setenv("SK_CACHE_FAST_PATH", "false")
        settings = Settings()
        assert settings.cache_length == timedelta(hours=6)
        assert settings.cache_fast_path is False

    def test_live_mode_requires_credentials(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(source_mode="live")
        assert "SK_SOURCE_BASE_URL" in str(exc_info.value)
        assert "SK_SOURCE_ACCESS_TOKEN" in str(exc_info.value)

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValidationError):
            Settings(source_mode="bluetooth")

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(delete_batch_size=0)

    def test_average_sample_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(average_sample_limit=0)
