import logging

import pytest

from clinic_recalls.core.settings import Settings, validate_settings
from clinic_recalls.services.batch_runner import batch_options

STRONG_SECRET = "a-long-random-cron-secret"


def _settings(**overrides):
    values = {"cron_secret": STRONG_SECRET, "resend_api_key": "re_key"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.dispatch_batch_size == 50
    assert settings.dispatch_horizon_days == 30
    assert settings.dispatch_claim_recalls is False
    assert settings.cron_allow_unauthenticated is False
    assert settings.clinic_timezone == "Europe/Rome"


def test_environment_aliases(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", STRONG_SECRET)
    monkeypatch.setenv("DISPATCH_BATCH_SIZE", "")
    monkeypatch.setenv("DISPATCH_CLAIM_RECALLS", "true")
    monkeypatch.setenv("RESEND_TOKEN", "token-only")
    monkeypatch.setenv("CLICKSEND_API_KEY", "  ")

    settings = Settings(_env_file=None)

    assert settings.cron_secret == STRONG_SECRET
    assert settings.dispatch_batch_size == 50
    assert settings.dispatch_claim_recalls is True
    assert settings.resend_key == "token-only"
    assert settings.clicksend_api_key is None
    assert batch_options(settings) == {"batch_size": 50, "claim": True, "claim_timeout_seconds": 900}


def test_development_only_warns(caplog):
    settings = _settings(cron_secret=None, cron_allow_unauthenticated=True)

    with caplog.at_level(logging.WARNING, logger="clinic_recalls.config"):
        validate_settings(settings)

    assert "CRON_ALLOW_UNAUTHENTICATED" in caplog.text


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"cron_secret": None, "cron_allow_unauthenticated": True}, "CRON_ALLOW_UNAUTHENTICATED"),
        ({"cron_secret": "change-me"}, "CRON_SECRET is too weak"),
        ({"dispatch_batch_size": 0}, "DISPATCH_BATCH_SIZE"),
        ({"clinic_timezone": "Mars/Olympus"}, "CLINIC_TIMEZONE"),
    ],
)
def test_production_failures(overrides, message):
    settings = _settings(app_env="production", **overrides)

    with pytest.raises(RuntimeError, match=message):
        validate_settings(settings)


def test_production_with_strong_secret_passes():
    validate_settings(_settings(app_env="prod"))
