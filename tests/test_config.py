import pytest

from productwatch.config import DEFAULT_DATABASE_URL, Settings, load_settings


def test_load_settings_defaults():
    settings = load_settings({})
    assert settings == Settings()
    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.sendgrid_api_key is None
    assert settings.fetch_timeout == 15.0
    assert settings.event_poll_interval == 5.0


def test_load_settings_reads_environment():
    settings = load_settings(
        {
            "DATABASE_URL": "sqlite:///tmp/watch.db",
            "SENDGRID_API_KEY": " SG.abc ",
            "NOTIFICATION_FROM_EMAIL": "alerts@example.com",
            "FETCH_TIMEOUT": "20",
            "EVENT_BATCH_SIZE": "10",
            "WATCH_CONCURRENCY": "8",
        }
    )
    assert settings.database_url == "sqlite:///tmp/watch.db"
    assert settings.sendgrid_api_key == "SG.abc"
    assert settings.notification_from_email == "alerts@example.com"
    assert settings.fetch_timeout == 20.0
    assert settings.event_batch_size == 10
    assert settings.watch_concurrency == 8


@pytest.mark.parametrize("value", ["soon", "0", "-5"])
def test_load_settings_rejects_bad_numbers(value):
    with pytest.raises(ValueError, match="EVENT_POLL_INTERVAL"):
        load_settings({"EVENT_POLL_INTERVAL": value})
