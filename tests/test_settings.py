from factoring.core.settings import Settings


def test_settings_ignore_unrelated_environment(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "leftover")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://example.test")
    monkeypatch.setenv("GCS_SIGNED_URL_EXPIRY_SECONDS", "60")

    config = Settings()

    assert not hasattr(config, "secret_key")
    assert not hasattr(config, "public_base_url")
    assert not hasattr(config, "gcs_signed_url_expiry_seconds")


def test_email_lists_are_normalized(monkeypatch):
    monkeypatch.setenv("BACKOFFICE_ALLOWED_EMAILS", " Ops@Factoring.test, risk@factoring.test ")
    monkeypatch.setenv("BACKOFFICE_NOTIFICATION_EMAILS", "")

    config = Settings()

    assert config.backoffice_allow_list == ["ops@factoring.test", "risk@factoring.test"]
    assert config.backoffice_notification_list == []


def test_production_flag(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", " Production ")

    assert Settings().is_production is True
