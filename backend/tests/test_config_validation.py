import pytest

from burnthread.config import Settings, validate_settings


def make_settings(**overrides) -> Settings:
    values = {
        "STORE_BACKEND": "memory",
        "DATABASE_URL": "postgresql://u:p@localhost:5432/db",
        "STORE_SWEEP_INTERVAL_SECONDS": 1.0,
        "PUBLIC_BASE_URL": "",
        "LOG_LEVEL": "INFO",
    }
    values.update(overrides)
    return Settings(**values)


def test_validate_settings_accepts_valid_values():
    validate_settings(make_settings())
    validate_settings(make_settings(STORE_BACKEND="postgres", PUBLIC_BASE_URL="https://burn.example"))


def test_validate_settings_rejects_unknown_backend():
    with pytest.raises(ValueError) as exc:
        validate_settings(make_settings(STORE_BACKEND="redis"))

    assert "STORE_BACKEND" in str(exc.value)


def test_validate_settings_requires_dsn_for_postgres():
    with pytest.raises(ValueError) as exc:
        validate_settings(make_settings(STORE_BACKEND="postgres", DATABASE_URL="  "))

    assert "DATABASE_URL" in str(exc.value)


@pytest.mark.parametrize("interval", [0, -1.5])
def test_validate_settings_rejects_non_positive_sweep_interval(interval: float):
    with pytest.raises(ValueError) as exc:
        validate_settings(make_settings(STORE_SWEEP_INTERVAL_SECONDS=interval))

    assert "STORE_SWEEP_INTERVAL_SECONDS" in str(exc.value)


def test_validate_settings_rejects_public_url_without_scheme():
    with pytest.raises(ValueError) as exc:
        validate_settings(make_settings(PUBLIC_BASE_URL="burn.example"))

    assert "PUBLIC_BASE_URL" in str(exc.value)


def test_validate_settings_reports_every_problem():
    with pytest.raises(ValueError) as exc:
        validate_settings(make_settings(STORE_BACKEND="nope", LOG_LEVEL="loud"))

    assert "STORE_BACKEND" in str(exc.value)
    assert "LOG_LEVEL" in str(exc.value)


def test_cors_origins_are_split_and_trimmed():
    settings = make_settings(CORS_ALLOW_ORIGINS_RAW="https://a.example, https://b.example,")
    assert settings.cors_allow_origins == ["https://a.example", "https://b.example"]
