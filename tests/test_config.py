"""Tests for settings loading."""

from svreport.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("SVREPORT_PORT", raising=False)
    settings = Settings(_env_file=None)

    assert settings.port == 3001
    assert settings.vendor_batch_size == 20
    assert settings.vendor_batch_delay == 0.1
    assert not settings.is_production
    assert not settings.upstream_configured


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("SVREPORT_UPSTREAM_URL", "https://fleet.example.test/")
    monkeypatch.setenv("SVREPORT_ENVIRONMENT", "production")
    monkeypatch.setenv("SVREPORT_CORS_ORIGINS", '["https://reports.example.test"]')

    settings = Settings(_env_file=None)

    assert settings.upstream_base_url == "https://fleet.example.test"
    assert settings.is_production
    assert settings.cors_origins == ["https://reports.example.test"]


def test_from_yaml_with_overrides(tmp_path):
    path = tmp_path / "svreport.yaml"
    path.write_text("port: 8080\nvendor_batch_size: 5\nupstream_url: https://fleet.example.test\n", encoding="utf-8")

    settings = Settings.from_yaml(path, port=9090, host=None)

    assert settings.port == 9090
    assert settings.vendor_batch_size == 5
    assert settings.upstream_configured


def test_ensure_directories(tmp_path):
    settings = Settings(_env_file=None, data_dir=tmp_path / "data", log_file=tmp_path / "logs" / "svreport.log")
    settings.ensure_directories()

    assert (tmp_path / "data").is_dir()
    assert (tmp_path / "logs").is_dir()
