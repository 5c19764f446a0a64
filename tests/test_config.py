import json
from pathlib import Path

import pytest

from zkflow.backends import HttpProvingBackend, OfflineBackend, build_backend
from zkflow.config import ServiceSettings, auto_load_json_config
from zkflow.exceptions import ConfigError


def _write(tmp_path: Path, payload) -> str:
    path = tmp_path / "backend_config.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    settings = ServiceSettings.load(str(tmp_path / "absent.json"), environ={})

    assert settings.provider == "offline"
    assert settings.endpoint is None
    assert settings.demo_mode is False
    assert settings.allow_fallback is True
    assert settings.readiness.initial_delay == pytest.approx(0.1)
    assert settings.readiness.max_attempts == 10


def test_tagged_entries(tmp_path: Path) -> None:
    config = _write(tmp_path, [
        {"tags": ["default"], "provider": "offline"},
        {"tags": ["remote"], "endpoint": "http://prover:9000", "readiness": {"max_attempts": 3}},
    ])

    assert auto_load_json_config(config, "remote")["endpoint"] == "http://prover:9000"
    assert auto_load_json_config(config, "missing")["provider"] == "offline"

    settings = ServiceSettings.load(config, tag="remote", environ={})
    assert settings.provider == "http"
    assert settings.readiness.max_attempts == 3


def test_environment_overrides(tmp_path: Path) -> None:
    config = _write(tmp_path, {"provider": "offline"})
    environ = {"ZKFLOW_ENDPOINT": "http://env-prover:8080", "ZKFLOW_DEMO_MODE": "yes"}

    settings = ServiceSettings.load(config, environ=environ)

    assert settings.provider == "http"
    assert settings.endpoint == "http://env-prover:8080"
    assert settings.demo_mode is True


def test_invalid_values_raise_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        ServiceSettings.load(_write(tmp_path, {"demo_mode": 3}), environ={})
    with pytest.raises(ConfigError):
        ServiceSettings.load(_write(tmp_path, {"readiness": {"max_attempts": 0}}), environ={})
    with pytest.raises(ConfigError):
        ServiceSettings.load(_write(tmp_path, []), environ={})


def test_malformed_json_raises_config_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        ServiceSettings.load(str(path), environ={})


def test_build_backend_selection() -> None:
    assert isinstance(build_backend(ServiceSettings()), OfflineBackend)
    assert isinstance(build_backend(ServiceSettings(provider="http")), OfflineBackend)
    http = build_backend(ServiceSettings(provider="http", endpoint="http://p:1/", request_timeout=5))
    assert isinstance(http, HttpProvingBackend)
    assert http.endpoint == "http://p:1"
    assert http.timeout == 5
    with pytest.raises(ConfigError):
        build_backend(ServiceSettings(provider="grpc"))


def test_shipped_config_loads() -> None:
    settings = ServiceSettings.load(environ={})
    assert settings.provider == "offline"
    strict = ServiceSettings.load(tag="strict", environ={})
    assert strict.allow_fallback is False
