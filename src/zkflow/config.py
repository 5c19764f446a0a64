"""Configuration helpers for loading JSON config files."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from .exceptions import ConfigError
from .retry import BackoffSchedule

REPO_ROOT = Path(__file__).resolve().parents[2]
CONFIG_DIR = REPO_ROOT / "config"
DEFAULT_CONFIG = "backend_config.json"

ENV_ENDPOINT = "ZKFLOW_ENDPOINT"
ENV_DEMO_MODE = "ZKFLOW_DEMO_MODE"
_TRUTHY = {"1", "true", "yes", "on"}


def load_json_config(file_name: str) -> Dict[str, Any]:
    """Load a JSON config file relative to the repository root."""

    file_path = Path(file_name)
    if not file_path.is_absolute():
        file_path = CONFIG_DIR / file_name

    if not file_path.exists():
        raise FileNotFoundError(f"Config file '{file_name}' does not exist at {file_path}")

    with file_path.open("r", encoding="utf-8") as handle:
        try:
            return json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Config file '{file_name}' is not valid JSON: {exc}") from exc


def auto_load_json_config(file_name: str,
                          tag: str = "default") -> Dict[str, Any]:
    """
    Using tag strategy to load multiple json config from a single file.
    Return a {} item from [{},{}] in json config
    """
    config_data = load_json_config(file_name)

    if isinstance(config_data, list):
        if not config_data:
            raise ConfigError(f"Config file '{file_name}' is an empty list.")

        for config in config_data:
            if tag in config.get("tags", []):
                return config

        # Fallback to the first item if tag not found
        return config_data[0]

    return config_data


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    raise ConfigError(f"'{name}' must be a boolean, got {value!r}")


@dataclass
class ServiceSettings:
    """Everything the pipeline reads from configuration, resolved once."""

    provider: str = "offline"
    endpoint: str | None = None
    request_timeout: float = 60.0
    demo_mode: bool = False
    allow_fallback: bool = True
    required_capabilities: List[str] = field(default_factory=lambda: ["secure_random", "threads"])
    readiness: BackoffSchedule = field(default_factory=BackoffSchedule)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ServiceSettings":
        readiness = data.get("readiness") or {}
        try:
            schedule = BackoffSchedule(
                initial_delay=float(readiness.get("initial_delay_ms", 100)) / 1000.0,
                multiplier=float(readiness.get("multiplier", 1.5)),
                max_delay=float(readiness.get("max_delay_ms", 2000)) / 1000.0,
                max_attempts=int(readiness.get("max_attempts", 10)),
            )
            timeout = float(data.get("request_timeout", 60.0))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid numeric value in backend config: {exc}") from exc
        if schedule.max_attempts < 1:
            raise ConfigError("readiness.max_attempts must be at least 1")

        capabilities = data.get("required_capabilities")
        if capabilities is None:
            capabilities = ["secure_random", "threads"]
        elif not isinstance(capabilities, list):
            raise ConfigError("'required_capabilities' must be a list of names")

        endpoint = data.get("endpoint") or None
        provider = str(data.get("provider") or ("http" if endpoint else "offline")).lower()
        return cls(
            provider=provider,
            endpoint=endpoint,
            request_timeout=timeout,
            demo_mode=_parse_bool(data.get("demo_mode", False), "demo_mode"),
            allow_fallback=_parse_bool(data.get("allow_fallback", True), "allow_fallback"),
            required_capabilities=[str(name) for name in capabilities],
            readiness=schedule,
        )

    @classmethod
    def load(cls, config_name: str = DEFAULT_CONFIG, tag: str = "default",
             environ: Dict[str, str] | None = None) -> "ServiceSettings":
        """Resolve settings from the config file, then apply environment overrides."""

        try:
            data = dict(auto_load_json_config(config_name, tag))
        except FileNotFoundError:
            data = {}

        env = os.environ if environ is None else environ
        if env.get(ENV_ENDPOINT):
            data["endpoint"] = env[ENV_ENDPOINT]
            data["provider"] = "http"
        if env.get(ENV_DEMO_MODE) is not None:
            data["demo_mode"] = env[ENV_DEMO_MODE]
        return cls.from_mapping(data)
