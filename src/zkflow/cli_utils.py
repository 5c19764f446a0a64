"""Shared helpers for CLI commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

import yaml
from rich.console import Console
from rich.logging import RichHandler

from .exceptions import InputError

YAML_SUFFIXES = {".yml", ".yaml"}


class LiteralDumper(yaml.SafeDumper):
    """YAML dumper that uses block style for multiline strings."""

    def represent_scalar(self, tag, value, style=None):
        if tag == "tag:yaml.org,2002:str" and "\n" in value:
            style = "|"
        return super().represent_scalar(tag, value, style)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


def load_inputs(value: str | None, label: str) -> Dict[str, Any]:
    """Parse an input map given inline as JSON or as a .json/.yaml file path."""

    if value is None:
        return {}
    path = Path(value)
    try:
        is_file = path.is_file()
    except OSError:
        is_file = False
    if is_file:
        content = path.read_text(encoding="utf-8")
        try:
            data = yaml.safe_load(content) if path.suffix.lower() in YAML_SUFFIXES else json.loads(content)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise InputError(f"Could not parse {label} inputs from {path}: {exc}") from exc
    else:
        try:
            data = json.loads(value)
        except json.JSONDecodeError as exc:
            raise InputError(f"Invalid JSON for {label} inputs: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InputError(f"Invalid {label} inputs: must be an object")
    return data


def load_proof(path: Path) -> Any:
    content = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(content) if path.suffix.lower() in YAML_SUFFIXES else json.loads(content)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise InputError(f"Could not parse proof file {path}: {exc}") from exc
    # Files written by `prove --output` wrap the proof in a result envelope.
    if isinstance(data, dict) and isinstance(data.get("value"), dict) and "proof" in data["value"]:
        return data["value"]["proof"]
    return data


def write_output(payload: Dict[str, Any], output: Path) -> Path:
    output.parent.mkdir(parents=True, exist_ok=True)
    if output.suffix.lower() in YAML_SUFFIXES:
        text = yaml.dump(payload, Dumper=LiteralDumper, sort_keys=False, allow_unicode=True)
    else:
        text = json.dumps(payload, indent=2, ensure_ascii=False)
    output.write_text(text, encoding="utf-8")
    return output
