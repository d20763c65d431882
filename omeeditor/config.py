"""Application configuration from a JSON file and command line options."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, fields
import json
import logging
from pathlib import Path
from typing import Any, Sequence


class ConfigError(ValueError):
    """Raised when configuration values are missing or invalid."""


_PATH_KEYS = {"log_folder", "template_path", "open_path"}
_VALUE_TYPES = {
    "log_level": str,
    "log_to_file": bool,
    "editable": bool,
    "window_width": int,
    "window_height": int,
}


@dataclass(slots=True)
class EditorConfig:
    log_level: str = "INFO"
    log_to_file: bool = False
    log_folder: Path | None = None
    template_path: Path | None = None
    open_path: Path | None = None
    editable: bool = True
    window_width: int = 1100
    window_height: int = 750

    def validate(self) -> None:
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError(f"Unknown log level: {self.log_level}")
        if self.window_width <= 0 or self.window_height <= 0:
            raise ConfigError(
                f"Window size must be positive: {self.window_width}x{self.window_height}"
            )
        if self.template_path is not None and not self.template_path.is_file():
            raise ConfigError(f"Template file not found: {self.template_path}")

    def update(self, values: dict[str, Any]) -> None:
        known = {item.name for item in fields(self)}
        for key, value in values.items():
            if key not in known:
                raise ConfigError(f"Unknown configuration key: {key}")
            _check_type(key, value)
            if value is not None and key in _PATH_KEYS:
                value = Path(value).expanduser()
            setattr(self, key, value)

    @classmethod
    def from_file(cls, path: str | Path) -> "EditorConfig":
        config = cls()
        config.update(_read_json(Path(path)))
        return config


def _check_type(key: str, value: Any) -> None:
    if key in _PATH_KEYS:
        if value is not None and not isinstance(value, (str, Path)):
            raise ConfigError(f"Configuration key {key} must be a path, got {value!r}")
        return
    expected = _VALUE_TYPES[key]
    # bool is an int subclass; window sizes must not accept true/false.
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise ConfigError(
            f"Configuration key {key} must be {expected.__name__}, got {value!r}"
        )


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in configuration file: {path}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must hold an object: {path}")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="omeeditor",
        description="Explore and edit OME-XML and OME-TIFF metadata.",
    )
    parser.add_argument("file", nargs="?", help="OME-XML or OME-TIFF file to open")
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--template", dest="template_path", help="notes template file")
    parser.add_argument("--log-level", dest="log_level")
    parser.add_argument("--log-file", dest="log_to_file", action="store_true", default=None)
    parser.add_argument("--log-folder", dest="log_folder")
    parser.add_argument(
        "--read-only",
        dest="editable",
        action="store_false",
        default=None,
        help="open documents without editing enabled",
    )
    return parser


def load_config(argv: Sequence[str] | None = None) -> EditorConfig:
    args = build_parser().parse_args(argv)

    config = EditorConfig.from_file(args.config) if args.config else EditorConfig()
    overrides = {
        "log_level": args.log_level,
        "log_to_file": args.log_to_file,
        "log_folder": args.log_folder,
        "template_path": args.template_path,
        "editable": args.editable,
        "open_path": args.file,
    }
    config.update({key: value for key, value in overrides.items() if value is not None})
    config.validate()
    return config
