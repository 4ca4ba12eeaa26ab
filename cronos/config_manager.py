from __future__ import annotations

import copy
import errno
import os
import threading
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from cronos.models import AppConfig, default_app_config

CONFIG_SECTIONS = tuple(item.name for item in fields(AppConfig))


class ConfigValidationError(ValueError):
    pass


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _known_sections(data: Any) -> dict[str, Any]:
    # Hand-edited files may carry stray keys or scalar sections; those fall back to defaults.
    if not isinstance(data, dict):
        return {}
    return {key: value for key, value in data.items() if key in CONFIG_SECTIONS and isinstance(value, dict)}


def _dump(config_dict: dict[str, Any], handle: Any) -> None:
    yaml.safe_dump(
        config_dict,
        handle,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


class ConfigManager:
    def __init__(self, config_path: str | os.PathLike[str]) -> None:
        self.config_path = Path(config_path)
        self._lock = threading.RLock()
        self._ensure_exists()

    def _ensure_exists(self) -> None:
        if self.config_path.exists():
            return
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.save(default_app_config())

    def load(self) -> AppConfig:
        with self._lock:
            with self.config_path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle)
            return AppConfig.from_dict(_known_sections(data))

    def save(self, config: AppConfig) -> None:
        with self._lock:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            config_dict = config.to_dict()
            tmp_path = self.config_path.with_suffix(self.config_path.suffix + ".tmp")
            with tmp_path.open("w", encoding="utf-8") as handle:
                _dump(config_dict, handle)
            try:
                tmp_path.replace(self.config_path)
            except OSError as exc:
                # Bind-mounted single files in containers cannot be atomically replaced.
                if exc.errno != errno.EBUSY:
                    raise
                with self.config_path.open("w", encoding="utf-8") as handle:
                    _dump(config_dict, handle)
                if tmp_path.exists():
                    tmp_path.unlink()

    @staticmethod
    def validate_update(payload: Any) -> dict[str, Any]:
        if not isinstance(payload, dict):
            raise ConfigValidationError("payload must be an object")
        unknown = sorted(str(key) for key in payload if key not in CONFIG_SECTIONS)
        if unknown:
            raise ConfigValidationError(f"unknown config sections: {', '.join(unknown)}")
        for key, value in payload.items():
            if not isinstance(value, dict):
                raise ConfigValidationError(f"config section {key} must be an object")
        return payload

    def update(self, payload: dict[str, Any]) -> AppConfig:
        with self._lock:
            payload = self.validate_update(payload)
            current = self.load().to_dict()
            merged = _deep_merge(current, payload)
            config = AppConfig.from_dict(merged)
            self.save(config)
            return config
