"""Configuration files - read and write the JSON .aicommitrc documents."""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from aicommit.config.resolver import (
    FIELD_TYPES,
    ConfigError,
    ConfigErrorKind,
    SessionConfig,
    environment_layer,
    resolve,
)
from aicommit.util.logging import get_logger

logger = get_logger(__name__)


class ConfigManager:
    """Finds the global and repository-local config files and turns them into layers."""

    CONFIG_FILENAME = ".aicommitrc"

    def __init__(self, global_path: Path | None = None, local_path: Path | None = None):
        self.global_path = global_path or Path.home() / self.CONFIG_FILENAME
        self.local_path = local_path or Path.cwd() / self.CONFIG_FILENAME
        self.loaded_paths: list[Path] = []

    def _load_from_file(self, path: Path) -> dict[str, Any]:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise ConfigError(ConfigErrorKind.UNREADABLE_FILE, f"Could not load {path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(ConfigErrorKind.UNREADABLE_FILE, f"{path} must contain a JSON object")
        logger.debug("Loaded config from %s", path)
        return data

    def file_layers(self) -> list[dict[str, Any]]:
        """Global then local file contents, skipping files that don't exist."""
        layers = []
        self.loaded_paths = []
        paths = [self.global_path]
        if self.local_path.resolve() != self.global_path.resolve():
            paths.append(self.local_path)
        for path in paths:
            if path.is_file():
                layers.append(self._load_from_file(path))
                self.loaded_paths.append(path)
        return layers

    def layers(
        self,
        environ: Mapping[str, str],
        overrides: Mapping[str, Any] | None = None,
    ) -> list[Mapping[str, Any]]:
        """All layers in precedence order: files, environment, command line."""
        return [*self.file_layers(), environment_layer(environ), overrides or {}]

    def load(
        self,
        environ: Mapping[str, str],
        overrides: Mapping[str, Any] | None = None,
        require_credentials: bool = True,
    ) -> SessionConfig:
        return resolve(self.layers(environ, overrides), environ, require_credentials)

    def save(self, updates: Mapping[str, Any], global_config: bool = True) -> Path:
        """Merge updates into the chosen file and write it back."""
        unknown = set(updates) - set(FIELD_TYPES)
        if unknown:
            raise ConfigError(
                ConfigErrorKind.INVALID_VALUE,
                f"Unknown config key(s): {', '.join(sorted(unknown))}",
            )
        path = self.global_path if global_config else self.local_path
        data = self._load_from_file(path) if path.is_file() else {}
        data.update(updates)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
            f.write('\n')
        return path
