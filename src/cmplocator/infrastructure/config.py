"""Config reader: ``.cmplocator/config.yml`` with defaults and env overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from cmplocator.index.source_index import STATE_DIRNAME
from cmplocator.resolve.resolver import RelevanceWeights
from cmplocator.resolve.search import SearchWeights

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yml"
DEFAULT_PORT = 4123
DEFAULT_DEBOUNCE_MS = 500
PORT_ENV = "OPEN_IN_EDITOR_PORT"

DEFAULT_INCLUDE_GLOBS: tuple[str, ...] = (
    "src/**/*.{ts,tsx}",
    "projects/**/*.{ts,tsx}",
    "apps/**/*.{ts,tsx}",
    "libs/**/*.{ts,tsx}",
)

DEFAULT_EXCLUDE_GLOBS: tuple[str, ...] = (
    "**/node_modules/**",
    "**/dist/**",
    "**/.angular/**",
    "**/coverage/**",
    "**/*.spec.ts",
    "**/*.test.ts",
    "**/*.e2e.ts",
)


class ConfigError(Exception):
    """Raised when config.yml holds a value of the wrong shape."""


@dataclass(frozen=True)
class LocatorConfig:
    """Validated settings consumed by the scan, server, and dispatcher."""

    port: int = DEFAULT_PORT
    workspace_root: str = "."
    editor: str | None = None
    fallback_editor: str | None = None
    include_globs: tuple[str, ...] = DEFAULT_INCLUDE_GLOBS
    exclude_globs: tuple[str, ...] = DEFAULT_EXCLUDE_GLOBS
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    relevance: RelevanceWeights = field(default_factory=RelevanceWeights)
    search: SearchWeights = field(default_factory=SearchWeights)

    def workspace_path(self, project_root: Path) -> Path:
        return (project_root / self.workspace_root).resolve()


def config_path_for(project_root: Path) -> Path:
    return project_root / STATE_DIRNAME / CONFIG_FILENAME


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        msg = f"'{key}' must be a mapping, got {type(value).__name__}"
        raise ConfigError(msg)
    return value


def _str_list(value: Any, key: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        msg = f"'{key}' must be a list of strings"
        raise ConfigError(msg)
    return tuple(value)


def _optional_str(value: Any, key: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"'{key}' must be a string"
        raise ConfigError(msg)
    return value.strip() or None


def _positive_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        msg = f"'{key}' must be a positive integer, got {value!r}"
        raise ConfigError(msg)
    return value


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        msg = f"'{key}' must be a number, got {value!r}"
        raise ConfigError(msg)
    return value


def _known(section: dict[str, Any], cls: type) -> dict[str, Any]:
    fields = cls.__dataclass_fields__  # type: ignore[attr-defined]
    unknown = sorted(set(section) - set(fields))
    if unknown:
        logger.warning("Ignoring unknown tuning keys: %s", ", ".join(unknown))
    return {k: v for k, v in section.items() if k in fields}


def parse_config(data: dict[str, Any], *, env: dict[str, str] | None = None) -> LocatorConfig:
    """Build a :class:`LocatorConfig` from parsed YAML plus environment overrides."""
    env = dict(os.environ) if env is None else env
    kwargs: dict[str, Any] = {}

    if "port" in data:
        kwargs["port"] = _positive_int(data["port"], "port")
    env_port = env.get(PORT_ENV, "").strip()
    if env_port:
        try:
            kwargs["port"] = _positive_int(int(env_port), PORT_ENV)
        except ValueError as exc:
            msg = f"{PORT_ENV} must be an integer, got {env_port!r}"
            raise ConfigError(msg) from exc

    if "workspace_root" in data:
        kwargs["workspace_root"] = _optional_str(data["workspace_root"], "workspace_root") or "."
    kwargs["editor"] = _optional_str(data.get("editor"), "editor")
    kwargs["fallback_editor"] = _optional_str(data.get("fallback_editor"), "fallback_editor")

    scan = _section(data, "scan")
    if "include_globs" in scan:
        kwargs["include_globs"] = _str_list(scan["include_globs"], "scan.include_globs")
    if "exclude_globs" in scan:
        kwargs["exclude_globs"] = _str_list(scan["exclude_globs"], "scan.exclude_globs")

    watch = _section(data, "watch")
    if "debounce_ms" in watch:
        kwargs["debounce_ms"] = _positive_int(watch["debounce_ms"], "watch.debounce_ms")

    tuning = _section(data, "tuning")
    relevance = _section(tuning, "relevance")
    if relevance:
        kwargs["relevance"] = RelevanceWeights(
            **{
                k: int(_number(v, f"tuning.relevance.{k}"))
                for k, v in _known(relevance, RelevanceWeights).items()
            }
        )
    search = _section(tuning, "search")
    if search:
        kwargs["search"] = SearchWeights(
            **{
                k: float(_number(v, f"tuning.search.{k}"))
                for k, v in _known(search, SearchWeights).items()
            }
        )

    return LocatorConfig(**kwargs)


def load_config(project_root: Path, *, env: dict[str, str] | None = None) -> LocatorConfig:
    """Read ``.cmplocator/config.yml``; a missing file yields defaults."""
    path = config_path_for(project_root)
    data: Any = {}
    if path.is_file():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            msg = f"Invalid YAML in {path}: {exc}"
            raise ConfigError(msg) from exc
    else:
        logger.debug("No config at %s, using defaults", path)
    if not isinstance(data, dict):
        msg = f"{path} must contain a mapping"
        raise ConfigError(msg)
    return parse_config(data, env=env)


def default_config_data() -> dict[str, Any]:
    """Defaults in the on-disk YAML shape, as written by ``cmplocator init``."""
    return {
        "port": DEFAULT_PORT,
        "workspace_root": ".",
        "editor": None,
        "fallback_editor": "code",
        "scan": {
            "include_globs": list(DEFAULT_INCLUDE_GLOBS),
            "exclude_globs": list(DEFAULT_EXCLUDE_GLOBS),
        },
        "watch": {"debounce_ms": DEFAULT_DEBOUNCE_MS},
    }


def write_default_config(project_root: Path) -> Path:
    path = config_path_for(project_root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.dump(default_config_data(), default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return path
