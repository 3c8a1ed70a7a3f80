from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Mapping, Optional

from .categories import CATEGORIES, category_ids
from .errors import ConfigError


DEFAULT_BASE_DIR = "~/.openclaw"
LEGACY_WORKSPACE = "~/clawd"


@dataclass(frozen=True)
class RetentionPolicy:
    max_backups: int = 5
    max_age_days: int = 30


@dataclass(frozen=True)
class ArkConfig:
    backup_dir: str
    base_dir: str
    workspace: Optional[str] = None
    categories: Dict[str, bool] = field(default_factory=dict)
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)

    def enabled_categories(self):
        return [c for c in CATEGORIES if self.categories.get(c.id)]


def _expand(p: str) -> str:
    return os.path.abspath(os.path.expanduser(p))


def _non_negative_int(raw: Mapping[str, Any], key: str, default: int) -> int:
    val = raw.get(key, default)
    if isinstance(val, bool) or not isinstance(val, int) or val < 0:
        raise ConfigError(f"retention.{key} must be a non-negative integer, got {val!r}")
    return val


def parse_config(raw: Optional[Mapping[str, Any]] = None) -> ArkConfig:
    """Build an ``ArkConfig`` from a raw mapping, filling in defaults.

    Recognized keys: ``backupDir``, ``baseDir``, ``workspace``, ``categories``
    (id -> bool, every category enabled unless set to ``False``) and
    ``retention`` (``maxBackups``, ``maxAgeDays``). Paths may start with ``~``.
    """
    raw = raw or {}
    if not isinstance(raw, Mapping):
        raise ConfigError("config must be a mapping")

    base_dir = _expand(raw.get("baseDir") or DEFAULT_BASE_DIR)
    backup_dir = _expand(raw.get("backupDir") or os.path.join(base_dir, "backups"))
    workspace = raw.get("workspace")
    workspace = _expand(workspace) if workspace else None

    cats = raw.get("categories") or {}
    if not isinstance(cats, Mapping):
        raise ConfigError("categories must be a mapping of category id to bool")
    unknown = sorted(set(cats) - set(category_ids()))
    if unknown:
        raise ConfigError(f"Unknown categories: {', '.join(unknown)}")

    ret = raw.get("retention") or {}
    if not isinstance(ret, Mapping):
        raise ConfigError("retention must be a mapping")

    return ArkConfig(
        backup_dir=backup_dir,
        base_dir=base_dir,
        workspace=workspace,
        categories={c.id: cats.get(c.id) is not False for c in CATEGORIES},
        retention=RetentionPolicy(
            max_backups=_non_negative_int(ret, "maxBackups", 5),
            max_age_days=_non_negative_int(ret, "maxAgeDays", 30),
        ),
    )


def load_config(path: Optional[str], overrides: Optional[Mapping[str, Any]] = None) -> ArkConfig:
    """Read a JSON config file (missing file means defaults) and apply ``overrides``."""
    raw: Dict[str, Any] = {}
    if path and os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except ValueError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"{path} must contain a JSON object")
    if overrides:
        raw = {**raw, **{k: v for k, v in overrides.items() if v is not None}}
    return parse_config(raw)


def with_categories(config: ArkConfig, ids: Iterable[str]) -> ArkConfig:
    """Return a copy of ``config`` with exactly ``ids`` enabled."""
    wanted = set(ids)
    unknown = sorted(wanted - set(category_ids()))
    if unknown:
        raise ConfigError(f"Unknown categories: {', '.join(unknown)}")
    return replace(config, categories={c.id: c.id in wanted for c in CATEGORIES})


def resolve_workspace(config: ArkConfig) -> str:
    """Primary workspace: explicit setting, else ``<base_dir>/workspace``.

    With the default base directory, an existing ``~/clawd`` takes precedence.
    """
    if config.workspace:
        return config.workspace
    legacy = _expand(LEGACY_WORKSPACE)
    if config.base_dir == _expand(DEFAULT_BASE_DIR) and os.path.isdir(legacy):
        return legacy
    return os.path.join(config.base_dir, "workspace")
