"""
Config Loader - load config from YAML files with base/override merge
"""

import os
from copy import deepcopy
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Iterable, Optional, Tuple

import yaml
from loguru import logger

_BASE_DIR = Path(__file__).resolve().parents[1]
_CACHE_LOCK = RLock()
_CONFIG_CACHE: Optional[Dict[str, Any]] = None
ConfigSignature = Tuple[Tuple[str, int, int, bool], ...]
_CONFIG_SIGNATURE: Optional[ConfigSignature] = None


def get_base_config_file() -> Path:
    """Default config shipped next to the code (agentchat/config/config.yml)."""
    return _BASE_DIR / "config" / "config.yml"


def get_override_config_file() -> Path:
    """Operator override, AGENTCHAT_CONFIG or data/.config.yml."""
    override = os.getenv("AGENTCHAT_CONFIG")
    if override:
        return Path(override)
    return get_data_dir() / ".config.yml"


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read YAML, an empty or broken file yields an empty dict."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"[Config] Failed to load {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"[Config] Ignoring {path}: top level is not a mapping")
        return {}
    return data


def _build_signature(paths: Iterable[Path]) -> ConfigSignature:
    signature = []
    for path in paths:
        try:
            stat = path.stat()
        except OSError:
            signature.append((str(path), 0, 0, False))
        else:
            signature.append((str(path), int(stat.st_mtime_ns), stat.st_size, True))
    return tuple(signature)


def _shallow_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge two config dicts, override replaces whole top-level keys.

    Args:
        base: Base config (low priority)
        override: Override config (high priority)
    """
    result = deepcopy(base)
    result.update(override)
    return result


def load_config(force_reload: bool = False) -> Dict[str, Any]:
    """
    Load config from base and override files.

    Files:
        1. Base config: agentchat/config/config.yml
        2. Override config: $AGENTCHAT_CONFIG or data/.config.yml

    The result is cached and invalidated whenever either file changes.

    Args:
        force_reload: Skip the cache

    Returns:
        Dict[str, Any]: Merged config
    """
    global _CONFIG_CACHE, _CONFIG_SIGNATURE

    base_path = get_base_config_file()
    override_path = get_override_config_file()
    cache_paths = [base_path, override_path]
    current_signature = _build_signature(cache_paths)

    with _CACHE_LOCK:
        if (
            not force_reload
            and _CONFIG_CACHE is not None
            and _CONFIG_SIGNATURE == current_signature
        ):
            return deepcopy(_CONFIG_CACHE)

        base_config: Dict[str, Any] = {}
        if base_path.exists():
            base_config = _read_yaml(base_path)

        override_config: Dict[str, Any] = {}
        if override_path.exists():
            override_config = _read_yaml(override_path)

        if base_config or override_config:
            config = _shallow_merge(base_config, override_config)
        else:
            config = get_default_config()

        _CONFIG_CACHE = config
        _CONFIG_SIGNATURE = current_signature
        return deepcopy(config)


def get_default_config() -> Dict[str, Any]:
    """Get default config"""
    return {
        "server": {"host": "0.0.0.0", "port": 8000, "debug": False},
        "log": {
            "log_level": "INFO",
            "log_dir": "logs",
            "log_file": "agentchat.log",
        },
    }


def get_project_dir() -> str:
    """Project root (the directory holding run.py and data/)."""
    return str(_BASE_DIR.parents[1]) + "/"


def get_data_dir() -> Path:
    return _BASE_DIR.parents[1] / "data"
