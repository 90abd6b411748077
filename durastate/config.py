"""
Configuration
=============

YAML configuration and the factories that turn it into a store, an engine
and a recovery policy. Lookup order for the file: explicit path, the
DURASTATE_CONFIG environment variable, ./durastate.yaml. A missing file
means defaults.
"""

import copy
import importlib
import os
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError, StorageError
from .recovery import RecoveryPolicy
from .registry import Registry

CONFIG_ENV = "DURASTATE_CONFIG"
DEFAULT_CONFIG_FILE = "durastate.yaml"

DEFAULT_CONFIG = {
    "paths": {
        "state_dir": "./state",
    },
    "storage": {
        "backend": "file",
        "database_url": None,
        "lock_timeout": 10.0,
    },
    "recovery": {
        "policy": RecoveryPolicy.FAIL_FAST.value,
    },
    "logging": {
        "level": "info",
    },
}


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[str | Path] = None) -> dict:
    """Load configuration, layered over DEFAULT_CONFIG"""
    explicit = path is not None or CONFIG_ENV in os.environ
    config_path = Path(path or os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_FILE)

    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_path}")
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        raise ConfigError(f"Cannot read config {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must be a mapping, got {type(data).__name__}")

    return _merge(DEFAULT_CONFIG, data)


def create_store(config: dict, registry: Registry):
    """Create the configured StateStore"""
    from .store import FileStateStore, MemoryStateStore, SqlStateStore

    storage = config.get("storage", {})
    backend = str(storage.get("backend", "file")).lower()
    state_dir = Path(config.get("paths", {}).get("state_dir", "./state"))

    try:
        if backend == "memory":
            return MemoryStateStore(registry)
        if backend == "file":
            return FileStateStore(
                registry,
                state_dir,
                lock_timeout=float(storage.get("lock_timeout", 10.0)),
            )
        if backend in ("sqlite", "sql"):
            url = storage.get("database_url") or f"sqlite:///{state_dir / 'durastate.db'}"
            return SqlStateStore(registry, url)
    except StorageError as e:
        raise ConfigError(f"Cannot open {backend} store: {e}") from e

    raise ConfigError(f"Unknown storage backend: {backend!r} (expected memory, file or sqlite)")


def recovery_policy(config: dict) -> RecoveryPolicy:
    value = config.get("recovery", {}).get("policy", RecoveryPolicy.FAIL_FAST.value)
    try:
        return RecoveryPolicy(str(value).lower())
    except ValueError:
        raise ConfigError(
            f"Unknown recovery policy: {value!r} (expected fail_fast or continue)"
        ) from None


def build_engine(config: dict, registry: Registry):
    """Create an engine over the configured store"""
    from .engine import StateMachineEngine

    return StateMachineEngine(registry, create_store(config, registry))


def load_registry(target: str) -> Registry:
    """
    Import a registry given as ``package.module:attribute``.

    The attribute may be a Registry or a zero-argument callable returning one.
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ConfigError(f"Workflow must be given as module:attribute, got {target!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import workflow module {module_name!r}: {e}") from e

    try:
        obj = getattr(module, attr)
    except AttributeError:
        raise ConfigError(f"Module {module_name!r} has no attribute {attr!r}") from None

    if callable(obj) and not isinstance(obj, Registry):
        obj = obj()
    if not isinstance(obj, Registry):
        raise ConfigError(f"{target} is not a Registry (got {type(obj).__name__})")
    return obj
