"""
Queue configuration.

Configuration can be built directly, from a dictionary, or from a YAML/JSON
file. Files may reference environment variables as ``${VAR}``; a ``.env``
file is loaded first so local overrides work without exporting anything.
"""

import importlib
import json
import logging
import os
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import yaml
from dotenv import find_dotenv, load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = 'config.yaml'
DEFAULT_MAX_RECORD_AGE_MS = 30 * 24 * 60 * 60 * 1000

# Option names used by the original JavaScript configuration
CAMEL_CASE_ALIASES = {
    'collectionName': 'collection_name',
    'batchSize': 'batch_size',
    'retryLimit': 'retry_limit',
    'maxRecordAge': 'max_record_age',
    'onProcess': 'on_process',
    'onFailure': 'on_failure',
    'processCron': 'process_cron',
    'cleanupCron': 'cleanup_cron',
}


def resolve_callable(target: Union[str, Callable, None], name: str) -> Optional[Callable]:
    """
    Resolve a ``"package.module:function"`` reference to a callable.

    Callables and None pass through unchanged.
    """
    if target is None or callable(target):
        return target
    if not isinstance(target, str) or ':' not in target:
        raise ConfigurationError(f"{name} must be a callable or a 'module:function' string, got {target!r}")

    module_name, _, attr_path = target.partition(':')
    try:
        obj = importlib.import_module(module_name)
        for attr in attr_path.split('.'):
            obj = getattr(obj, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot resolve {name} '{target}': {e}") from e

    if not callable(obj):
        raise ConfigurationError(f"{name} '{target}' is not callable")
    return obj


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class QueueConfig:
    """Validated queue settings."""
    collection_name: str = 'queue'
    batch_size: int = 10
    retry_limit: int = 3
    max_record_age: Union[int, timedelta] = DEFAULT_MAX_RECORD_AGE_MS
    on_process: Optional[Callable] = None
    on_failure: Optional[Callable] = None
    # Consumed by the external scheduler only
    process_cron: Optional[str] = None
    cleanup_cron: Optional[str] = None
    storage: Dict[str, Any] = field(default_factory=lambda: {'backend': 'mongodb'})

    def __post_init__(self):
        if not isinstance(self.collection_name, str) or not self.collection_name.strip():
            raise ConfigurationError("collection_name must be a non-empty string")
        if not _is_int(self.batch_size) or self.batch_size <= 0:
            raise ConfigurationError(f"batch_size must be a positive integer, got {self.batch_size!r}")
        if not _is_int(self.retry_limit) or self.retry_limit < 0:
            raise ConfigurationError(f"retry_limit must be a non-negative integer, got {self.retry_limit!r}")

        if isinstance(self.max_record_age, timedelta):
            if self.max_record_age <= timedelta(0):
                raise ConfigurationError("max_record_age must be positive")
        elif not _is_int(self.max_record_age) or self.max_record_age <= 0:
            raise ConfigurationError(
                f"max_record_age must be a positive number of milliseconds, got {self.max_record_age!r}"
            )

        self.on_process = resolve_callable(self.on_process, 'on_process')
        self.on_failure = resolve_callable(self.on_failure, 'on_failure')

        if not isinstance(self.storage, dict):
            raise ConfigurationError("storage must be a mapping")

    @property
    def max_record_age_delta(self) -> timedelta:
        if isinstance(self.max_record_age, timedelta):
            return self.max_record_age
        return timedelta(milliseconds=self.max_record_age)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QueueConfig':
        """
        Build configuration from a dictionary.

        Accepts snake_case keys and the camelCase names of the original options.

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in (data or {}).items():
            name = CAMEL_CASE_ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError(f"Unknown configuration option: {key}")
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: Union[str, Path, None] = None) -> 'QueueConfig':
        """
        Load configuration from a YAML or JSON file.

        Args:
            path: File path; defaults to ``DOC_QUEUE_CONFIG_PATH`` or ``config.yaml``
        """
        load_dotenv(find_dotenv(usecwd=True))
        path = Path(path or os.environ.get('DOC_QUEUE_CONFIG_PATH', DEFAULT_CONFIG_PATH))

        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        with open(path, 'r') as f:
            try:
                if path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
            except (yaml.YAMLError, json.JSONDecodeError) as e:
                raise ConfigurationError(f"Invalid configuration file {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")

        logger.info(f"Loaded queue configuration from {path}")
        return cls.from_dict(_expand_env(data))
