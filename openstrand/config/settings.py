import os
import threading
from contextlib import contextmanager
from enum import Enum
from logging import DEBUG, ERROR, INFO, WARNING
from pathlib import Path
from typing import List

from pydantic.dataclasses import dataclass


APP_NAME = "openstrand"

DOT_DIR = ".openstrand"

SCHEMA_VERSION = "1.0"
"""The current schema version. Documents carrying this version are never migrated."""

EXPORT_FORMAT_VERSION = "1.0"
"""Format version written into store exports."""

DEFAULT_STORE_DIR = f"{DOT_DIR}/schemas"

ENV_LOG_LEVEL = "OPENSTRAND_LOG_LEVEL"
ENV_STORE_DIR = "OPENSTRAND_STORE_DIR"


def resolve_and_create_dirs(path: Path | str, is_dir: bool = False) -> Path:
    """
    Resolve a path to an absolute path, handling ~ for the home directory
    and creating any missing parent directories.
    """
    full_path = Path(path).expanduser().resolve()
    if not full_path.exists():
        if is_dir:
            os.makedirs(full_path, exist_ok=True)
        else:
            os.makedirs(full_path.parent, exist_ok=True)
    return full_path


class LogLevel(Enum):
    debug = DEBUG
    info = INFO
    warning = WARNING
    message = WARNING  # Same as warning, just for important console messages.
    error = ERROR

    @classmethod
    def parse(cls, level_str: str):
        canon_name = level_str.strip().lower()
        if canon_name == "warn":
            canon_name = "warning"
        try:
            return cls[canon_name]
        except KeyError:
            raise ValueError(
                f"Invalid log level: `{level_str}`. Valid options are: {', '.join(f'`{name}`' for name in cls.__members__)}"
            )

    def __str__(self):
        return self.name


@dataclass
class Settings:
    schema_version: str
    """Version string written by the serializer and recognized by the migrator."""

    store_dir: Path
    """Directory for the file-backed local schema store."""

    console_log_level: LogLevel
    """The log level for console-based logging."""

    file_log_level: LogLevel
    """The log level for file-based logging."""

    extra_icons: List[str]
    """Icon ids accepted in addition to the preset icon registry."""


# Initial default settings.
_settings = Settings(
    schema_version=SCHEMA_VERSION,
    store_dir=Path(DEFAULT_STORE_DIR),
    console_log_level=LogLevel.warning,
    file_log_level=LogLevel.info,
    extra_icons=[],
)


def global_settings() -> Settings:
    """
    Read access to global settings.
    """
    return _settings


_settings_lock = threading.RLock()


@contextmanager
def update_global_settings():
    """
    Context manager for thread-safe updates to global settings.
    """
    with _settings_lock:
        yield _settings


def apply_env_overrides() -> None:
    """
    Apply settings from the environment (typically loaded from a `.env` file).
    """
    log_level = os.environ.get(ENV_LOG_LEVEL)
    store_dir = os.environ.get(ENV_STORE_DIR)
    with update_global_settings() as settings:
        if log_level:
            settings.console_log_level = LogLevel.parse(log_level)
        if store_dir:
            settings.store_dir = Path(store_dir).expanduser()


## Tests


def test_log_level_parse():
    assert LogLevel.parse("WARN") == LogLevel.warning
    assert LogLevel.parse(" debug ") == LogLevel.debug
    try:
        LogLevel.parse("loud")
        assert False, "expected ValueError"
    except ValueError as e:
        assert "`debug`" in str(e)


def test_env_overrides(monkeypatch, tmp_path):
    with update_global_settings() as settings:
        old_level, old_dir = settings.console_log_level, settings.store_dir
    try:
        monkeypatch.setenv(ENV_LOG_LEVEL, "error")
        monkeypatch.setenv(ENV_STORE_DIR, str(tmp_path / "store"))
        apply_env_overrides()
        assert global_settings().console_log_level == LogLevel.error
        assert global_settings().store_dir == tmp_path / "store"
    finally:
        with update_global_settings() as settings:
            settings.console_log_level = old_level
            settings.store_dir = old_dir
