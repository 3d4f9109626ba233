# src/aiorchestrator/logging_config.py
"""
Logging configuration for the aiorchestrator service.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where those records go. It supports:

- Console logging with display-level gating (see DisplayFilter)
- Optional rotating file logging
- Per-component log level overrides

Key concepts:

    **Display filter**: When ``console_enabled=False``, the console handler
    still exists but only passes records that carry ``extra={"display": True}``.
    Operational messages such as "Orchestrator started with 5 workers" stay
    visible while per-task chatter goes to the file only.

    **File rotation**: file logging is off by default. When enabled, a
    ``RotatingFileHandler`` writes ``{app}.log`` under ``file_directory``.

Usage:
    from aiorchestrator.logging_config import configure_logging, log_display

    configure_logging(app_name="aiorchestrator", config={"console_enabled": True})

    logger = logging.getLogger("aiorchestrator.startup")
    log_display(logger, logging.INFO, "Ready - %d backends registered", count)
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

# ---------------------------------------------------------------------------
# Default logging configuration
# ---------------------------------------------------------------------------

DEFAULT_LOGGING_CONFIG: dict[str, Any] = {
    "console_enabled": True,
    "console_level": "INFO",
    "console_format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "file_enabled": False,
    "file_level": "DEBUG",
    "file_directory": "~/.local/share/aiorchestrator/logs",
    "file_name": "{app}.log",
    "file_format": "%(asctime)s [%(levelname)-8s] %(name)-30s - %(message)s (%(filename)s:%(lineno)d)",
    "rotation_max_bytes": 10 * 1024 * 1024,
    "rotation_backup_count": 5,
    "display_min_level": "INFO",
    "components": {
        "aiorchestrator": "INFO",
        "aiohttp": "WARNING",
        "asyncio": "WARNING",
        "uvicorn": "INFO",
    },
}


def _level_from_name(name: str | int, default: int) -> int:
    if isinstance(name, int):
        return name
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else default


# ---------------------------------------------------------------------------
# DisplayFilter
# ---------------------------------------------------------------------------


class DisplayFilter(logging.Filter):
    """Controls which log records pass through to the console handler.

    When the console is globally enabled every record passes and the
    handler's own level does the filtering. Otherwise only records with
    ``record.display = True`` at or above ``display_min_level`` pass.
    """

    def __init__(
        self,
        console_globally_enabled: bool = False,
        display_min_level: int = logging.INFO,
    ) -> None:
        super().__init__()
        self.console_globally_enabled = console_globally_enabled
        self.display_min_level = display_min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if self.console_globally_enabled:
            return True

        if getattr(record, "display", False):
            return record.levelno >= self.display_min_level

        return False


# ---------------------------------------------------------------------------
# LoggingManager
# ---------------------------------------------------------------------------


class LoggingManager:
    """
    Process-wide logging setup.

    Handlers are attached to the root logger once; later calls are no-ops
    unless ``force_reconfigure`` is passed.
    """

    _configured: bool = False
    _log_file_path: Optional[Path] = None
    _console_handler: Optional[logging.Handler] = None
    _file_handler: Optional[logging.Handler] = None

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured

    @classmethod
    def get_log_file_path(cls) -> Optional[Path]:
        return cls._log_file_path

    @classmethod
    def configure(
        cls,
        app_name: str = "aiorchestrator",
        config: Optional[dict[str, Any]] = None,
        force_reconfigure: bool = False,
    ) -> Optional[Path]:
        if cls._configured and not force_reconfigure:
            return cls._log_file_path

        log_config = {**DEFAULT_LOGGING_CONFIG, **(config or {})}

        root_logger = logging.getLogger()
        for handler in (cls._console_handler, cls._file_handler):
            if handler is not None:
                root_logger.removeHandler(handler)
                handler.close()
        cls._console_handler = None
        cls._file_handler = None
        cls._log_file_path = None
        root_logger.setLevel(logging.DEBUG)

        console_globally_enabled = bool(log_config.get("console_enabled", True))
        display_filter = DisplayFilter(
            console_globally_enabled=console_globally_enabled,
            display_min_level=_level_from_name(log_config.get("display_min_level", "INFO"), logging.INFO),
        )
        console_handler = logging.StreamHandler(sys.stderr)
        if console_globally_enabled:
            console_handler.setLevel(_level_from_name(log_config.get("console_level", "INFO"), logging.INFO))
        else:
            # the filter is the only gate in silent mode
            console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(log_config["console_format"]))
        console_handler.addFilter(display_filter)
        root_logger.addHandler(console_handler)
        cls._console_handler = console_handler

        if log_config.get("file_enabled", False):
            cls._file_handler, cls._log_file_path = cls._create_file_handler(log_config, app_name)
            if cls._file_handler is not None:
                root_logger.addHandler(cls._file_handler)

        components = log_config.get("components", DEFAULT_LOGGING_CONFIG["components"])
        for component_name, level_str in components.items():
            logging.getLogger(component_name).setLevel(_level_from_name(level_str, logging.INFO))

        cls._configured = True
        logging.getLogger(__name__).debug(
            f"Logging configured for '{app_name}'. Log file: {cls._log_file_path}"
        )
        return cls._log_file_path

    @staticmethod
    def _create_file_handler(
        config: dict[str, Any], app_name: str
    ) -> tuple[Optional[logging.Handler], Optional[Path]]:
        log_dir = Path(os.path.expanduser(config.get("file_directory", DEFAULT_LOGGING_CONFIG["file_directory"])))
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            sys.stderr.write(f"Warning: Cannot create log directory {log_dir}: {e}\n")
            return None, None

        try:
            filename = config.get("file_name", "{app}.log").format(app=app_name)
        except (KeyError, ValueError):
            filename = f"{app_name}.log"
        log_file_path = log_dir / filename

        try:
            handler = RotatingFileHandler(
                log_file_path,
                maxBytes=config.get("rotation_max_bytes", 10 * 1024 * 1024),
                backupCount=config.get("rotation_backup_count", 5),
                encoding="utf-8",
            )
        except OSError as e:
            sys.stderr.write(f"Warning: Cannot create log file {log_file_path}: {e}\n")
            return None, None

        handler.setLevel(_level_from_name(config.get("file_level", "DEBUG"), logging.DEBUG))
        handler.setFormatter(logging.Formatter(config.get("file_format", DEFAULT_LOGGING_CONFIG["file_format"])))
        return handler, log_file_path

    @classmethod
    def set_console_level(cls, level: str | int) -> None:
        if cls._console_handler is not None:
            cls._console_handler.setLevel(_level_from_name(level, logging.INFO))


# ---------------------------------------------------------------------------
# Public module-level functions
# ---------------------------------------------------------------------------


def configure_logging(
    app_name: str = "aiorchestrator",
    config: Optional[dict[str, Any]] = None,
    force_reconfigure: bool = False,
) -> Optional[Path]:
    """
    Configure logging for the application.

    Args:
        app_name: Name of the application (used in the log filename)
        config: Logging configuration overriding DEFAULT_LOGGING_CONFIG keys
        force_reconfigure: If True, replace handlers installed by an earlier call

    Returns:
        Path to the log file, or None when file logging is disabled
    """
    return LoggingManager.configure(app_name=app_name, config=config, force_reconfigure=force_reconfigure)


def log_display(
    logger: logging.Logger,
    level: int,
    msg: str,
    *args: Any,
    **kwargs: Any,
) -> None:
    """Log a message that also appears on console even in silent mode.

    The caller's ``extra`` dict is merged, not replaced.
    """
    extra = kwargs.pop("extra", None) or {}
    extra["display"] = True
    kwargs["extra"] = extra
    logger.log(level, msg, *args, **kwargs)


def set_component_level(component: str, level: str | int) -> None:
    """Change a specific component's log level at runtime."""
    logging.getLogger(component).setLevel(_level_from_name(level, logging.INFO))


def get_log_file_path() -> Optional[Path]:
    """Get the current log file path."""
    return LoggingManager.get_log_file_path()
