"""
Logging configuration for the pot automation service.

This module provides configurable logging levels that can be set via:
- Environment variables
- Runtime configuration via API
- Default fallback values
"""

import logging
import os
from dataclasses import asdict, dataclass
from typing import Dict, Optional

LEVEL_NAMES = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# logger name -> LoggingConfig attribute
LOGGER_FIELDS = {
    "potflow": "app_level",
    "potflow.monzo.client": "monzo_client_level",
    "potflow.monzo.sync": "monzo_sync_level",
    "potflow.automation": "automation_level",
    "potflow.connection": "connection_level",
    "scheduler": "scheduler_level",
    "urllib3": "urllib3_level",
    "requests": "requests_level",
    "werkzeug": "werkzeug_level",
    "sqlalchemy": "sqlalchemy_level",
}


@dataclass
class LoggingConfig:
    """Configuration for logging levels."""
    root_level: str = "INFO"
    app_level: str = "INFO"
    monzo_client_level: str = "INFO"
    monzo_sync_level: str = "INFO"
    automation_level: str = "INFO"
    connection_level: str = "INFO"
    scheduler_level: str = "INFO"
    urllib3_level: str = "WARNING"
    requests_level: str = "WARNING"
    werkzeug_level: str = "INFO"
    sqlalchemy_level: str = "WARNING"
    log_file: Optional[str] = None


class LoggingManager:
    """Manages logging configuration and provides runtime level changes."""

    def __init__(self):
        self.config = self._load_config()
        self._configure_logging()

    def _load_config(self) -> LoggingConfig:
        """Load logging configuration from environment variables with production-safe defaults."""
        return LoggingConfig(
            root_level=os.getenv("LOG_ROOT_LEVEL", "INFO"),
            app_level=os.getenv("LOG_APP_LEVEL", "INFO"),
            monzo_client_level=os.getenv("LOG_MONZO_CLIENT_LEVEL", "INFO"),
            monzo_sync_level=os.getenv("LOG_MONZO_SYNC_LEVEL", "INFO"),
            automation_level=os.getenv("LOG_AUTOMATION_LEVEL", "INFO"),
            connection_level=os.getenv("LOG_CONNECTION_LEVEL", "INFO"),
            scheduler_level=os.getenv("LOG_SCHEDULER_LEVEL", "INFO"),
            urllib3_level=os.getenv("LOG_URLLIB3_LEVEL", "WARNING"),
            requests_level=os.getenv("LOG_REQUESTS_LEVEL", "WARNING"),
            werkzeug_level=os.getenv("LOG_WERKZEUG_LEVEL", "INFO"),
            sqlalchemy_level=os.getenv("LOG_SQLALCHEMY_LEVEL", "WARNING"),
            log_file=os.getenv("LOG_FILE") or None,
        )

    def _configure_logging(self):
        """Configure logging based on current configuration."""
        handlers = [logging.StreamHandler()]
        if self.config.log_file:
            handlers.append(logging.FileHandler(self.config.log_file))

        logging.basicConfig(
            level=getattr(logging, self.config.root_level.upper(), logging.INFO),
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
            handlers=handlers,
        )

        for logger_name, field in LOGGER_FIELDS.items():
            self._set_logger_level(logger_name, getattr(self.config, field))

    def _set_logger_level(self, logger_name: str, level_name: str):
        """Set the level for a specific logger."""
        level = getattr(logging, level_name.upper(), None)
        if not isinstance(level, int):
            logging.warning(f"Invalid logging level '{level_name}' for logger '{logger_name}'")
            return
        logging.getLogger(logger_name).setLevel(level)

    def get_current_config(self) -> Dict:
        """Get current logging configuration as a dictionary."""
        return asdict(self.config)

    def set_logger_level(self, logger_name: str, level: str) -> bool:
        """Set the level for a specific logger. Returns False for unknown levels."""
        level_upper = level.upper()
        if level_upper not in LEVEL_NAMES:
            return False

        self._set_logger_level(logger_name, level_upper)

        field = LOGGER_FIELDS.get(logger_name)
        if field:
            setattr(self.config, field, level_upper)
        elif logger_name == "root":
            logging.getLogger().setLevel(level_upper)
            self.config.root_level = level_upper
        return True

    def get_available_loggers(self) -> Dict[str, str]:
        """Get list of known loggers and their current levels."""
        loggers = {"root": logging.getLogger().level}
        for name in LOGGER_FIELDS:
            loggers[name] = logging.getLogger(name).level
        return {name: logging.getLevelName(level) for name, level in loggers.items()}


# Global logging manager instance
_logging_manager: Optional[LoggingManager] = None


def get_logging_manager() -> LoggingManager:
    """Get the global logging manager instance."""
    global _logging_manager
    if _logging_manager is None:
        _logging_manager = LoggingManager()
    return _logging_manager


def configure_logging():
    """Configure logging using the logging manager."""
    get_logging_manager()
