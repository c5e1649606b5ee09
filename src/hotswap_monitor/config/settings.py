"""
Configuration management for the hotswap monitor.

Handles environment variables, ``.env`` files and the compact agent argument
string (``classes=/abs/classes,jars=/abs/jars,period=1000``), with defaults and
validation for every component.
"""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hotswap_monitor.models.exceptions import ConfigurationError

MIN_PERIOD_MS = 500


def clamp_period(period_ms) -> int:
    """
    Clamp a requested polling delay to the supported floor.

    Values below ``MIN_PERIOD_MS``, non-positive values and values that are not
    integers all become ``MIN_PERIOD_MS``.
    """
    try:
        period = int(period_ms)
    except (TypeError, ValueError):
        return MIN_PERIOD_MS
    return max(period, MIN_PERIOD_MS)


KEY_CLASSES = "classes"
KEY_JARS = "jars"
KEY_PERIOD = "period"


class LogLevel(str, Enum):
    """Logging level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class MonitorConfig(BaseSettings):
    """
    Central configuration for the hotswap monitor.

    Every field can be set through an environment variable prefixed with
    ``HOTSWAP_MONITOR_`` (for example ``HOTSWAP_MONITOR_PERIOD_MS=1000``).
    """

    model_config = SettingsConfigDict(
        env_prefix="HOTSWAP_MONITOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Watched folders ===
    class_folder: Path | None = Field(default=None, description="Absolute folder of plain class files to watch")
    jar_folder: Path | None = Field(default=None, description="Absolute folder of archives to watch (optional)")
    class_extension: str = Field(default="class", description="Extension of watched plain files")
    archive_extension: str = Field(default="jar", description="Extension of watched archives")

    # === Scheduling ===
    period_ms: int = Field(default=MIN_PERIOD_MS, description="Delay between scans in milliseconds (minimum 500)")
    worker_count: int = Field(default=2, ge=2, le=32, description="Size of the shared scan worker pool")

    # === Logging Configuration ===
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_file: Path | None = Field(default=None, description="Log file path (stderr if None)")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s", description="Log message format"
    )

    @field_validator("class_folder", "jar_folder", mode="before")
    @classmethod
    def validate_folder(cls, v):
        """Treat blank folder values as unset and strip whitespace."""
        if v is None:
            return None
        text = str(v).strip()
        return Path(text) if text else None

    @field_validator("class_extension", "archive_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Store extensions without their leading dot."""
        ext = v.strip().lstrip(".")
        if not ext:
            raise ConfigurationError(
                "File extension must not be empty",
                config_key="extension",
                expected_type="non-empty string",
                actual_value=v,
            )
        return ext

    @field_validator("period_ms", mode="before")
    @classmethod
    def validate_period(cls, v):
        """Clamp the period to the 500 ms floor; unparseable values fall back to it."""
        return clamp_period(v)

    @classmethod
    def from_agent_args(cls, agent_args: str | None, **overrides: Any) -> "MonitorConfig":
        """
        Build a configuration from an agent argument string.

        Two forms are accepted: named (``classes=/a,jars=/b,period=1000``, any
        subset of keys) and positional (``/a[,/b[,1000]]``). Keyword overrides
        win over values parsed from the string.

        Raises:
            ConfigurationError: If a named argument has no ``=``
        """
        values: dict[str, Any] = {}
        if agent_args and agent_args.strip():
            if "=" in agent_args:
                values = cls._parse_named_args(agent_args)
            else:
                values = cls._parse_positional_args(agent_args)
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    @staticmethod
    def _parse_named_args(agent_args: str) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for part in agent_args.split(","):
            if not part.strip():
                continue
            key, sep, value = part.partition("=")
            if not sep:
                raise ConfigurationError(
                    f"Malformed agent argument '{part}'",
                    config_key=part.strip(),
                    expected_type="key=value",
                    actual_value=agent_args,
                )
            key = key.strip()
            if key == KEY_CLASSES:
                values["class_folder"] = value
            elif key == KEY_JARS:
                values["jar_folder"] = value
            elif key == KEY_PERIOD:
                values["period_ms"] = value
        return values

    @staticmethod
    def _parse_positional_args(agent_args: str) -> dict[str, Any]:
        parts = agent_args.split(",")
        values: dict[str, Any] = {"class_folder": parts[0]}
        if len(parts) > 1:
            values["jar_folder"] = parts[1]
        if len(parts) > 2:
            values["period_ms"] = parts[2]
        return values

    def is_valid(self) -> bool:
        """A configuration can start monitoring only when it names a class folder."""
        return self.class_folder is not None

    def to_agent_args(self) -> str:
        """Render the named agent argument form."""
        parts = [f"{KEY_CLASSES}={self.class_folder}"]
        if self.jar_folder is not None:
            parts.append(f"{KEY_JARS}={self.jar_folder}")
        parts.append(f"{KEY_PERIOD}={self.period_ms}")
        return ",".join(parts)

    def get_log_config(self) -> dict[str, Any]:
        """Get a logging configuration dictionary for ``logging.config.dictConfig``."""
        level = self.log_level.value if isinstance(self.log_level, LogLevel) else str(self.log_level)
        config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": {"format": self.log_format}},
            "handlers": {
                "default": {
                    "level": level,
                    "formatter": "standard",
                    "class": "logging.StreamHandler" if not self.log_file else "logging.FileHandler",
                }
            },
            "loggers": {"hotswap_monitor": {"handlers": ["default"], "level": level, "propagate": False}},
        }

        if self.log_file:
            config["handlers"]["default"]["filename"] = str(self.log_file)

        return config


# Global configuration instance
_config: MonitorConfig | None = None


def get_config() -> MonitorConfig:
    """
    Get the global configuration instance.

    Creates a new instance on first call and reuses it for subsequent calls.
    """
    global _config
    if _config is None:
        _config = MonitorConfig()
    return _config


def reload_config() -> MonitorConfig:
    """Force reload the configuration from environment/files."""
    global _config
    _config = MonitorConfig()
    return _config


def set_config(config: MonitorConfig) -> None:
    """Set a custom configuration instance, mostly for tests."""
    global _config
    _config = config
