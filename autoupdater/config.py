"""Centralized configuration.

Two layers live here:

- ``Settings``: process-level knobs loaded from environment variables / ``.env``
  (log level, log format, git binary).
- ``UpdaterConfig``: the immutable description of what to supervise, built once
  from the command line and handed to the coordinator.
"""

from __future__ import annotations

import posixpath
import re
import signal
from enum import StrEnum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BRANCH = "master"
DEFAULT_FREQUENCY_MINUTES = 1440
DEFAULT_SIGNAL = "SIGINT"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class UpdaterError(RuntimeError):
    """Base class for all git-auto-updater errors."""


class ConfigurationError(UpdaterError):
    """Raised when the supplied options cannot form a valid configuration."""


class Settings(BaseSettings):
    """Process-wide settings sourced from .env / environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    autoupdater_env: str = "development"
    autoupdater_log_level: str = "INFO"
    autoupdater_git_binary: str = "git"

    @field_validator("autoupdater_log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "AUTOUPDATER_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


# ── Updater configuration ────────────────────────────────────────────


class ScheduleMode(StrEnum):
    """How the next update check is timed."""
    INTERVAL = "interval"   # every N minutes, measured from the end of a cycle
    TIME = "time"           # once a day at HH:MM local time


class CheckTime(BaseModel):
    """Daily time of day at which to check for updates."""

    model_config = ConfigDict(frozen=True)

    hours: int = Field(..., ge=0, le=23)
    minutes: int = Field(..., ge=0, le=59)

    def __str__(self) -> str:
        return f"{self.hours:02d}:{self.minutes:02d}"


class CommandSpec(BaseModel):
    """Executable and ordered argument list of the supervised command."""

    model_config = ConfigDict(frozen=True)

    executable: str
    args: tuple[str, ...] = ()

    @classmethod
    def from_argv(cls, argv: list[str] | tuple[str, ...] | None) -> Optional["CommandSpec"]:
        """Build a command from ``[executable, *args]``, or None when argv is empty."""
        if not argv:
            return None
        return cls(executable=argv[0], args=tuple(argv[1:]))

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.args]

    def __str__(self) -> str:
        return " ".join([self.executable, *(f'"{arg}"' for arg in self.args)])


def parse_leading_int(value: str | int | None) -> Optional[int]:
    """Read the integer prefix of ``value``; None when there is none.

    ``"0200"`` -> 200, ``"15min"`` -> 15, ``"abc"`` -> None.
    """
    if value is None:
        return None
    if isinstance(value, int):
        return value
    match = _LEADING_INT.match(value)
    if not match:
        return None
    return int(match.group(1))


def parse_check_time(value: str | int) -> CheckTime:
    """Parse a ``HHMM`` value, clamping hours to 23 and minutes to 59."""
    number = parse_leading_int(value)
    if number is None or number < 0:
        raise ConfigurationError(f"Invalid update time {value!r}, expected HHMM")
    return CheckTime(hours=min(number // 100, 23), minutes=min(number % 100, 59))


def normalize_signal_name(value: str | int) -> str:
    """Return the canonical ``SIG*`` name for a signal name or number."""
    raw = str(value).strip()
    try:
        if raw.lstrip("-").isdigit():
            return signal.Signals(int(raw)).name
        name = raw.upper()
        if not name.startswith("SIG"):
            name = f"SIG{name}"
        return signal.Signals[name].name
    except (KeyError, ValueError) as exc:
        raise ConfigurationError(f"Unknown signal {value!r}") from exc


def derive_path(repository: str) -> Path:
    """Derive the local clone path from a repository URI.

    The basename of the URI with a single trailing ``.git`` removed, matching
    what ``git clone`` picks by default.
    """
    base = posixpath.basename(repository.rstrip("/"))
    if base.endswith(".git") and len(base) > len(".git"):
        base = base[: -len(".git")]
    return Path(base)


class UpdaterConfig(BaseModel):
    """Immutable updater configuration, validated once at startup."""

    model_config = ConfigDict(frozen=True)

    repository: Optional[str] = None
    branch: str = DEFAULT_BRANCH
    path: Path
    frequency: Optional[int] = DEFAULT_FREQUENCY_MINUTES
    time: Optional[CheckTime] = None
    signal: str = DEFAULT_SIGNAL
    command: Optional[CommandSpec] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_path(cls, data):
        if isinstance(data, dict) and not data.get("path"):
            repository = (data.get("repository") or "").strip()
            if not repository:
                raise ValueError("either a repository URI or a local path is required")
            data = {**data, "path": derive_path(repository)}
        return data

    @field_validator("repository")
    @classmethod
    def _blank_repository_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("branch")
    @classmethod
    def _require_branch(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("branch must not be empty")
        return value

    @field_validator("signal", mode="before")
    @classmethod
    def _canonical_signal(cls, value):
        try:
            return normalize_signal_name(value)
        except ConfigurationError as exc:
            raise ValueError(str(exc)) from exc

    @model_validator(mode="after")
    def _require_schedule(self) -> "UpdaterConfig":
        if self.time is None and (self.frequency is None or self.frequency < 1):
            raise ValueError("a positive update frequency or an update time is required")
        return self

    @property
    def schedule_mode(self) -> ScheduleMode:
        return ScheduleMode.TIME if self.time is not None else ScheduleMode.INTERVAL

    def describe(self) -> dict[str, object]:
        """Key/value view of the configuration for the startup log line."""
        info: dict[str, object] = {
            "repository": self.repository,
            "branch": self.branch,
            "path": str(self.path),
        }
        if self.schedule_mode is ScheduleMode.TIME:
            info["update_time"] = str(self.time)
        else:
            info["update_frequency_minutes"] = self.frequency
        info["signal"] = self.signal
        if self.command is not None:
            info["command"] = str(self.command)
        return info


def build_config(
    *,
    repository: Optional[str] = None,
    branch: str = DEFAULT_BRANCH,
    path: Optional[str | Path] = None,
    frequency: Optional[str | int] = DEFAULT_FREQUENCY_MINUTES,
    time: Optional[str | int] = None,
    signal_name: str = DEFAULT_SIGNAL,
    command: Optional[list[str]] = None,
) -> UpdaterConfig:
    """Assemble an ``UpdaterConfig`` from raw option values.

    Raises:
        ConfigurationError: when the values do not describe a runnable setup.
    """
    check_time = parse_check_time(time) if time not in (None, "") else None
    try:
        return UpdaterConfig(
            repository=repository,
            branch=branch,
            path=Path(path) if path else None,
            frequency=parse_leading_int(frequency),
            time=check_time,
            signal=signal_name,
            command=CommandSpec.from_argv(command),
        )
    except ValidationError as exc:
        messages = "; ".join(error["msg"] for error in exc.errors())
        raise ConfigurationError(messages) from exc
