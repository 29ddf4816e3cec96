from __future__ import annotations

import logging
from enum import StrEnum, auto

from pydantic_settings import SettingsConfigDict

from palace.alma.service.configuration.service_configuration import (
    ServiceConfiguration,
)


class LogLevel(StrEnum):
    """
    The log levels we let people configure.

    Values are the level names the logging module uses, so a member can be
    handed straight to it.
    """

    @staticmethod
    def _generate_next_value_(
        name: str, start: int, count: int, last_values: list[str]
    ) -> str:
        # logging wants "DEBUG", StrEnum's auto() would give "debug".
        return name.upper()

    debug = auto()
    info = auto()
    warning = auto()
    error = auto()

    @property
    def levelno(self) -> int:
        return logging.getLevelNamesMapping()[self.value]

    @classmethod
    def from_level(cls, level: int | str) -> LogLevel:
        """Look up a member by level number (10) or name ("debug", "DEBUG")."""
        name = logging.getLevelName(level) if isinstance(level, int) else str(level)
        try:
            return cls(name.upper())
        except ValueError:
            raise ValueError(f"'{level}' is not a valid LogLevel") from None


class LoggingConfiguration(ServiceConfiguration):
    """Where and how much we log, from PALACE_LOG_* environment variables."""

    # Our own loggers.
    level: LogLevel = LogLevel.info
    # Chatty third-party loggers, like httpx.
    verbose_level: LogLevel = LogLevel.warning

    model_config = SettingsConfigDict(env_prefix="PALACE_LOG_")
