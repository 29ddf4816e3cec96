from __future__ import annotations

from typing import Any

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from palace.alma.core.config import CannotLoadConfiguration


class ServiceConfiguration(BaseSettings):
    """
    Base class for settings read from the environment.

    Subclasses declare their settings as pydantic fields and set their own
    `env_prefix` in `model_config`. Values come from keyword arguments,
    then environment variables, then a `.env` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="PALACE_",
        str_strip_whitespace=True,
        # Settings are read once and then shared.
        frozen=True,
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    def __init__(self, *args: Any, **kwargs: Any):
        try:
            super().__init__(*args, **kwargs)
        except ValidationError as e:
            raise CannotLoadConfiguration(self._describe(e)) from e

    @classmethod
    def _describe(cls, error: ValidationError) -> str:
        """List each problem against the environment variable that sets it."""
        prefix = cls.model_config.get("env_prefix") or ""
        delimiter = cls.model_config.get("env_nested_delimiter") or "__"
        lines = ["Error loading settings from environment:"]
        for detail in error.errors():
            location = detail["loc"]
            if not location:
                lines.append(f"  {detail['msg']}")
                continue
            field, *rest = (str(part) for part in location)
            env_var = (
                f"{prefix}{field}" if field in cls.model_fields else field
            ).upper()
            name = delimiter.join([env_var, *(part.upper() for part in rest)])
            lines.append(f"  {name}:  {detail['msg']}")
        return "\n".join(lines)
