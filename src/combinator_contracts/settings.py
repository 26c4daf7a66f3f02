# combinator_contracts/settings.py
from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_SETTINGS_CONFIG = ConfigDict(extra="forbid", validate_assignment=True)

DEFAULT_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"

ENV_VALUE_UNIT = "FINSC_VALUE_UNIT"
ENV_INCLUDE_PAST_OPTIONS = "FINSC_INCLUDE_PAST_OPTIONS"
ENV_LOG_LEVEL = "FINSC_LOG_LEVEL"
ENV_LOG_SINK = "FINSC_LOG_SINK"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


class LogConfig(BaseModel):
    model_config = _SETTINGS_CONFIG

    level: str = "WARNING"
    # "stderr" or a file path
    sink: str = "stderr"
    format: str = DEFAULT_LOG_FORMAT
    rotation: str = "1 day"
    retention: str = "30 days"

    @field_validator("level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value!r}")
        return level

    @property
    def is_file_sink(self) -> bool:
        return self.sink != "stderr"


class EngineSettings(BaseModel):
    """Evaluation settings. Environment overrides are read by `from_env`, never at import time."""

    model_config = _SETTINGS_CONFIG

    value_unit: str = Field(default="Wei", min_length=1)
    include_past_options: bool = False
    log: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> EngineSettings:
        env = os.environ if environ is None else environ

        log_fields: dict[str, str] = {}
        if ENV_LOG_LEVEL in env:
            log_fields["level"] = env[ENV_LOG_LEVEL]
        if ENV_LOG_SINK in env:
            log_fields["sink"] = env[ENV_LOG_SINK]

        fields: dict[str, object] = {"log": LogConfig(**log_fields)}
        if ENV_VALUE_UNIT in env:
            fields["value_unit"] = env[ENV_VALUE_UNIT]
        if ENV_INCLUDE_PAST_OPTIONS in env:
            fields["include_past_options"] = _parse_flag(env[ENV_INCLUDE_PAST_OPTIONS])
        return cls(**fields)


def _parse_flag(raw: str) -> object:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    # Let pydantic reject it with a ValidationError.
    return raw
