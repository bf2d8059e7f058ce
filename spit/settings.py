from __future__ import annotations

import json
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from spit.patterns import PatternRegistry, PatternRule


class ConfigError(Exception):
    """Raised when a mock configuration file cannot be loaded."""


class FieldsConfig(BaseModel):
    """Per-field generation overrides."""

    model_config = ConfigDict(frozen=True)

    patterns: dict[str, PatternRule] = Field(default_factory=dict)


class MockConfig(BaseModel):
    """
    Behavior of the mock server, usually loaded from a YAML or JSON file.

    Example (YAML):
        delay: 250
        status_code: 201
        headers:
          X-Mock: "true"
        fields:
          patterns:
            status: {type: enum, values: [pending, completed, failed]}
            price: {type: number, min: 10.0, max: 1000.0, decimals: 2}
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Artificial delay applied to every generated response, in milliseconds
    delay: int | None = Field(default=None, ge=0)

    # Forces the response status instead of the first declared 2xx
    status_code: int | None = Field(default=None, ge=100, le=599)

    # Extra headers added to every generated response
    headers: dict[str, str] = Field(default_factory=dict)

    fields: FieldsConfig = Field(default_factory=FieldsConfig)

    @property
    def delay_seconds(self) -> float:
        return (self.delay or 0) / 1000

    def with_default_delay(self, delay: int | None) -> MockConfig:
        """Use `delay` (e.g. from the command line) unless the config sets one."""
        if self.delay is not None or delay is None:
            return self
        return self.model_copy(update={"delay": delay})

    def pattern_registry(self) -> PatternRegistry:
        return PatternRegistry(self.fields.patterns)


def load_config(config_path: str | Path | None) -> MockConfig:
    """
    Load a mock configuration file.

    Files ending in .yaml/.yml are parsed as YAML, anything else as JSON.

    Args:
        config_path: Path to the file, or None for the default configuration

    Returns:
        The validated MockConfig

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    if config_path is None:
        return MockConfig()

    path = Path(config_path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        else:
            data = json.loads(content)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot parse config file {path}: {e}") from e

    try:
        return MockConfig.model_validate(data or {})
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


class Settings(BaseSettings):
    """
    Process settings, read from the environment (prefix SPIT_) or a .env file.

    Examples:
        SPIT_HOST=0.0.0.0
        SPIT_PORT=9000
        SPIT_MAX_DEPTH=6
        SPIT_LOG_FILE=spit.log

    Command-line options take precedence over these values.
    """

    host: str = "127.0.0.1"
    port: int = 8080

    # Maximum nested references / object depth when resolving and generating
    max_depth: int = Field(default=10, ge=1)

    # Chance of including each optional property in generated objects
    optional_probability: float = Field(default=0.7, ge=0.0, le=1.0)

    # Optional file receiving a copy of the log output
    log_file: str | None = None

    model_config = SettingsConfigDict(
        env_prefix="SPIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars not defined in the model
    )
