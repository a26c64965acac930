"""
Configuration management for the file relay.

Uses pydantic-settings models fed from a ``key=value`` configuration file.
Keys may be written in camelCase (``serverPort``) or snake_case
(``server_port``). Values in the file win; ``RELAY_`` prefixed environment
variables (``RELAY_SERVER_PORT``) fill in anything the file leaves out.
"""

import re
from pathlib import Path
from typing import Dict, Type, TypeVar, Union

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from relay.utils.exceptions import ConfigurationError, FileParseError
from relay.utils.properties import load_properties


ENV_PREFIX = "RELAY_"

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _field_name(key: str) -> str:
    """Map a camelCase file key (``maxThreads``) to its field name."""
    return _CAMEL_BOUNDARY.sub("_", key.strip()).lower()


class _RelaySettings(BaseSettings):
    """Fields and sources shared by client and server settings."""

    server_port: int = Field(ge=1, le=65535)
    directory_path: Path
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        return init_settings, env_settings

    @field_validator("directory_path", mode="before")
    @classmethod
    def _require_path(cls, value):
        if value is None or not str(value).strip():
            raise ValueError("directoryPath must not be empty")
        return Path(str(value).strip()).expanduser()

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"


class ClientSettings(_RelaySettings):
    """Settings for the directory relay client."""

    key_pattern: str
    server_address: str = Field(min_length=1)

    @field_validator("key_pattern")
    @classmethod
    def _compile_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"keyPattern is not a valid regular expression: {e}") from e
        return value

    def compiled_pattern(self) -> re.Pattern:
        """Return the key pattern compiled once for the process run."""
        return re.compile(self.key_pattern)


class ServerSettings(_RelaySettings):
    """Settings for the ingestion server."""

    max_threads: int = Field(ge=1)
    bind_address: str = ""

    def ensure_output_directory(self) -> Path:
        """
        Create the configured output directory if it does not exist.

        Session files are still written to the working directory; this only
        guarantees the configured directory is present.

        Raises:
            ConfigurationError: If the directory cannot be created
        """
        try:
            self.directory_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Failed to create output directory {self.directory_path}: {e}"
            ) from e
        return self.directory_path


SettingsT = TypeVar("SettingsT", bound=_RelaySettings)


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(loc) for loc in item["loc"]) or "config"
        parts.append(f"{field}: {item['msg']}")
    return "; ".join(parts)


def _load(settings_cls: Type[SettingsT], path: Union[str, Path]) -> SettingsT:
    try:
        values: Dict[str, str] = load_properties(path)
    except FileParseError as e:
        raise ConfigurationError(f"Failed to load configuration file: {e}") from e

    fields = {_field_name(key): value for key, value in values.items()}
    try:
        return settings_cls(**fields)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration in {path}: {_describe(e)}"
        ) from e


def load_client_settings(path: Union[str, Path]) -> ClientSettings:
    """
    Load relay client settings from a properties file.

    Raises:
        ConfigurationError: If the file is unreadable or a field is missing/invalid
    """
    return _load(ClientSettings, path)


def load_server_settings(path: Union[str, Path]) -> ServerSettings:
    """
    Load ingestion server settings from a properties file.

    Raises:
        ConfigurationError: If the file is unreadable or a field is missing/invalid
    """
    return _load(ServerSettings, path)
