"""Configuration loading with pydantic-settings.

Later sources win:

    defaults < ~/.config/jscov/config.yaml < <project>/.jscov.yaml
             < JSCOV__SECTION__KEY env vars < load_config() kwargs

The two YAML files are overlaid key by key, so a project file can change one
watermark without restating the others.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from jscov.config.models import CoverageConfig, JscovConfig, LoggingConfig
from jscov.core.errors import ConfigError

GLOBAL_CONFIG_PATH = Path("~/.config/jscov/config.yaml").expanduser()
PROJECT_CONFIG_NAME = ".jscov.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top level must be a mapping")
    return data


def _overlay(base: dict[str, Any], top: dict[str, Any]) -> dict[str, Any]:
    """Nested mappings of ``top`` laid over ``base``; neither is modified."""
    merged = dict(base)
    for key, value in top.items():
        below = merged.get(key)
        if isinstance(below, dict) and isinstance(value, dict):
            value = _overlay(below, value)
        merged[key] = value
    return merged


class _YamlSource(PydanticBaseSettingsSource):
    """Settings from YAML already loaded and overlaid."""

    def __init__(self, settings_cls: type[BaseSettings], data: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._data = data

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        value = self._data.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return self._data


def _settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    # A class per load keeps concurrent loads from sharing YAML state
    class JscovSettings(BaseSettings):
        model_config = SettingsConfigDict(
            env_prefix="JSCOV__", env_nested_delimiter="__", case_sensitive=False
        )

        logging: LoggingConfig = LoggingConfig()
        coverage: CoverageConfig = CoverageConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return JscovSettings


def load_config(project_root: Path | None = None, **kwargs: Any) -> JscovConfig:
    """Resolve the configuration for a project.

    Args:
        project_root: Directory holding .jscov.yaml. Defaults to the CWD.
        **kwargs: Per-section overrides, e.g. coverage={"exclude": [...]}.

    Raises:
        ConfigError: CONFIG_PARSE_ERROR for unreadable YAML,
            CONFIG_INVALID_VALUE for the first value that fails validation.
    """
    yaml_config: dict[str, Any] = {}
    for path in (GLOBAL_CONFIG_PATH, (project_root or Path.cwd()) / PROJECT_CONFIG_NAME):
        yaml_config = _overlay(yaml_config, _load_yaml(path))
    try:
        settings = _settings_class(yaml_config)(**kwargs)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e
    return JscovConfig.model_validate(settings.model_dump())
