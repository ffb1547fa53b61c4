from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StringConstraints,
    ValidationError,
    field_validator,
)

# Environment variable names for secrets
ENV_TOKEN = "VKBOT_TOKEN"
ENV_CONFIRMATION_TOKEN = "VKBOT_CONFIRMATION_TOKEN"
ENV_SECRET = "VKBOT_SECRET"
ENV_GROUP_ID = "VKBOT_GROUP_ID"
ENV_PORT = "VKBOT_PORT"

# config key -> environment variable that overrides it
ENV_OVERRIDES = {
    "vk_token": ENV_TOKEN,
    "confirmation_token": ENV_CONFIRMATION_TOKEN,
    "secret": ENV_SECRET,
    "group_id": ENV_GROUP_ID,
    "port": ENV_PORT,
}

LOCAL_CONFIG_NAME = Path("vkbot.toml")
HOME_CONFIG_PATH = Path.home() / ".vkbot" / "vkbot.toml"

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class ConfigError(RuntimeError):
    pass


class BotSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    vk_token: NonEmptyStr
    confirmation_token: NonEmptyStr
    group_id: str
    secret: str = ""
    host: str = "0.0.0.0"
    port: Annotated[StrictInt, Field(ge=1, le=65535)] = 8080
    cmd_prefix: str = ""
    api_quota: Annotated[StrictInt, Field(gt=0)] = 20
    tick_interval_s: Annotated[float, Field(gt=0)] = 1.0
    stats_interval_s: Annotated[float, Field(gt=0)] = 10.0
    event_warnings: StrictBool = True

    @field_validator("group_id", mode="before")
    @classmethod
    def _group_id_as_decimal(cls, value: Any) -> str:
        if isinstance(value, bool):
            raise ValueError("expected an integer")
        if isinstance(value, int) and value > 0:
            return str(value)
        if isinstance(value, str) and value.strip().isdigit():
            return value.strip()
        raise ValueError("expected a positive integer")

    @field_validator("tick_interval_s", "stats_interval_s", mode="before")
    @classmethod
    def _number_not_bool(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("expected a number")
        return value


def _config_candidates() -> list[Path]:
    candidates = [Path.cwd() / LOCAL_CONFIG_NAME, HOME_CONFIG_PATH]
    if candidates[0] == candidates[1]:
        return [candidates[0]]
    return candidates


def _read_config(cfg_path: Path) -> dict:
    try:
        raw = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Missing config file {cfg_path}.") from None
    except OSError as e:
        raise ConfigError(f"Failed to read config file {cfg_path}: {e}") from e
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed TOML in {cfg_path}: {e}") from None


def load_config(path: str | Path | None = None) -> tuple[dict, Path]:
    if path:
        cfg_path = Path(path).expanduser()
        return _read_config(cfg_path), cfg_path

    for candidate in _config_candidates():
        if candidate.is_file():
            return _read_config(candidate), candidate

    raise ConfigError("Missing vkbot config.")


def _env(name: str) -> str | None:
    value = os.environ.get(name)
    if value and value.strip():
        return value.strip()
    return None


def _env_overrides() -> dict[str, Any]:
    """Config values set through the environment, which wins over the file."""
    overrides: dict[str, Any] = {}
    for key, name in ENV_OVERRIDES.items():
        value = _env(name)
        if value is None:
            continue
        if key == "port":
            try:
                overrides[key] = int(value)
            except ValueError:
                raise ConfigError(
                    f"Invalid {name} environment variable; expected an integer."
                ) from None
        else:
            overrides[key] = value
    return overrides


def _config_error(
    exc: ValidationError, config_path: Path, from_env: set[str]
) -> ConfigError:
    error = exc.errors()[0]
    key = ".".join(str(part) for part in error["loc"])
    if error["type"] == "missing":
        env = ENV_OVERRIDES.get(key)
        if env is not None:
            return ConfigError(
                f"Missing `{key}`. Set {env} environment variable "
                f"or add `{key}` to {config_path}."
            )
        return ConfigError(f"Missing `{key}` in {config_path}.")
    if key in from_env:
        return ConfigError(
            f"Invalid {ENV_OVERRIDES[key]} environment variable: {error['msg']}"
        )
    return ConfigError(f"Invalid `{key}` in {config_path}: {error['msg']}")


def settings_from_config(config: dict, config_path: Path) -> BotSettings:
    overrides = _env_overrides()
    try:
        return BotSettings.model_validate({**config, **overrides})
    except ValidationError as exc:
        raise _config_error(exc, config_path, set(overrides)) from exc


def load_settings(path: str | Path | None = None) -> tuple[BotSettings, Path]:
    config, config_path = load_config(path)
    return settings_from_config(config, config_path), config_path
