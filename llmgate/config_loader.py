"""Configuration loading from environment variables and an optional YAML file."""

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from dotenv import dotenv_values

from .core.exceptions import ConfigurationError
from .core.models import Model, ModelRegistry

logger = logging.getLogger("llmgate")

DEFAULT_CONFIG_PATH = "configs/config.yaml"
DEFAULT_GATEWAY_HOST = "https://gateway.ai.cloudflare.com"
DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 8000
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_OWNED_BY = "cloudflare"

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


@dataclass(frozen=True)
class Settings:
    """Process-wide gateway settings. Built once at startup, never mutated."""

    registry: ModelRegistry
    proxy_api_key: str
    gateway_key: str
    gateway_host: str = DEFAULT_GATEWAY_HOST
    server_host: str = DEFAULT_SERVER_HOST
    server_port: int = DEFAULT_SERVER_PORT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    owned_by: str = DEFAULT_OWNED_BY
    log_level: str = "INFO"


def resolve_config_path(path: str) -> Path:
    """Resolve config path relative to project root if needed."""
    if Path(path).is_absolute():
        return Path(path)
    project_root = Path(__file__).parent.parent
    return project_root / path


def load_env_values(env_path: Path) -> dict[str, str]:
    """Load environment values from a .env file without mutating os.environ."""
    if not env_path.exists():
        return {}
    raw_values = dotenv_values(env_path)
    return {key: value for key, value in raw_values.items() if value is not None}


def load_config_file(
    path: Optional[str] = None, env_values: Optional[Mapping[str, str]] = None
) -> dict:
    """Load the optional YAML config file.

    A missing file is not an error when no explicit path was given; every
    setting can also come from the environment.
    """
    explicit = path is not None
    config_path = resolve_config_path(path or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        if explicit:
            raise ConfigurationError(f"Config file not found: {config_path}")
        logger.debug("No config file at %s, using environment only", config_path)
        return {}

    logger.info(f"Loading configuration from {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return _substitute_env_vars(data, env_values or {})


def _substitute_env_vars(obj: Any, env_values: Mapping[str, str]) -> Any:
    """Recursively replace ${VAR} and $VAR placeholders in string values."""
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v, env_values) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(item, env_values) for item in obj]
    if isinstance(obj, str):

        def replace_var(match):
            var_name = match.group(1) or match.group(2)
            value = env_values.get(var_name)
            if value is None:
                value = os.getenv(var_name)
            if value is None:
                logger.warning(
                    f"CONFIG ERROR: Environment variable '${var_name}' is not set! "
                    f"The literal placeholder will be used."
                )
                return match.group(0)
            return value

        return _ENV_PATTERN.sub(replace_var, obj)
    return obj


def parse_models_config(raw: Any) -> list[Model]:
    """Parse the model list from a JSON string or already-structured data.

    Raises:
        ConfigurationError: If the value cannot be parsed or an entry is
            missing ``id``, ``name`` or ``endpoint``.
    """
    if raw is None:
        raise ConfigurationError("MODELS_CONFIG is not set")
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error(f"Failed to parse MODELS_CONFIG: {exc}")
            raise ConfigurationError(f"MODELS_CONFIG is not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise ConfigurationError("MODELS_CONFIG must be a list of models")

    models: list[Model] = []
    for position, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"Model entry {position} must be an object")
        fields = {}
        for key in ("id", "name", "endpoint"):
            value = entry.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(
                    f"Model entry {position} is missing a '{key}' string"
                )
            fields[key] = value.strip()
        models.append(Model(**fields))
    return models


def _to_int(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer setting %r, using %s", value, default)
        return default


def _to_float(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid number setting %r, using %s", value, default)
        return default
    return parsed if parsed > 0 else default


def load_settings(
    path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    env_path: Optional[str] = None,
) -> Settings:
    """Build the gateway settings.

    Values are layered: YAML config file, then ``.env`` file, then the
    process environment (or ``env`` when given, which replaces it).

    Args:
        path: Optional YAML config path. Defaults to ``LLMGATE_CONFIG`` or
            ``configs/config.yaml`` when present.
        env: Environment mapping to read instead of ``os.environ``.
        env_path: Optional ``.env`` file path. Defaults to ``.env`` in the
            project root.

    Raises:
        ConfigurationError: On any missing or invalid required value.
    """
    environ: dict[str, str] = dict(os.environ if env is None else env)
    dotenv = load_env_values(resolve_config_path(env_path or ".env"))
    merged_env = {**dotenv, **environ}

    file_cfg = load_config_file(path or merged_env.get("LLMGATE_CONFIG"), merged_env)
    server_cfg = file_cfg.get("server") or {}

    def pick(env_key: str, file_value: Any = None) -> Any:
        value = merged_env.get(env_key)
        return value if value not in (None, "") else file_value

    models = parse_models_config(pick("MODELS_CONFIG", file_cfg.get("models")))
    if not models:
        raise ConfigurationError("No models found in config")

    proxy_api_key = pick("PROXY_API_KEY", file_cfg.get("proxy_api_key"))
    if not proxy_api_key:
        raise ConfigurationError("PROXY_API_KEY is not set")
    gateway_key = pick("CF_GATEWAY_KEY", file_cfg.get("gateway_key"))
    if not gateway_key:
        raise ConfigurationError("CF_GATEWAY_KEY is not set")

    settings = Settings(
        registry=ModelRegistry(models),
        proxy_api_key=str(proxy_api_key),
        gateway_key=str(gateway_key),
        gateway_host=str(pick("GATEWAY_HOST", file_cfg.get("gateway_host")) or DEFAULT_GATEWAY_HOST),
        server_host=str(pick("LLMGATE_HOST", server_cfg.get("host")) or DEFAULT_SERVER_HOST),
        server_port=_to_int(pick("LLMGATE_PORT", server_cfg.get("port")), DEFAULT_SERVER_PORT),
        request_timeout=_to_float(
            pick("LLMGATE_REQUEST_TIMEOUT", file_cfg.get("request_timeout")),
            DEFAULT_REQUEST_TIMEOUT,
        ),
        owned_by=str(pick("LLMGATE_OWNED_BY", file_cfg.get("owned_by")) or DEFAULT_OWNED_BY),
        log_level=str(pick("LLMGATE_LOG_LEVEL", file_cfg.get("log_level")) or "INFO").upper(),
    )
    logger.info(f"Configuration loaded with {len(settings.registry)} models")
    return settings
