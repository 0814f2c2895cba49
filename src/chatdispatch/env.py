import os
from dataclasses import dataclass, field

from .errors import ConfigError
from .types import DEFAULT_API_VERSION, EndpointConfig, RetryConfig

DEFAULT_PREFIX = "AZURE_OPENAI_"


@dataclass(frozen=True)
class Settings:
    endpoint: EndpointConfig
    api_key: str | None = field(default=None, repr=False)
    retry: RetryConfig = field(default_factory=RetryConfig)


def _parse_env_file(env_path: str) -> dict[str, str]:
    """Parse a simple .env file into a dict without modifying os.environ.

    Supports basic KEY=VALUE pairs, ignoring comments and blank lines.
    Surrounding single/double quotes are stripped if present.
    """
    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("export "):
                    line = line[len("export ") :]
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                if key:
                    values[key] = val
    except FileNotFoundError:
        # A missing file just means "environment only"
        pass
    return values


def _number(env_map: dict[str, str], name: str, cast, default):
    raw = env_map.get(name)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def load_settings_from_env(
    prefix: str = DEFAULT_PREFIX,
    env_path: str | None = None,
) -> Settings:
    """Read dispatcher settings from environment variables.

    Variables (after ``prefix``):
    - ENDPOINT (required)
    - DEPLOYMENT_NAME (required)
    - API_VERSION (optional, defaults to DEFAULT_API_VERSION)
    - API_KEY (optional secret; presence selects API-key mode)
    - MAX_RETRIES (optional int)
    - TIMEOUT (optional seconds)

    If 'env_path' is provided, variables from the .env file augment lookups
    without mutating the process environment. Values in the actual environment
    take precedence over the file.
    """
    file_env = _parse_env_file(env_path) if env_path else {}
    env_map: dict[str, str] = {**file_env, **os.environ}

    missing = [n for n in ("ENDPOINT", "DEPLOYMENT_NAME") if not env_map.get(prefix + n)]
    if missing:
        raise ConfigError(
            "Missing required configuration: " + ", ".join(prefix + n for n in missing)
        )

    defaults = RetryConfig()
    retry = RetryConfig(
        max_retries=_number(env_map, prefix + "MAX_RETRIES", int, defaults.max_retries),
        timeout=_number(env_map, prefix + "TIMEOUT", float, defaults.timeout),
    )
    if retry.max_retries < 0:
        raise ConfigError(f"{prefix}MAX_RETRIES must be >= 0")
    if not retry.timeout > 0:
        raise ConfigError(f"{prefix}TIMEOUT must be > 0")

    return Settings(
        endpoint=EndpointConfig(
            base_url=env_map[prefix + "ENDPOINT"],
            deployment_name=env_map[prefix + "DEPLOYMENT_NAME"],
            api_version=env_map.get(prefix + "API_VERSION") or DEFAULT_API_VERSION,
        ),
        api_key=env_map.get(prefix + "API_KEY") or None,
        retry=retry,
    )
