"""Configuration models and loading."""

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from core.exceptions import ConfigurationError

CONFIG_DIR = Path.home() / ".config" / "keyhole-proxy"
CONFIG_FILE = CONFIG_DIR / "config.json"

# Environment overrides understood by the original deployment scripts
ENV_OVERRIDES = {
    "APIS_PATH": "apis_path",
    "HOST": "host",
    "PORT": "port",
    "SSL_CERT_PATH": "ssl_cert_path",
    "SSL_KEY_PATH": "ssl_key_path",
}


class ProxySettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 3000
    apis_path: str = "apis.json"
    ssl_cert_path: str | None = None
    ssl_key_path: str | None = None

    @property
    def tls_enabled(self) -> bool:
        return bool(self.ssl_cert_path and self.ssl_key_path)


class ClientSettings(BaseModel):
    timeout: float = 30.0
    max_connections: int = 100
    max_keepalive_connections: int = 20


class CorsSettings(BaseModel):
    allow_origins: list[str] = Field(default_factory=lambda: ["*"])
    allow_methods: list[str] = Field(default_factory=lambda: ["GET", "POST", "DELETE"])
    allow_headers: list[str] = Field(default_factory=lambda: ["*"])


class LimitsSettings(BaseModel):
    max_body_size: int = 10 * 1024 * 1024
    keep_alive_timeout: int = 5


class Config(BaseModel):
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    client: ClientSettings = Field(default_factory=ClientSettings)
    cors: CorsSettings = Field(default_factory=CorsSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)


def load_config(
    config_file: Path = CONFIG_FILE,
    environ: dict[str, str] | None = None,
) -> Config:
    """Load configuration from JSON file, creating default if needed.

    Environment variables listed in ``ENV_OVERRIDES`` win over file values.
    """
    config = _read_config_file(config_file)
    return apply_env_overrides(config, os.environ if environ is None else environ)


def apply_env_overrides(config: Config, environ) -> Config:
    """Return a copy of ``config`` with proxy settings taken from the environment.

    Raises ConfigurationError when an override has the wrong type.
    """
    overrides = {
        field: environ[name]
        for name, field in ENV_OVERRIDES.items()
        if environ.get(name)
    }
    if not overrides:
        return config
    try:
        proxy = ProxySettings.model_validate({**config.proxy.model_dump(), **overrides})
    except ValidationError as e:
        names = ", ".join(name for name, field in ENV_OVERRIDES.items() if field in overrides)
        raise ConfigurationError(f"invalid environment override ({names}): {e}") from e
    return config.model_copy(update={"proxy": proxy})


def _read_config_file(config_file: Path) -> Config:
    if not config_file.exists():
        config_file.parent.mkdir(parents=True, exist_ok=True)
        default = Config()
        config_file.write_text(default.model_dump_json(indent=2))
        return default

    try:
        data = json.loads(config_file.read_text())
        return Config.model_validate(data)
    except (json.JSONDecodeError, ValidationError):
        # Backup corrupted config and recreate default
        backup = config_file.with_suffix(".json.bak")
        config_file.rename(backup)
        default = Config()
        config_file.write_text(default.model_dump_json(indent=2))
        return default
