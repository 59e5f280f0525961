"""
Server configuration.

Values are resolved from three sources, highest precedence first:
command-line flags, environment variables, and mcp-config.json in the
working directory.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from fhir_mcp.logging_utils import get_logger

logger = get_logger(__name__)

CONFIG_FILENAME = "mcp-config.json"
DEFAULT_TIMEOUT_MS = 30000
AUTH_TYPES = ("none", "bearer", "client_credentials")


class ConfigError(ValueError):
    """Configuration is missing or inconsistent."""


@dataclass
class OAuthConfig:
    token_url: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    scope: Optional[str] = None
    auto_discover: bool = False


@dataclass
class AuthConfig:
    type: str = "none"
    token: Optional[str] = None
    oauth: Optional[OAuthConfig] = None


@dataclass
class ServerConfig:
    url: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    api_key: Optional[str] = None
    auth: AuthConfig = field(default_factory=AuthConfig)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    def public_view(self) -> Dict[str, Any]:
        """Redacted view safe to hand to clients. Secrets are reported by presence only."""
        view: Dict[str, Any] = {
            "fhirUrl": self.url,
            "timeout": self.timeout_ms,
            "hasApiKey": bool(self.api_key),
            "authType": self.auth.type,
            "hasAuthToken": bool(self.auth.token),
        }
        if self.auth.oauth is not None:
            view["oauth"] = {
                "tokenUrl": self.auth.oauth.token_url,
                "clientId": self.auth.oauth.client_id,
                "hasClientSecret": bool(self.auth.oauth.client_secret),
                "scope": self.auth.oauth.scope,
                "autoDiscover": self.auth.oauth.auto_discover,
            }
        return view


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes")


def _read_config_file(path: Path) -> Dict[str, Any]:
    """Flatten mcp-config.json into the same keys used by env and CLI."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed to read {path.name}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a JSON object")

    logger.info(f"Loaded config from {path.name}")
    auth = data.get("auth") or {}
    oauth = auth.get("oauth") or {}
    return {
        "url": data.get("url"),
        "timeout_ms": data.get("timeout"),
        "api_key": data.get("apiKey"),
        "auth_type": auth.get("type"),
        "auth_token": auth.get("token"),
        "oauth_token_url": oauth.get("tokenUrl"),
        "oauth_client_id": oauth.get("clientId"),
        "oauth_client_secret": oauth.get("clientSecret"),
        "oauth_scope": oauth.get("scope"),
        "oauth_auto_discover": oauth.get("autoDiscover"),
    }


def _read_env(env: Mapping[str, str]) -> Dict[str, Any]:
    return {
        "url": env.get("FHIR_URL"),
        "timeout_ms": env.get("FHIR_TIMEOUT"),
        "api_key": env.get("FHIR_API_KEY"),
        "auth_type": env.get("FHIR_AUTH_TYPE"),
        "auth_token": env.get("FHIR_AUTH_TOKEN"),
        "oauth_token_url": env.get("FHIR_OAUTH_TOKEN_URL"),
        "oauth_client_id": env.get("FHIR_OAUTH_CLIENT_ID"),
        "oauth_client_secret": env.get("FHIR_OAUTH_CLIENT_SECRET"),
        "oauth_scope": env.get("FHIR_OAUTH_SCOPE"),
        "oauth_auto_discover": env.get("FHIR_OAUTH_AUTO_DISCOVER"),
    }


def _merge(*layers: Mapping[str, Any]) -> Dict[str, Any]:
    """Later layers win, but only where they actually set a value."""
    merged: Dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            if value is not None and value != "":
                merged[key] = value
    return merged


def load_config(
    overrides: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None,
) -> ServerConfig:
    """
    Build a ServerConfig.

    Args:
        overrides: Values from the command line (keys as in _read_env).
        env: Environment mapping, defaults to os.environ.
        config_path: Config file location, defaults to ./mcp-config.json.

    Raises:
        ConfigError: no FHIR URL, an unknown auth type, or a bad timeout.
    """
    env = os.environ if env is None else env
    config_path = config_path or Path.cwd() / CONFIG_FILENAME

    file_values = _read_config_file(config_path) if config_path.exists() else {}
    values = _merge(file_values, _read_env(env), overrides or {})

    url = values.get("url")
    if not url:
        raise ConfigError(
            "FHIR URL must be provided via --fhir-url, the FHIR_URL environment variable, "
            f"or {CONFIG_FILENAME}"
        )

    try:
        timeout_ms = int(values.get("timeout_ms", DEFAULT_TIMEOUT_MS))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Timeout must be an integer number of milliseconds: {values.get('timeout_ms')}") from e
    if timeout_ms <= 0:
        raise ConfigError(f"Timeout must be positive: {timeout_ms}")

    auth_type = values.get("auth_type", "none")
    if auth_type not in AUTH_TYPES:
        raise ConfigError(f"Unknown auth type '{auth_type}'. Expected one of: {', '.join(AUTH_TYPES)}")

    oauth = None
    if auth_type == "client_credentials":
        oauth = OAuthConfig(
            token_url=values.get("oauth_token_url"),
            client_id=values.get("oauth_client_id"),
            client_secret=values.get("oauth_client_secret"),
            scope=values.get("oauth_scope"),
            auto_discover=_truthy(values.get("oauth_auto_discover", False)),
        )
        if not oauth.client_id or not oauth.client_secret:
            raise ConfigError("client_credentials auth requires an OAuth client id and client secret")
        if not oauth.token_url and not oauth.auto_discover:
            raise ConfigError("client_credentials auth requires a token URL or auto-discovery")

    if auth_type == "bearer" and not values.get("auth_token"):
        raise ConfigError("bearer auth requires an auth token")

    if values.get("api_key"):
        logger.warning("FHIR API key configuration is deprecated; use bearer auth instead")

    return ServerConfig(
        url=str(url).rstrip("/"),
        timeout_ms=timeout_ms,
        api_key=values.get("api_key"),
        auth=AuthConfig(type=auth_type, token=values.get("auth_token"), oauth=oauth),
    )
