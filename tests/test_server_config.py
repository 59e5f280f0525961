"""
Tests for fhir_mcp/server_config.py - flag/env/file precedence and validation.
"""

import json
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fhir_mcp.server_config import ConfigError, ServerConfig, load_config


@pytest.fixture
def no_file(tmp_path):
    return tmp_path / "absent.json"


def _write_config(tmp_path, data):
    path = tmp_path / "mcp-config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestPrecedence:

    def test_env_only(self, no_file):
        config = load_config(env={"FHIR_URL": "http://env/fhir/"}, config_path=no_file)
        assert config.url == "http://env/fhir"
        assert config.timeout_ms == 30000
        assert config.auth.type == "none"

    def test_flags_beat_env_beat_file(self, tmp_path):
        path = _write_config(tmp_path, {"url": "http://file/fhir", "timeout": 1000, "apiKey": "file-key"})
        config = load_config(
            overrides={"url": "http://flag/fhir"},
            env={"FHIR_URL": "http://env/fhir", "FHIR_TIMEOUT": "2000"},
            config_path=path,
        )
        assert config.url == "http://flag/fhir"
        assert config.timeout_ms == 2000
        assert config.api_key == "file-key"

    def test_empty_values_do_not_override(self, tmp_path):
        path = _write_config(tmp_path, {"url": "http://file/fhir"})
        config = load_config(overrides={"url": None}, env={"FHIR_URL": ""}, config_path=path)
        assert config.url == "http://file/fhir"

    def test_nested_auth_from_file(self, tmp_path):
        path = _write_config(tmp_path, {
            "url": "http://file/fhir",
            "auth": {
                "type": "client_credentials",
                "oauth": {"clientId": "cid", "clientSecret": "secret", "autoDiscover": True},
            },
        })
        config = load_config(env={}, config_path=path)
        assert config.auth.type == "client_credentials"
        assert config.auth.oauth.client_id == "cid"
        assert config.auth.oauth.auto_discover is True


class TestValidation:

    def test_missing_url(self, no_file):
        with pytest.raises(ConfigError, match="FHIR URL"):
            load_config(env={}, config_path=no_file)

    @pytest.mark.parametrize("timeout", ["abc", "0", "-5"])
    def test_bad_timeout(self, no_file, timeout):
        with pytest.raises(ConfigError, match="Timeout"):
            load_config(env={"FHIR_URL": "http://x", "FHIR_TIMEOUT": timeout}, config_path=no_file)

    def test_unknown_auth_type(self, no_file):
        with pytest.raises(ConfigError, match="Unknown auth type"):
            load_config(env={"FHIR_URL": "http://x", "FHIR_AUTH_TYPE": "kerberos"}, config_path=no_file)

    def test_bearer_needs_token(self, no_file):
        with pytest.raises(ConfigError, match="auth token"):
            load_config(env={"FHIR_URL": "http://x", "FHIR_AUTH_TYPE": "bearer"}, config_path=no_file)

    def test_client_credentials_needs_client(self, no_file):
        env = {"FHIR_URL": "http://x", "FHIR_AUTH_TYPE": "client_credentials", "FHIR_OAUTH_TOKEN_URL": "http://t"}
        with pytest.raises(ConfigError, match="client id"):
            load_config(env=env, config_path=no_file)

    def test_client_credentials_needs_token_url_or_discovery(self, no_file):
        env = {
            "FHIR_URL": "http://x",
            "FHIR_AUTH_TYPE": "client_credentials",
            "FHIR_OAUTH_CLIENT_ID": "cid",
            "FHIR_OAUTH_CLIENT_SECRET": "s",
        }
        with pytest.raises(ConfigError, match="token URL"):
            load_config(env=env, config_path=no_file)
        config = load_config(env={**env, "FHIR_OAUTH_AUTO_DISCOVER": "true"}, config_path=no_file)
        assert config.auth.oauth.auto_discover

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "mcp-config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="mcp-config.json"):
            load_config(env={"FHIR_URL": "http://x"}, config_path=path)

    def test_file_must_hold_object(self, tmp_path):
        path = _write_config(tmp_path, ["http://x"])
        with pytest.raises(ConfigError, match="JSON object"):
            load_config(env={}, config_path=path)


class TestPublicView:

    def test_secrets_are_redacted(self, no_file):
        config = load_config(
            env={"FHIR_URL": "http://x", "FHIR_AUTH_TYPE": "bearer", "FHIR_AUTH_TOKEN": "tok", "FHIR_API_KEY": "k"},
            config_path=no_file,
        )
        view = config.public_view()
        assert view == {
            "fhirUrl": "http://x",
            "timeout": 30000,
            "hasApiKey": True,
            "authType": "bearer",
            "hasAuthToken": True,
        }
        assert "tok" not in json.dumps(view)

    def test_oauth_view(self):
        config = ServerConfig(url="http://x")
        assert "oauth" not in config.public_view()
        assert config.timeout_seconds == 30.0
