"""
Tests for EMS API client configuration model.

This module tests the configuration snapshot including credential validation,
change detection, proxy port resolution and copying.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from ems_api.core.exceptions import ConfigurationError
from ems_api.core.models import EmsApiConfig
from ems_api.shared.constants import DEFAULT_ENDPOINT, HEADER_APPLICATION_NAME, USER_AGENT


class TestEmsApiConfigCreation:
    """Test creating configuration snapshots."""

    def test_defaults(self):
        """Test default values."""
        config = EmsApiConfig()

        assert config.endpoint == DEFAULT_ENDPOINT
        assert config.user_name is None
        assert config.proxy_port == 0
        assert config.use_compression is True
        assert config.throw_on_auth_failure is True
        assert config.throw_on_api_failure is True
        assert config.verify_ssl is True

    def test_endpoint_trailing_slash_removed(self):
        """Test that trailing slashes are stripped from the endpoint."""
        config = EmsApiConfig(endpoint="https://ems.example.com/api/")

        assert config.endpoint == "https://ems.example.com/api"

    def test_negative_proxy_port_rejected(self):
        """Test that a negative proxy port fails validation."""
        with pytest.raises(PydanticValidationError):
            EmsApiConfig(proxy_port=-1)

    def test_config_is_frozen(self, ems_config):
        """Test that snapshots cannot be mutated in place."""
        with pytest.raises(PydanticValidationError):
            ems_config.password = "other"

    def test_secrets_hidden_in_repr(self):
        """Test that secrets never appear in repr."""
        config = EmsApiConfig(
            user_name="user", password="hunter2", trusted_token="tok123", proxy_password="proxypw"
        )
        text = repr(config)

        assert "hunter2" not in text
        assert "tok123" not in text
        assert "proxypw" not in text
        assert "user" in text


class TestCredentialValidation:
    """Test the credential invariant."""

    def test_username_and_password_valid(self, ems_config):
        assert ems_config.validate_credentials() is None
        ems_config.ensure_valid()

    def test_trusted_token_valid(self, trusted_config):
        assert trusted_config.validate_credentials() is None

    @pytest.mark.parametrize(
        "fields",
        [
            {},
            {"user_name": "", "password": None},
            {"user_name": "", "trusted_token": ""},
            {"password": "orphan_password"},
        ],
    )
    def test_no_credentials_invalid(self, fields):
        """Test that missing both credential forms is rejected."""
        config = EmsApiConfig(**fields)

        assert config.validate_credentials() == (
            "Either a username and password or a trusted token must be provided."
        )
        with pytest.raises(ConfigurationError):
            config.ensure_valid()

    @pytest.mark.parametrize("password", [None, ""])
    def test_username_without_password_invalid(self, password):
        """Test that a username with an empty password is rejected."""
        config = EmsApiConfig(user_name="user", password=password, trusted_token="tok")

        assert config.validate_credentials() == "A password was not provided for the given username."
        with pytest.raises(ConfigurationError):
            config.ensure_valid()

    def test_empty_endpoint_invalid(self):
        """Test that an empty endpoint is rejected."""
        config = EmsApiConfig(endpoint="", user_name="user", password="pass")

        assert config.validate_credentials() == "The API endpoint is not set."

    def test_validation_does_not_mutate(self):
        config = EmsApiConfig(user_name="user")
        before = config.model_dump()

        config.validate_credentials()

        assert config.model_dump() == before

    def test_use_trusted_token(self, ems_config, trusted_config):
        assert ems_config.use_trusted_token() is False
        assert trusted_config.use_trusted_token() is True


class TestChangeDetection:
    """Test authentication and proxy change detection."""

    @pytest.mark.parametrize(
        "changes",
        [
            {"proxy_server": "myproxy.local"},
            {"proxy_port": 8080},
            {"proxy_user_name": "proxy_user"},
            {"proxy_password": "proxy_pass"},
        ],
    )
    def test_proxy_field_changes(self, ems_config, changes):
        """Test that proxy-only differences are not authentication changes."""
        other = ems_config.replace(**changes)

        assert other.authentication_changed(ems_config) is False
        assert other.proxy_changed(ems_config) is True

    @pytest.mark.parametrize(
        "changes",
        [
            {"endpoint": "https://other.example.com/api"},
            {"user_name": "other_user"},
            {"password": "other_password"},
            {"trusted_token": "new_trusted_token"},
        ],
    )
    def test_authentication_field_changes(self, ems_config, changes):
        """Test that credential differences are not proxy changes."""
        other = ems_config.replace(**changes)

        assert other.authentication_changed(ems_config) is True
        assert other.proxy_changed(ems_config) is False

    def test_unrelated_changes(self, ems_config):
        """Test that flags like compression affect neither axis."""
        other = ems_config.replace(use_compression=False, application_name="app")

        assert other.authentication_changed(ems_config) is False
        assert other.proxy_changed(ems_config) is False


class TestProxyPort:
    """Test proxy port helpers."""

    def test_explicit_port_wins(self):
        config = EmsApiConfig(endpoint="https://ems.example.com/api", proxy_port=3128)

        assert config.resolve_proxy_port() == 3128

    def test_https_endpoint_port(self):
        config = EmsApiConfig(endpoint="https://ems.example.com/api")

        assert config.resolve_proxy_port() == 443

    def test_http_endpoint_port(self):
        config = EmsApiConfig(endpoint="http://ems.example.com/api")

        assert config.resolve_proxy_port() == 80

    def test_unparseable_endpoint_defaults_to_443(self):
        config = EmsApiConfig(endpoint="not a uri")

        assert config.resolve_proxy_port() == 443

    @pytest.mark.parametrize(
        "server,expected",
        [
            ("myproxy.local:9000", True),
            ("http://myproxy.local:9000/", True),
            ("myproxy.local", False),
            ("http://myproxy.local", False),
            ("http://myproxy.local:port", False),
        ],
    )
    def test_proxy_server_includes_port(self, server, expected):
        config = EmsApiConfig(proxy_server=server)

        assert config.proxy_server_includes_port() is expected

    def test_no_proxy_server_has_no_port(self):
        assert EmsApiConfig().proxy_server_includes_port() is False


class TestCopying:
    """Test clone() and replace()."""

    def test_clone_copies_every_field(self):
        """Test that clone keeps proxy settings."""
        config = EmsApiConfig(
            user_name="user",
            password="pass",
            proxy_server="myproxy.local",
            proxy_port=3128,
            proxy_user_name="proxy_user",
            proxy_password="proxy_pass",
            application_name="app",
            use_compression=False,
        )
        copy = config.clone()

        assert copy == config
        assert copy is not config
        assert copy.proxy_server == "myproxy.local"
        assert copy.proxy_port == 3128
        assert copy.proxy_user_name == "proxy_user"
        assert copy.proxy_password == "proxy_pass"

    def test_replace_returns_new_snapshot(self, ems_config):
        other = ems_config.replace(password="changed")

        assert other.password == "changed"
        assert ems_config.password == "test_password"
        assert other.user_name == ems_config.user_name

    def test_replace_validates(self, ems_config):
        with pytest.raises(PydanticValidationError):
            ems_config.replace(proxy_port=70000)


class TestDefaultHeaders:
    """Test headers sent with every request."""

    def test_default_headers(self, ems_config):
        headers = ems_config.default_headers()

        assert headers["User-Agent"] == USER_AGENT
        assert headers["Accept-Encoding"] == "gzip"
        assert HEADER_APPLICATION_NAME not in headers

    def test_application_name_header(self, ems_config):
        headers = ems_config.replace(application_name="FlightTool").default_headers()

        assert headers[HEADER_APPLICATION_NAME] == "FlightTool"

    def test_compression_disabled(self, ems_config):
        headers = ems_config.replace(use_compression=False).default_headers()

        assert headers["Accept-Encoding"] == "identity"
