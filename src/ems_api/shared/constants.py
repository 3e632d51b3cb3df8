"""
EMS API Client - Constants

This module contains the wire-level constants shared by the configuration,
token exchange and transport layers.
"""

SDK_VERSION = "0.1.0"

# ========== ENDPOINTS ==========

DEFAULT_ENDPOINT = "https://ems.efoqa.com/api"
TOKEN_PATH = "/token"

# ========== HEADERS ==========

HEADER_AUTHORIZATION = "Authorization"
HEADER_USER_AGENT = "User-Agent"
HEADER_ACCEPT_ENCODING = "Accept-Encoding"
HEADER_APPLICATION_NAME = "X-Adi-Application-Name"

USER_AGENT = f"ems-api-sdk Python v{SDK_VERSION}"
AUTH_SCHEME = "Bearer"

# Headers whose values never reach the logs
SENSITIVE_HEADERS = ("authorization", "proxy-authorization", "x-api-key")

# Payload fields whose values never reach the logs
SENSITIVE_FIELDS = (
    "password",
    "token",
    "access_token",
    "refresh_token",
    "trusted_token",
    "client_secret",
)

REDACTED = "[REDACTED]"

# ========== TOKEN EXCHANGE ==========

GRANT_TYPE_PASSWORD = "password"
GRANT_TYPE_TRUSTED = "trusted"
TRUSTED_TOKEN_FIELD = "token"

# Request extension used to tell the client layer that authentication failed
AUTH_ERROR_EXTENSION = "ems_api.auth_error"

# ========== ENVIRONMENT VARIABLES ==========

ENV_ENDPOINT = "EmsApiEndpoint"
ENV_USERNAME = "EmsApiUsername"
ENV_PASSWORD = "EmsApiPassword"  # base64 encoded
ENV_PROXY_SERVER = "EmsApiProxyServer"
ENV_PROXY_PORT = "EmsApiProxyPort"
ENV_PROXY_USERNAME = "EmsApiProxyUsername"
ENV_PROXY_PASSWORD = "EmsApiProxyPassword"

# ========== PORTS ==========

HTTPS_PORT = 443
HTTP_PORT = 80
