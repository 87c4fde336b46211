# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_identity

"""
Authorization URL construction.
"""

from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from authproxy_providers.config import ProviderConfig
from authproxy_providers.exceptions import ConfigurationError


def build_login_url(config: ProviderConfig, redirect_uri: str, state: str) -> str:
    """
    Builds the provider's authorization URL with the standard OAuth2 parameters.

    `redirect_uri`, `approval_prompt`, `client_id` and `response_type` replace any value
    already present on the configured login URL. `scope` and `state` are appended, so a
    login URL that already carries defaults for them keeps those values.
    Parameters are serialized sorted by key, so equal inputs yield identical URLs.

    Args:
        config: The provider configuration.
        redirect_uri: The callback URL the provider redirects back to.
        state: The opaque anti-CSRF state value.

    Returns:
        str: The absolute authorization URL.

    Raises:
        ConfigurationError: If no login URL is configured.
    """
    if not config.login_url:
        raise ConfigurationError(f"Provider '{config.provider_name}' has no login URL configured")

    parts = urlsplit(config.login_url)
    params = parse_qs(parts.query, keep_blank_values=True)

    params["redirect_uri"] = [redirect_uri]
    params["approval_prompt"] = [config.approval_prompt]
    params.setdefault("scope", []).append(config.scope)
    params["client_id"] = [config.client_id]
    params["response_type"] = ["code"]
    params.setdefault("state", []).append(state)

    query = urlencode(sorted(params.items()), doseq=True)
    return urlunsplit(parts._replace(query=query))
