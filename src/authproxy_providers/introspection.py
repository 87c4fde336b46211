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
Access token validation against the provider's introspection endpoint.
"""

from collections.abc import Mapping
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

import httpx

from authproxy_providers.config import ProviderConfig
from authproxy_providers.utils.logger import logger


def strip_param(param: str, endpoint: str) -> str:
    """
    Truncates the value of `param` in `endpoint` to half its length for logging.
    """
    parts = urlsplit(endpoint)
    if not parts.query:
        return endpoint

    values = parse_qs(parts.query, keep_blank_values=True)
    current = values.get(param)
    if not current or not current[0]:
        return endpoint

    val = current[0]
    values[param] = [val[: len(val) // 2] + "..."]
    return urlunsplit(parts._replace(query=urlencode(sorted(values.items()), doseq=True)))


def strip_token(endpoint: str) -> str:
    return strip_param("access_token", endpoint)


def validate_token(
    config: ProviderConfig,
    access_token: str,
    client: httpx.Client,
    headers: Mapping[str, str] | None = None,
) -> bool:
    """
    Checks whether `access_token` is currently accepted by `config.validate_url`.

    Without `headers` the token is sent as the `access_token` query parameter; with
    `headers` (e.g. an Authorization header) the URL is called as configured.
    Failures are logged and reported as False, never raised.

    Args:
        config: The provider configuration.
        access_token: The token to validate.
        client: The HTTP client.
        headers: Optional request headers carrying the token.

    Returns:
        bool: True only if the endpoint answers 200.
    """
    if not access_token or not config.validate_url:
        return False

    endpoint = config.validate_url
    if not headers:
        separator = "&" if urlsplit(endpoint).query else "?"
        endpoint = f"{endpoint}{separator}{urlencode({'access_token': access_token})}"

    try:
        response = client.get(endpoint, headers=dict(headers or {}))
    except httpx.RequestError as e:
        logger.warning(f"token validation request to {strip_token(endpoint)} failed: {e}")
        return False

    logger.debug(f"{response.status_code} GET {strip_token(endpoint)}")
    if response.status_code == 200:
        return True

    logger.info(f"token validation request failed: status {response.status_code} - {response.text}")
    return False
