"""
Exchange Layer - signed REST access to OKX.

This module provides:
    - OkxRestClient: Async client for the OKX v5 REST API
    - OkxAPIError: Transport/HTTP failure
    - RateLimitError: HTTP 429 after retries
    - InvalidResponseError: Body is not JSON

Usage:
    from okx_gateway.exchange import OkxRestClient

    async with OkxRestClient(api_key, secret_key, passphrase) as client:
        resp = await client.get_positions()
"""

from .client import (
    InvalidResponseError,
    OkxAPIError,
    OkxRestClient,
    RateLimitError,
    sign_request,
)

__all__ = [
    "InvalidResponseError",
    "OkxAPIError",
    "OkxRestClient",
    "RateLimitError",
    "sign_request",
]
