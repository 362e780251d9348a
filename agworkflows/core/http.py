# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Shared HTTP client handling for registry and workflow downloads"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx


def create_client(
    timeout: Optional[float] = None, verify_ssl: bool = True
) -> httpx.AsyncClient:
    """
    Build the client used for registry and workflow requests.

    ``timeout=None`` disables httpx timeouts; callers that want a bound
    pass one explicitly.
    """
    return httpx.AsyncClient(
        timeout=timeout,
        verify=verify_ssl,
        follow_redirects=True,
    )


@asynccontextmanager
async def open_client(
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = None,
    verify_ssl: bool = True,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield ``client`` unchanged, or a short-lived client owned by this block"""
    if client is not None:
        yield client
        return

    async with create_client(timeout=timeout, verify_ssl=verify_ssl) as owned:
        yield owned


def describe_http_error(error: httpx.HTTPError) -> str:
    """Human-readable reason for a transport-level failure"""
    message = str(error)
    return message or error.__class__.__name__


def describe_status(response: httpx.Response) -> str:
    """Human-readable reason for a non-success response"""
    reason = response.reason_phrase
    return f"HTTP {response.status_code} {reason}".strip()
