"""Shared HTTP plumbing for every outbound provider call.

All provider traffic goes through :func:`post_json`, which:

- sends one JSON POST with a per-call :class:`httpx.Timeout`;
- converts transport failures (timeouts, refused connections) into
  :class:`~voidweaver.core.errors.InternalError`;
- classifies any non-2xx status with
  :func:`~voidweaver.core.errors.classify_status`, logging the raw provider
  body so opaque third-party failures can be diagnosed.

No retries are performed here.  A rate-limited or failed call surfaces to the
caller immediately.

Client Lifecycle
----------------
A single :class:`httpx.AsyncClient` is created by the API lifespan and shared
by all adapters (see :func:`create_http_client`).  Tests inject a client built
on :class:`httpx.MockTransport` instead.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from voidweaver.core.config import VoidWeaverConfig
from voidweaver.core.errors import InternalError, classify_status

logger = logging.getLogger(__name__)


def create_http_client(config: VoidWeaverConfig) -> httpx.AsyncClient:
    """Build the shared async client used by all provider adapters."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.image_timeout, connect=config.connect_timeout),
        follow_redirects=False,
    )


def make_timeout(config: VoidWeaverConfig, read_timeout: float) -> httpx.Timeout:
    """Return a timeout with the shared connect budget and a call-specific read budget."""
    return httpx.Timeout(read_timeout, connect=config.connect_timeout)


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout: httpx.Timeout,
    provider: str,
) -> httpx.Response:
    """POST *payload* and return the successful response.

    Args:
        client: Shared async HTTP client.
        url: Fully-qualified endpoint URL.  Must not embed credentials.
        payload: JSON-serialisable request body.
        headers: Request headers, including the credential header.
        timeout: Per-call timeout.
        provider: Display name used in log lines and error messages.

    Returns:
        The 2xx response.

    Raises:
        InvalidCredentialError: Provider answered 401/403.
        RateLimitedError: Provider answered 429.
        ProviderError: Provider answered any other non-2xx status.
        InternalError: The request could not be completed at all.
    """
    try:
        response = await client.post(url, json=payload, headers=headers, timeout=timeout)
    except httpx.TimeoutException as exc:
        logger.error(f"{provider} request timed out: {exc!r}")
        raise InternalError(f"{provider} request timed out") from exc
    except httpx.HTTPError as exc:
        logger.error(f"{provider} request failed: {exc!r}")
        raise InternalError(f"{provider} request failed: {exc}") from exc

    if not response.is_success:
        body = response.text
        logger.error(f"{provider} call failed: {response.status_code} - {body}")
        raise classify_status(response.status_code, body, provider)

    return response
