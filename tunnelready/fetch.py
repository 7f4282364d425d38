from __future__ import annotations

import logging

import httpx

from .errors import mark_retryable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0
# Gateway-style statuses seen while a load balancer is still wiring up.
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({502, 503, 504})


def address_url(address: str, scheme: str = "http") -> str:
    address = address.strip()
    if not address:
        raise ValueError("address is empty")
    if "://" in address:
        return address
    return f"{scheme}://{address}"


def fetch_body(
    address: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    client: httpx.Client | None = None,
) -> str:
    url = address_url(address)
    try:
        if client is None:
            with httpx.Client(timeout=timeout) as owned:
                response = owned.get(url)
        else:
            response = client.get(url, timeout=timeout)
    except httpx.TransportError as exc:
        logger.debug("GET %s failed: %s", url, exc)
        raise mark_retryable(exc) from exc

    if response.status_code in RETRYABLE_STATUS_CODES:
        error = httpx.HTTPStatusError(
            f"GET {url} returned {response.status_code}",
            request=response.request,
            response=response,
        )
        raise mark_retryable(error) from error

    body = response.text
    if not body:
        raise RuntimeError(f"GET {url} returned an empty body (status {response.status_code})")
    return body
