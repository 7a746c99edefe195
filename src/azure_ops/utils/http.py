"""Shared HTTP utilities."""

from __future__ import annotations

import logging
from urllib.parse import urlparse

import httpx

_logger = logging.getLogger(__name__)

_PROBE_ALLOWED_SCHEMES = frozenset({"http", "https"})


def validate_probe_url(url: str, *, label: str = "URL") -> str:
    """Validate a URL before probing it.

    Returns the stripped URL unchanged otherwise. Raises ``ValueError`` when
    the scheme is not http(s) or the host is missing.
    """
    candidate = url.strip()
    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in _PROBE_ALLOWED_SCHEMES:
        raise ValueError(f"{label} must use http or https: {url}")
    if not parsed.netloc:
        raise ValueError(f"{label} must include host: {url}")
    return candidate


def is_reachable_status(status_code: int | None) -> bool:
    """2xx and 3xx count as reachable."""
    return status_code is not None and 200 <= status_code < 400


def probe_status(
    url: str,
    *,
    timeout_seconds: float,
    max_redirects: int = 10,
    client: httpx.Client | None = None,
) -> int | None:
    """GET ``url`` following redirects and return the final status code.

    Transport failures (DNS, connect, timeout, too many redirects) return
    ``None`` instead of raising.
    """
    owns_client = client is None
    if client is None:
        client = httpx.Client(
            follow_redirects=True,
            max_redirects=max_redirects,
            timeout=timeout_seconds,
        )
    try:
        response = client.get(url)
        return response.status_code
    except httpx.HTTPError as exc:
        _logger.info("Probe of %s failed: %s", url, exc)
        return None
    finally:
        if owns_client:
            client.close()
