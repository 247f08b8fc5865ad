"""Outbound HTTP helpers that report failures as values instead of raising."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Optional

import requests

import settings

logger = logging.getLogger(__name__)

SESSION = requests.Session()
SESSION_HEADERS = {
    'User-Agent': settings.USER_AGENT,
    'Accept': 'text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
}


@dataclass(frozen=True)
class FetchResult:
    ok: bool
    value: Any = None
    error: str = ''
    status: Optional[int] = None

    @classmethod
    def success(cls, value, status=None):
        return cls(ok=True, value=value, status=status)

    @classmethod
    def failure(cls, error, status=None):
        return cls(ok=False, error=error, status=status)

    def unwrap_or(self, default):
        return self.value if self.ok else default


def _request(method, url, *, params=None, json_body=None, headers=None, timeout=None, as_json=True):
    merged = {**SESSION_HEADERS, **(headers or {})}
    timeout = timeout or settings.HTTP_TIMEOUT
    try:
        if method == 'POST':
            response = SESSION.post(url, params=params, json=json_body, headers=merged, timeout=timeout)
        else:
            response = SESSION.get(url, params=params, headers=merged, timeout=timeout)
    except requests.Timeout:
        logger.warning(f"Timeout after {timeout}s: {method} {url}")
        return FetchResult.failure('timeout')
    except requests.RequestException as e:
        logger.warning(f"Request failed: {method} {url}: {e}")
        return FetchResult.failure(str(e) or e.__class__.__name__)

    status = response.status_code
    if not 200 <= status < 300:
        logger.warning(f"HTTP {status} from {method} {url}")
        return FetchResult.failure(f"HTTP {status}", status)

    if not as_json:
        return FetchResult.success(response.text, status)
    try:
        return FetchResult.success(response.json(), status)
    except ValueError:
        logger.warning(f"Invalid JSON from {url}")
        return FetchResult.failure('invalid JSON', status)


def fetch_json(url, params=None, timeout=None, headers=None):
    """GET a JSON document."""
    return _request('GET', url, params=params, headers=headers, timeout=timeout)


def fetch_text(url, params=None, timeout=None, headers=None):
    """GET a page body as text."""
    return _request('GET', url, params=params, headers=headers, timeout=timeout, as_json=False)


def post_json(url, payload, timeout=None, headers=None):
    """POST a JSON body and decode the JSON reply."""
    return _request('POST', url, json_body=payload, headers=headers, timeout=timeout)


def fetch_json_with_retry(url, accept, params=None, timeout=None):
    """GET JSON, trying a second time if the first reply is unusable."""
    result = fetch_json(url, params=params, timeout=timeout)
    if result.ok and accept(result.value):
        return result
    logger.info(f"Retrying {url}")
    return fetch_json(url, params=params, timeout=timeout)


def fan_out(func, items, max_workers=None):
    """Run `func` over `items` concurrently, keeping input order.

    A task that raises contributes None to its slot.
    """
    items = list(items)
    if not items:
        return []
    workers = max(1, min(max_workers or settings.MAX_WORKERS, len(items)))
    results = [None] * len(items)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(func, item): idx for idx, item in enumerate(items)}
        for future, idx in futures.items():
            try:
                results[idx] = future.result()
            except Exception as exc:
                logger.error(f"Parallel task failed for {items[idx]!r}: {exc}")
    return results
