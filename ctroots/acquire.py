"""Parallel download of each log's accepted-roots document."""

import enum
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from . import utils
from .endpoints import Endpoint

logger = logging.getLogger(__name__)


class FetchStatus(enum.Enum):
    OK = "ok"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchResult:
    endpoint: Endpoint
    status: FetchStatus
    body: Optional[bytes] = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.OK


def get_roots_url(base_url: str) -> str:
    if base_url.endswith("/"):
        base_url = base_url[:-1]
    return base_url + utils.GET_ROOTS_PATH


def new_client(timeout: Optional[float] = None, **kwargs) -> httpx.Client:
    """HTTP client shared by all workers; the timeout applies per request."""
    if timeout is None:
        timeout = utils.REQUEST_TIMEOUT
    kwargs.setdefault("follow_redirects", True)
    return httpx.Client(timeout=timeout, **kwargs)


def fetch_roots(
    client: httpx.Client,
    endpoint: Endpoint,
    max_attempts: Optional[int] = None,
    retry_delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> FetchResult:
    """Fetch one endpoint's get-roots document, retrying transient failures.

    Network errors, non-2xx statuses and body-read errors are retried with a
    fixed delay. After the last attempt the result is FAILED rather than an
    exception, so one dead log never takes the batch down.
    """
    if max_attempts is None:
        max_attempts = utils.MAX_ATTEMPTS
    if retry_delay is None:
        retry_delay = utils.RETRY_DELAY
    url = get_roots_url(endpoint.url)

    def _log_retry(state: RetryCallState):
        logger.warning(
            "Error fetching %s (attempt %d/%d): %s",
            url, state.attempt_number, max_attempts, state.outcome.exception(),
        )

    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(retry_delay),
        retry=retry_if_exception_type(httpx.HTTPError),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )

    def _attempt() -> bytes:
        resp = client.get(url)
        resp.raise_for_status()
        return resp.content

    try:
        body = retrying(_attempt)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        attempts = retrying.statistics.get("attempt_number", 1)
        logger.error("Failed to download accepted roots from %s after %d attempts: %s", url, attempts, e)
        return FetchResult(endpoint, FetchStatus.FAILED, attempts=attempts, error=str(e))

    attempts = retrying.statistics.get("attempt_number", 1)
    logger.info("Downloaded accepted roots from %s (%d bytes)", url, len(body))
    return FetchResult(endpoint, FetchStatus.OK, body=body, attempts=attempts)


def fetch_all(
    endpoints: Iterable[Endpoint],
    max_workers: Optional[int] = None,
    client: Optional[httpx.Client] = None,
    **fetch_kwargs,
) -> Dict[str, FetchResult]:
    """Fetch every endpoint in parallel and return results keyed by URL.

    Returns only once every endpoint has either succeeded or exhausted its
    attempts. Each worker hands back its own FetchResult; nothing is shared
    between workers except the HTTP client.
    """
    endpoints = list(endpoints)
    if max_workers is None:
        max_workers = utils.MAX_WORKERS
    max_workers = max(1, min(max_workers, len(endpoints) or 1))

    own_client = client is None
    if own_client:
        client = new_client()

    results: Dict[str, FetchResult] = {}
    try:
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="get-roots") as pool:
            futures = {
                pool.submit(fetch_roots, client, ep, **fetch_kwargs): ep
                for ep in endpoints
            }
            for future in as_completed(futures):
                result = future.result()
                results[result.endpoint.url] = result
    finally:
        if own_client:
            client.close()
    return results
