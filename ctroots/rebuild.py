import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from . import utils
from .acquire import FetchResult, fetch_all
from .endpoints import build_endpoint_universe
from .loglist import LogList
from .store import WriteOutcome, write_result

logger = logging.getLogger(__name__)


@dataclass
class RebuildSummary:
    logs: int = 0
    bytes_retrieved: int = 0
    results: Dict[str, FetchResult] = field(default_factory=dict)
    outcomes: Dict[str, WriteOutcome] = field(default_factory=dict)

    def counts(self) -> Counter:
        return Counter(self.outcomes.values())


def rebuild_store(
    log_lists,
    store_dir: Optional[str] = None,
    max_workers: Optional[int] = None,
    client: Optional[httpx.Client] = None,
    **fetch_kwargs,
) -> RebuildSummary:
    """Poll every eligible log and write its accepted roots into the store.

    All downloads finish before the first write; writes are sequential.
    """
    if isinstance(log_lists, LogList):
        log_lists = [log_lists]
    if store_dir is None:
        store_dir = utils.STORE_DIR

    endpoints = build_endpoint_universe(*log_lists)
    logger.info("Polling %d log endpoints", len(endpoints))
    results = fetch_all(endpoints, max_workers=max_workers, client=client, **fetch_kwargs)

    summary = RebuildSummary(logs=len(results), results=results)
    for url in sorted(results):
        result = results[url]
        if result.ok:
            summary.bytes_retrieved += len(result.body)
        summary.outcomes[url] = write_result(store_dir, result)
    return summary
