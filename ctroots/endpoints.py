from dataclasses import dataclass
from typing import Dict, List

from .loglist import LogList


@dataclass(frozen=True)
class Endpoint:
    """A submission base URL and the LogID it belongs to."""
    url: str
    log_id: bytes


def is_pollable(log) -> bool:
    """Usable/qualified logs, plus any log whose type isn't production.

    Test and pre-production logs have no state to gate on, so they are
    always polled.
    """
    state = log.state
    if state is not None and (state.usable is not None or state.qualified is not None):
        return True
    return not log.type.startswith("prod")


def build_endpoint_universe(*log_lists: LogList) -> List[Endpoint]:
    """Flatten log lists into endpoints, one per submission URL.

    When two sources disagree about a URL's LogID, the later source wins.
    """
    by_url: Dict[str, Endpoint] = {}
    for log_list in log_lists:
        for log in log_list.all_logs():
            if is_pollable(log):
                by_url[log.url] = Endpoint(url=log.url, log_id=log.log_id)
    return list(by_url.values())
