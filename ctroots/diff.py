import base64
import datetime
from typing import List, Optional

from .loglist import LogList, TemporalInterval


def format_interval(ti: Optional[TemporalInterval]) -> str:
    if ti is None:
        return "<none>"
    return "[{}, {})".format(
        ti.start_inclusive.astimezone(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        ti.end_exclusive.astimezone(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    )


def _label(log) -> str:
    prefix = f"[{log.type}] " if log.type else ""
    return f"{prefix}{log.url}"


def _status(log) -> str:
    return log.state.status() if log.state is not None else "unknown"


def diff_log_lists(a: LogList, b: LogList, name_a: str = "a", name_b: str = "b") -> List[str]:
    """Report logs missing from either list and state/interval differences.

    Logs are matched by key, not URL.
    """
    lines = [f"Present in {name_a} but not in {name_b}:"]
    for log in a.all_logs():
        if b.find_by_key(log.key) is None:
            lines.append(f"- {_label(log)}; {base64.b64encode(log.log_id).decode()}")

    lines.append("")
    lines.append(f"Present in {name_b} but not in {name_a}:")
    for log in b.all_logs():
        if a.find_by_key(log.key) is None:
            lines.append(f"- {_label(log)}; {base64.b64encode(log.log_id).decode()}")

    pairs = [(log, b.find_by_key(log.key)) for log in a.all_logs()]
    pairs = [(x, y) for x, y in pairs if y is not None]

    lines.append("")
    lines.append(f"State differences between {name_a} and {name_b}:")
    for x, y in pairs:
        if _status(x) != _status(y):
            lines.append(f"- {_label(x)}: {_status(x)} vs {_status(y)}")

    lines.append("")
    lines.append(f"Temporal Period differences between {name_a} and {name_b}:")
    for x, y in pairs:
        if x.temporal_interval != y.temporal_interval:
            lines.append(
                f"- {_label(x)}: {format_interval(x.temporal_interval)} vs {format_interval(y.temporal_interval)}"
            )
    return lines
