"""CT v3 log-list model and loader.

Parses the JSON log lists published by browser vendors (gstatic, Apple, ...)
into immutable values. Only the fields the roots tooling needs are kept.
"""

import base64
import binascii
import datetime
import hashlib
import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

import httpx
from cryptography.hazmat.primitives import serialization

from . import utils

# Checked in this order; the first state present is the log's status.
_STATUS_ORDER = ("pending", "qualified", "usable", "readonly", "retired", "rejected")


@dataclass(frozen=True)
class LogState:
    timestamp: Optional[datetime.datetime] = None


@dataclass(frozen=True)
class LogStates:
    usable: Optional[LogState] = None
    qualified: Optional[LogState] = None
    readonly: Optional[LogState] = None
    retired: Optional[LogState] = None
    pending: Optional[LogState] = None
    rejected: Optional[LogState] = None

    def status(self) -> str:
        for name in _STATUS_ORDER:
            if getattr(self, name) is not None:
                return name
        return "unknown"


@dataclass(frozen=True)
class TemporalInterval:
    """Half-open interval [start_inclusive, end_exclusive)."""
    start_inclusive: datetime.datetime
    end_exclusive: datetime.datetime


@dataclass(frozen=True)
class Log:
    description: str
    log_id: bytes
    key: bytes
    url: str
    state: Optional[LogStates] = None
    temporal_interval: Optional[TemporalInterval] = None
    type: str = ""


@dataclass(frozen=True)
class TiledLog:
    description: str
    log_id: bytes
    key: bytes
    submission_url: str
    monitoring_url: str = ""
    state: Optional[LogStates] = None
    temporal_interval: Optional[TemporalInterval] = None
    type: str = ""

    @property
    def url(self) -> str:
        return self.submission_url


@dataclass(frozen=True)
class Operator:
    name: str
    email: Tuple[str, ...] = ()
    logs: Tuple[Log, ...] = ()
    tiled_logs: Tuple[TiledLog, ...] = ()


@dataclass(frozen=True)
class LogList:
    version: str = ""
    timestamp: Optional[datetime.datetime] = None
    operators: Tuple[Operator, ...] = ()

    def all_logs(self):
        """Yield every standard and tiled log across all operators."""
        for operator in self.operators:
            yield from operator.logs
            yield from operator.tiled_logs

    def find_by_key(self, key: bytes):
        for log in self.all_logs():
            if log.key == key:
                return log
        return None


@dataclass
class LogKeyInfo:
    """Parsed public key and the intersected validity window for one LogID."""
    public_key: object
    temporal_interval: Optional[TemporalInterval] = None
    descriptions: List[str] = field(default_factory=list)


def log_id_for_key(der_key: bytes) -> bytes:
    """A LogID is the SHA-256 of the log's DER-encoded public key."""
    return hashlib.sha256(der_key).digest()


def _parse_time(value: str) -> datetime.datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    ts = datetime.datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.timezone.utc)
    return ts


def _b64(value, what: str) -> bytes:
    try:
        return base64.b64decode(value or "", validate=True)
    except (binascii.Error, TypeError) as e:
        raise ValueError(f"Invalid base64 in {what}: {e}")


def _parse_states(raw) -> Optional[LogStates]:
    if not raw:
        return None
    states = {}
    for name in _STATUS_ORDER:
        entry = raw.get(name)
        if entry is not None:
            ts = entry.get("timestamp")
            states[name] = LogState(_parse_time(ts) if ts else None)
    return LogStates(**states)


def _parse_interval(raw) -> Optional[TemporalInterval]:
    if not raw:
        return None
    return TemporalInterval(
        start_inclusive=_parse_time(raw["start_inclusive"]),
        end_exclusive=_parse_time(raw["end_exclusive"]),
    )


def _parse_common(raw: dict) -> dict:
    description = raw.get("description", "")
    key = _b64(raw.get("key"), f"key of {description!r}")
    log_id = _b64(raw.get("log_id"), f"log_id of {description!r}") or log_id_for_key(key)
    return {
        "description": description,
        "log_id": log_id,
        "key": key,
        "state": _parse_states(raw.get("state")),
        "temporal_interval": _parse_interval(raw.get("temporal_interval")),
        "type": raw.get("log_type", ""),
    }


def parse_log_list(data: Union[bytes, str]) -> LogList:
    """Parse a v3 JSON log list. Raises ValueError if it is malformed."""
    try:
        raw = json.loads(data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Log list is not valid JSON: {e}")
    if not isinstance(raw, dict):
        raise ValueError("Log list must be a JSON object")

    try:
        operators = []
        for op in raw.get("operators") or []:
            logs = tuple(
                Log(url=entry.get("url", ""), **_parse_common(entry))
                for entry in op.get("logs") or []
            )
            tiled_logs = tuple(
                TiledLog(
                    submission_url=entry.get("submission_url", ""),
                    monitoring_url=entry.get("monitoring_url", ""),
                    **_parse_common(entry),
                )
                for entry in op.get("tiled_logs") or []
            )
            operators.append(Operator(
                name=op.get("name", ""),
                email=tuple(op.get("email") or ()),
                logs=logs,
                tiled_logs=tiled_logs,
            ))
        timestamp = raw.get("log_list_timestamp")
        return LogList(
            version=raw.get("version", ""),
            timestamp=_parse_time(timestamp) if timestamp else None,
            operators=tuple(operators),
        )
    except (AttributeError, KeyError, TypeError) as e:
        raise ValueError(f"Malformed log list: {e!r}")


def load_log_list(source: str, client: Optional[httpx.Client] = None) -> LogList:
    """Load a log list from a local file or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        if client is None:
            with httpx.Client(timeout=utils.REQUEST_TIMEOUT, follow_redirects=True) as c:
                resp = c.get(source)
        else:
            resp = client.get(source)
        resp.raise_for_status()
        return parse_log_list(resp.content)

    if not os.path.exists(source):
        raise FileNotFoundError(f"Log list not found: {source}")
    with open(source, "rb") as f:
        return parse_log_list(f.read())


def build_log_key_index(*log_lists: LogList) -> Dict[bytes, LogKeyInfo]:
    """Map each LogID to its parsed key and the intersection of its temporal
    intervals across every list that carries one.

    A key that cannot be parsed aborts the whole index with ValueError.
    """
    index: Dict[bytes, LogKeyInfo] = {}
    for log_list in log_lists:
        for log in log_list.all_logs():
            log_id = log_id_for_key(log.key)
            info = index.get(log_id)
            if info is None:
                try:
                    public_key = serialization.load_der_public_key(log.key)
                except (ValueError, TypeError) as e:
                    raise ValueError(f"Cannot parse key of log {log.description!r}: {e}")
                info = index[log_id] = LogKeyInfo(public_key=public_key)
            if log.description and log.description not in info.descriptions:
                info.descriptions.append(log.description)

            ti = log.temporal_interval
            if ti is None:
                continue
            if info.temporal_interval is None:
                info.temporal_interval = ti
            else:
                info.temporal_interval = TemporalInterval(
                    start_inclusive=max(info.temporal_interval.start_inclusive, ti.start_inclusive),
                    end_exclusive=min(info.temporal_interval.end_exclusive, ti.end_exclusive),
                )
    return index
