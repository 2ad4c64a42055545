"""Content-addressed store of accepted-roots blobs.

Layout of a store directory:

    roots_<sha256 of blob, hex>.pem   canonical PEM blob
    log_<LogID, hex>.txt              hex hash of the blob this log accepts

Identical root sets from different logs share one blob. Every file is
written to a temporary name and renamed into place, so a reader never sees
a half-written entry.
"""

import base64
import binascii
import enum
import hashlib
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from cryptography import x509

from . import utils
from .acquire import FetchResult
from .canonical import CanonicalRoots, MalformedRootsDocument, canonicalize_document

logger = logging.getLogger(__name__)

BLOB_RE = re.compile(r"^roots_([0-9a-f]{64})\.pem$")
POINTER_RE = re.compile(r"^log_([0-9a-f]{64})\.txt$")
PEM_BLOCK_RE = re.compile(
    rb"-----BEGIN CERTIFICATE-----\r?\n(.*?)-----END CERTIFICATE-----\r?\n?", re.DOTALL
)


class StoreCorruptError(ValueError):
    """The store can't be loaded without producing a misleading index."""


class WriteOutcome(enum.Enum):
    WRITTEN = "written"
    SKIPPED_FAILED = "skipped: acquisition failed"
    SKIPPED_MALFORMED = "skipped: malformed document"
    SKIPPED_IO = "skipped: write error"


def blob_name(digest: bytes) -> str:
    return f"roots_{digest.hex()}.pem"


def pointer_name(log_id: bytes) -> str:
    return f"log_{log_id.hex()}.txt"


def _atomic_write(path: str, data: bytes):
    directory = os.path.dirname(path) or "."
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp_")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def write_roots(store_dir: str, log_id: bytes, canonical: CanonicalRoots) -> Tuple[str, str]:
    """Write the blob, then the pointer naming it.

    The blob goes first so a pointer never references a missing blob. An
    existing blob with the same name is simply overwritten with the same bytes.
    """
    os.makedirs(store_dir, exist_ok=True)
    blob_path = os.path.join(store_dir, blob_name(canonical.sha256))
    pointer_path = os.path.join(store_dir, pointer_name(log_id))
    _atomic_write(blob_path, canonical.pem)
    _atomic_write(pointer_path, canonical.hex_digest.encode("ascii"))
    return blob_path, pointer_path


def write_result(store_dir: str, result: FetchResult) -> WriteOutcome:
    """Persist one endpoint's fetch result. Never raises for per-log problems.

    A failed acquisition writes nothing, leaving any pointer from an earlier
    run in place instead of replacing it with an empty root set.
    """
    url = result.endpoint.url
    if not result.ok:
        logger.warning("No roots written for %s: acquisition failed (%s)", url, result.error)
        return WriteOutcome.SKIPPED_FAILED

    try:
        canonical = canonicalize_document(result.body, source=url)
    except MalformedRootsDocument as e:
        logger.error("Error decoding JSON from %s: %s", url, e)
        return WriteOutcome.SKIPPED_MALFORMED

    try:
        blob_path, pointer_path = write_roots(store_dir, result.endpoint.log_id, canonical)
    except OSError as e:
        logger.error("Error writing roots for %s: %s", url, e)
        return WriteOutcome.SKIPPED_IO

    logger.info("Wrote %s and %s", os.path.basename(blob_path), os.path.basename(pointer_path))
    return WriteOutcome.WRITTEN


@dataclass
class AcceptedRoots:
    """In-memory indices built from a store directory. Treat as read-only."""
    by_hash: Dict[bytes, List[x509.Certificate]] = field(default_factory=dict)
    hash_by_log: Dict[bytes, bytes] = field(default_factory=dict)

    def roots_for_log(self, log_id: bytes) -> Optional[List[x509.Certificate]]:
        """Accepted roots for a log, or None when none are known for it."""
        digest = self.hash_by_log.get(log_id)
        if digest is None:
            return None
        return self.by_hash.get(digest)

    def dangling_logs(self) -> List[bytes]:
        return sorted(
            log_id for log_id, digest in self.hash_by_log.items()
            if digest not in self.by_hash
        )


def _parse_blob(data: bytes, name: str) -> List[x509.Certificate]:
    """Parse a blob block by block.

    Broken PEM framing or base64 is corruption. A block whose DER the
    certificate parser rejects is logged and dropped, the same as a root the
    log served but no consumer can use.
    """
    certs = []
    pos = 0
    for m in PEM_BLOCK_RE.finditer(data):
        if data[pos:m.start()].strip():
            raise StoreCorruptError(f"Unexpected data between PEM blocks in {name}")
        pos = m.end()
        try:
            der = base64.b64decode(b"".join(m.group(1).split()), validate=True)
        except binascii.Error as e:
            raise StoreCorruptError(f"Invalid base64 in PEM block of {name}: {e}")
        try:
            certs.append(x509.load_der_x509_certificate(der))
        except ValueError as e:
            logger.warning("Skipping unparsable certificate in %s: %s", name, e)
    if data[pos:].strip():
        raise StoreCorruptError(f"Unterminated or non-PEM data in {name}")
    return certs


def load_store(store_dir: Optional[str] = None) -> AcceptedRoots:
    """Build both indices from a store directory.

    Raises StoreCorruptError for a blob with broken PEM framing or one that
    doesn't match its name, or a pointer that isn't a hex SHA-256. A pointer to a missing
    blob is not an error; see AcceptedRoots.roots_for_log.
    """
    if store_dir is None:
        store_dir = utils.STORE_DIR
    if not os.path.isdir(store_dir):
        raise FileNotFoundError(f"Accepted roots store not found: {store_dir}")

    roots = AcceptedRoots()
    for name in sorted(os.listdir(store_dir)):
        path = os.path.join(store_dir, name)

        m = BLOB_RE.match(name)
        if m:
            digest = bytes.fromhex(m.group(1))
            with open(path, "rb") as f:
                data = f.read()
            if hashlib.sha256(data).digest() != digest:
                raise StoreCorruptError(f"Content of {name} does not match its hash")
            roots.by_hash[digest] = _parse_blob(data, name)
            continue

        m = POINTER_RE.match(name)
        if m:
            log_id = bytes.fromhex(m.group(1))
            with open(path, "r", encoding="ascii", errors="replace") as f:
                text = f.read().strip()
            if not re.fullmatch(r"[0-9a-f]{64}", text):
                raise StoreCorruptError(f"Pointer {name} does not hold a SHA-256 hex digest")
            roots.hash_by_log[log_id] = bytes.fromhex(text)

    logger.debug(
        "Loaded %d root sets and %d log pointers from %s",
        len(roots.by_hash), len(roots.hash_by_log), store_dir,
    )
    return roots
