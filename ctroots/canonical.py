"""Canonical form of an accepted-roots document.

The canonical blob is every certificate, ordered by its base64 text and
PEM-encoded. Sorting first makes the blob (and its SHA-256, the store key)
independent of the order a log happened to return its roots in.
"""

import base64
import binascii
import hashlib
import json
import logging
import ssl
from dataclasses import dataclass, field
from typing import List, Union

logger = logging.getLogger(__name__)


class MalformedRootsDocument(ValueError):
    """The get-roots response is not the expected JSON document."""


@dataclass(frozen=True)
class CanonicalRoots:
    pem: bytes
    sha256: bytes
    der_certificates: List[bytes] = field(default_factory=list)
    skipped: int = 0

    @property
    def hex_digest(self) -> str:
        return self.sha256.hex()


def parse_roots_document(body: Union[bytes, str]) -> List[str]:
    """Return the base64 certificate strings from a get-roots response."""
    try:
        doc = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedRootsDocument(f"Invalid JSON: {e}")
    if not isinstance(doc, dict):
        raise MalformedRootsDocument("Expected a JSON object")

    certificates = doc.get("certificates")
    if certificates is None:
        return []
    if not isinstance(certificates, list) or not all(isinstance(c, str) for c in certificates):
        raise MalformedRootsDocument("'certificates' must be a list of base64 strings")
    return certificates


def canonicalize(certificates: List[str], source: str = "") -> CanonicalRoots:
    """Build the canonical PEM blob for a list of base64 DER certificates.

    A certificate that isn't valid base64 is logged and left out; the rest of
    the set is still encoded. Line breaks inside an entry are ignored.
    """
    der_certificates = []
    chunks = []
    skipped = 0
    for i, b64_cert in enumerate(sorted(certificates)):
        try:
            der = base64.b64decode(b64_cert.replace("\r", "").replace("\n", ""), validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning("Error decoding certificate %d from %s: %s", i, source or "<document>", e)
            skipped += 1
            continue
        der_certificates.append(der)
        chunks.append(ssl.DER_cert_to_PEM_cert(der))

    pem = "".join(chunks).encode("ascii")
    return CanonicalRoots(
        pem=pem,
        sha256=hashlib.sha256(pem).digest(),
        der_certificates=der_certificates,
        skipped=skipped,
    )


def canonicalize_document(body: Union[bytes, str], source: str = "") -> CanonicalRoots:
    return canonicalize(parse_roots_document(body), source=source)
