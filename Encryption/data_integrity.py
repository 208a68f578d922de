"""
ENTITY ETAGS
============
Weak ETags for stored entities and If-Match evaluation.

FLOW:
- entity_etag() derives the ETag from the stored payload and its timestamp.
- etag_matches() decides whether an If-Match header allows a write.

HOW:
- SHA-256 over payload and ISO timestamp, truncated to 128 bits and
  wrapped as W/"...". Re-encrypting the same values yields a new ETag,
  because every write carries fresh ciphertext.
"""

from __future__ import annotations

import datetime
import hashlib
import hmac


ANY_ETAG = "*"
_ETAG_HEX_LENGTH = 32


def entity_etag(payload: str, timestamp: datetime.datetime) -> str:
    digest = hashlib.sha256((payload + timestamp.isoformat()).encode("utf-8")).hexdigest()
    return 'W/"{}"'.format(digest[:_ETAG_HEX_LENGTH])


def etag_matches(if_match: str | None, current: str) -> bool:
    """True when no condition is set, the wildcard is used, or the ETags are equal."""
    if if_match is None or if_match == ANY_ETAG:
        return True
    return hmac.compare_digest(if_match.encode("utf-8"), current.encode("utf-8"))
