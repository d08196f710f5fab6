"""
Content hasher for cached library views.

A fingerprint summarises a Criteria value together with the collection
version it was evaluated against. Every criteria field takes part, so any
change to the criteria or to the collection yields a different fingerprint.
"""

import hashlib
import json

from ..criteria import Criteria

FINGERPRINT_BYTES = 8


def fingerprint(criteria: Criteria, collection_version: int) -> int:
    """
    Compute the fingerprint of (criteria, collection version).

    The value is stable across processes: it is a truncated BLAKE2b digest of
    a canonical JSON encoding, never Python's randomized ``hash()``.

    Args:
        criteria: Criteria in effect
        collection_version: Version reported by the collection snapshot

    Returns:
        Unsigned 64-bit integer
    """
    if isinstance(collection_version, bool) or not isinstance(collection_version, int):
        raise TypeError(f"collection_version must be an int, got {collection_version!r}")

    payload = {
        'criteria': criteria.to_dict(),
        'version': collection_version,
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    digest = hashlib.blake2b(encoded.encode('utf-8'), digest_size=FINGERPRINT_BYTES).digest()
    return int.from_bytes(digest, 'big')
