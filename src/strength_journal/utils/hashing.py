"""
Hashing and deterministic identifier utilities.

Provides content hashes of record documents and deterministic uuids for
conflict log entries.
"""

import hashlib
import json
import uuid
from typing import Any

CONFLICT_NAMESPACE = uuid.UUID("6f1c2a7e-3b0d-4c55-9a8e-2d3f4b5c6a71")


def content_hash(document: dict[str, Any], algorithm: str = "sha256") -> str:
    """
    Compute a hash of a record document's content.

    The local ``id`` is excluded and keys are sorted so two devices holding
    the same logical record produce the same hash.

    Args:
        document: Wire-form record document.
        algorithm: Hash algorithm to use.

    Returns:
        Hex string of the content hash.
    """
    payload = {key: value for key, value in document.items() if key != "id"}
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)

    hash_func = hashlib.new(algorithm)
    hash_func.update(canonical.encode("utf-8"))

    return hash_func.hexdigest()


def conflict_uuid(entity_type: str, entity_id: str, *content_hashes: str) -> str:
    """
    Derive a stable uuid for a conflict between two record versions.

    Args:
        entity_type: Entity type of the conflicting record.
        entity_id: uuid of the conflicting record.
        *content_hashes: Content hashes of the competing versions; order-insensitive.

    Returns:
        uuid5 string, identical for every device observing the same conflict.
    """
    name = "|".join([entity_type, entity_id, *sorted(content_hashes)])
    return str(uuid.uuid5(CONFLICT_NAMESPACE, name))


def new_uuid() -> str:
    """Generate a fresh random record uuid."""
    return str(uuid.uuid4())
