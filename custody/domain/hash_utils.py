"""Hash utilities for the custody ledger and export manifests.

This module is the single place where verification hashes are computed.
Writers (ledger append, manifest sealing) and verifiers (public token
verification, event chain walks, Merkle roots) all call into it, so a
record hashed at write time and rehashed at verify time always goes
through the same canonicalization.

Canonical form:
- Top-level record keys keep their construction order. The record
  builders below (`ledger_hash_record`, `manifest_hash_record`) fix that
  order; never hash a hand-built dict.
- Nested maps (opaque metadata, filters, file entries) are key-sorted,
  so the order a caller happened to build them in does not matter.
- None is coalesced to "" at every level.
- Datetimes are rendered as UTC ISO-8601 with microseconds, UUIDs as
  their canonical string form.
- NaN and Infinity are rejected.
- Serialized as JSON with two-space indentation, non-ASCII kept as is.

Hash = SHA-256 over canonical_json(record) + (prev_hash or "") + salt.
"""

from __future__ import annotations

import hashlib
import json
import math
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

# Default salt mixed into every verification hash. Deployments override it
# with LEDGER_HASH_SALT; changing it invalidates every stored hash.
DEFAULT_HASH_SALT: str = "custody-ledger-v1"

HASH_ALG_NAME: str = "SHA-256"

MANIFEST_VERSION: str = "1.0"


def format_timestamp(value: datetime) -> str:
    """Render a datetime the way it is hashed.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _normalize(data: Any, *, sort_keys: bool) -> Any:
    """Recursively convert data to its canonical JSON-ready form.

    Raises:
        ValueError: If data contains NaN, Infinity, or an unsupported type.
    """
    if data is None:
        return ""
    if isinstance(data, bool) or isinstance(data, int) or isinstance(data, str):
        return data
    if isinstance(data, float):
        if math.isnan(data) or math.isinf(data):
            raise ValueError(
                f"Cannot serialize non-finite float value: {data!r}. "
                "NaN and Infinity are not valid JSON."
            )
        return data
    if isinstance(data, Enum):
        return _normalize(data.value, sort_keys=True)
    if isinstance(data, datetime):
        return format_timestamp(data)
    if isinstance(data, UUID):
        return str(data)
    if isinstance(data, Mapping):
        items = [(str(k), _normalize(v, sort_keys=True)) for k, v in data.items()]
        if sort_keys:
            items.sort(key=lambda item: item[0])
        return dict(items)
    if isinstance(data, Sequence) and not isinstance(data, (bytes, bytearray)):
        return [_normalize(item, sort_keys=True) for item in data]
    raise ValueError(f"Cannot canonicalize value of type {type(data).__name__}")


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"Cannot serialize value of type {type(value).__name__}")


def to_json_compatible(data: Mapping[str, Any]) -> dict[str, Any]:
    """Round-trip a mapping through JSON.

    Stores apply this to metadata before hashing, so the entry hashed at
    append time is exactly what a JSON column gives back on read.

    Raises:
        ValueError: If data contains NaN or Infinity.
    """
    return json.loads(json.dumps(dict(data), default=_json_default, allow_nan=False))


def canonical_json(record: Mapping[str, Any]) -> str:
    """Produce the deterministic JSON text that is hashed.

    Args:
        record: A record produced by one of the builders in this module.

    Returns:
        Canonical JSON string.

    Raises:
        ValueError: If the record contains NaN/Infinity or unsupported types.

    Example:
        >>> print(canonical_json({"b": None, "a": {"y": 1, "x": 2}}))
        {
          "b": "",
          "a": {
            "x": 2,
            "y": 1
          }
        }
    """
    normalized = _normalize(record, sort_keys=False)
    return json.dumps(normalized, indent=2, ensure_ascii=False)


def compute_verification_hash(
    record: Mapping[str, Any],
    prev_hash: str | None = None,
    salt: str = DEFAULT_HASH_SALT,
) -> str:
    """Compute the salted SHA-256 verification hash of a record.

    Args:
        record: Record from `ledger_hash_record` or `manifest_hash_record`.
        prev_hash: Hash of the previous link in the chain, if any.
        salt: Deployment salt.

    Returns:
        Lowercase hexadecimal SHA-256 digest (64 characters).
    """
    payload = canonical_json(record) + (prev_hash or "") + salt
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def sha256_hex(data: bytes) -> str:
    """Plain SHA-256 of raw bytes, used for exported file digests."""
    return hashlib.sha256(data).hexdigest()


def ledger_hash_record(
    *,
    ledger_seq: int,
    organization_id: UUID | str,
    actor_id: UUID | str | None,
    event_name: str,
    category: str,
    severity: str,
    outcome: str,
    target_type: str | None,
    target_id: str | None,
    job_id: UUID | str | None,
    created_at: datetime,
    metadata: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Build the fixed-order record hashed for a ledger entry."""
    return {
        "ledger_seq": ledger_seq,
        "organization_id": organization_id,
        "actor_id": actor_id,
        "event_name": event_name,
        "category": category,
        "severity": severity,
        "outcome": outcome,
        "target_type": target_type,
        "target_id": target_id,
        "job_id": job_id,
        "created_at": created_at,
        "metadata": dict(metadata or {}),
    }


def manifest_hash_record(manifest: Mapping[str, Any]) -> dict[str, Any]:
    """Build the fixed-order record hashed for an export manifest.

    Accepts a manifest as stored (possibly a plain dict loaded from JSON)
    and re-establishes the field order.
    """
    return {
        "version": manifest.get("version", MANIFEST_VERSION),
        "generated_at": manifest.get("generated_at"),
        "organization_id": manifest.get("organization_id"),
        "work_record_id": manifest.get("work_record_id"),
        "export_type": manifest.get("export_type"),
        "filters": dict(manifest.get("filters") or {}),
        "files": [dict(f) for f in manifest.get("files") or []],
    }


def compute_manifest_hash(
    manifest: Mapping[str, Any], salt: str = DEFAULT_HASH_SALT
) -> str:
    """Hash a manifest. Manifests are not chained, so prev_hash is empty."""
    return compute_verification_hash(manifest_hash_record(manifest), None, salt)


def is_valid_sha256_hex(value: str) -> bool:
    """Check if a string is a 64-character lowercase hexadecimal digest."""
    if len(value) != 64:
        return False
    try:
        int(value, 16)
    except ValueError:
        return False
    return value == value.lower()
