"""
Nexus Compliance - Document Hashing

Canonical JSON and SHA-256 helpers shared by the audit chain and memo
sealing.
"""

import hashlib
import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal, datetime and UUID values."""

    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return normalize_timestamp(obj)
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, UUID):
            return str(obj)
        return super().default(obj)


def normalize_timestamp(value: Optional[datetime]) -> Optional[str]:
    """
    ISO string of a timestamp in naive UTC.

    PostgreSQL returns aware datetimes and SQLite returns naive ones, so
    both are reduced to the same form before hashing.
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat()


def canonical_json(data: Any) -> str:
    """Sorted-key, compact JSON used as hash input."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), cls=DecimalEncoder)


def sha256_hex(data: Union[str, bytes]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def hash_payload(data: Any) -> str:
    return sha256_hex(canonical_json(data))
