"""
Deterministic hashing utilities.

Run identity is derived from the job name and its parameter map; the
hash must not depend on key order or on how values were typed in.
"""

import hashlib
import json
from datetime import date, datetime
from typing import Any, Mapping


def _json_serializer(obj: Any) -> Any:
    """Serialize the non-JSON types a parameter map may carry."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted and whitespace is removed, so equal maps always
    produce the same text.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def job_key(job_name: str, parameters: Mapping[str, Any]) -> str:
    """
    SHA-256 identity of a run: job name plus canonical parameters.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    canonical = canonicalize_json({"job": job_name, "parameters": dict(parameters)})
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
