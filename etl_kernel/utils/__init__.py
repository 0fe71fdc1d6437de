"""Kernel utilities."""

from etl_kernel.utils.hashing import canonicalize_json, job_key

__all__ = [
    "canonicalize_json",
    "job_key",
]
