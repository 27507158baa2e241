"""
Utility functions for rootpolicy.

Provides encoding, hashing and timestamp helpers.
"""

import base64
import hashlib
from datetime import datetime, timezone
from typing import Union


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return as hex string."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def utc_now() -> datetime:
    """Current time as an aware UTC datetime. Only outer layers call this."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Format an aware datetime as an RFC 3339 UTC string with a 'Z' suffix."""
    return dt.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def parse_timestamp(s: str) -> datetime:
    """
    Parse an RFC 3339 / ISO 8601 timestamp into an aware UTC datetime.

    Raises:
        ValueError: if the string is malformed or carries no UTC offset
    """
    dt = datetime.fromisoformat(s.strip().replace('Z', '+00:00'))
    if dt.tzinfo is None:
        raise ValueError(f"Timestamp has no UTC offset: {s}")
    return dt.astimezone(timezone.utc)
