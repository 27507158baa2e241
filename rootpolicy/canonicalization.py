"""
rootpolicy Canonical Document Handling

Signatures on a root policy are computed over the exact bytes of the
"signed" member as it was written by the signer. This module recovers
those bytes from a raw document without passing them through a generic
object model, and produces the canonical encoding used when a new
document is being signed.
"""

import json
from dataclasses import dataclass
from json.decoder import scanstring
from typing import Any, Dict

from .errors import ParseError


WHITESPACE = " \t\n\r"
REQUIRED_MEMBERS = ("signatures", "signed")


@dataclass(frozen=True)
class RawPolicy:
    """The still-serialized halves of a policy document."""
    signatures: bytes
    signed: bytes


def _reject_constant(name: str):
    raise ValueError(f"Non-standard JSON constant: {name}")


_decoder = json.JSONDecoder(parse_constant=_reject_constant)


def _skip_whitespace(text: str, idx: int) -> int:
    end = len(text)
    while idx < end and text[idx] in WHITESPACE:
        idx += 1
    return idx


def _expect(text: str, idx: int, char: str, what: str) -> int:
    if idx >= len(text) or text[idx] != char:
        raise ParseError(f"Expected {what} at offset {idx}")
    return idx + 1


def split_document(raw: bytes) -> RawPolicy:
    """
    Split a policy document into its raw 'signatures' and 'signed' spans.

    The top-level object is walked member by member. Each value is located
    with the standard JSON scanner and sliced out of the source text, so
    whitespace, key order and number formatting survive untouched.

    Raises:
        ParseError: if the document is not a single well-formed JSON object
            or does not contain exactly one of each required member
    """
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"Policy document is not valid UTF-8: {e.reason}") from e

    spans: Dict[str, str] = {}

    idx = _skip_whitespace(text, 0)
    idx = _expect(text, idx, "{", "top-level object")
    idx = _skip_whitespace(text, idx)

    if idx < len(text) and text[idx] == "}":
        idx += 1
    else:
        while True:
            idx = _expect(text, idx, '"', "member name")
            try:
                name, idx = scanstring(text, idx, True)
            except ValueError as e:
                raise ParseError(f"Invalid member name: {e}") from e

            idx = _skip_whitespace(text, idx)
            idx = _expect(text, idx, ":", f"':' after member '{name}'")
            idx = _skip_whitespace(text, idx)

            start = idx
            try:
                _, idx = _decoder.raw_decode(text, idx)
            except ValueError as e:
                raise ParseError(f"Invalid value for member '{name}': {e}") from e

            if name in REQUIRED_MEMBERS:
                if name in spans:
                    raise ParseError(f"Duplicate field: {name}")
                spans[name] = text[start:idx]

            idx = _skip_whitespace(text, idx)
            if idx < len(text) and text[idx] == ",":
                idx = _skip_whitespace(text, idx + 1)
                continue
            idx = _expect(text, idx, "}", "',' or '}' in top-level object")
            break

    if _skip_whitespace(text, idx) != len(text):
        raise ParseError("Trailing data after policy document")

    for name in REQUIRED_MEMBERS:
        if name not in spans:
            raise ParseError(f"Missing field: {name}")

    return RawPolicy(
        signatures=spans["signatures"].encode("utf-8"),
        signed=spans["signed"].encode("utf-8"),
    )


def canonicalize(obj: Any) -> bytes:
    """
    Encode an object as compact JSON with lexicographically sorted keys.

    Used when producing a new 'signed' body; verification never
    re-canonicalizes, it uses the bytes recovered by split_document.
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False
    ).encode("utf-8")


def canonicalize_str(obj: Any) -> str:
    """Return canonical JSON as string."""
    return canonicalize(obj).decode("utf-8")
