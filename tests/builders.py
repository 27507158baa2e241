"""
Builders for signed root policy documents used across the test suite.

Keys and certificates are generated fresh for every call; nothing is
committed as a fixture.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from rootpolicy.signing import (
    PolicySigner,
    SigningIdentity,
    build_policy_document,
    build_signed_body,
)

ISSUER = "https://accounts.example.com"
NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
EXPIRES = NOW + timedelta(days=30)


def make_signers(count: int, now: datetime = NOW) -> List[SigningIdentity]:
    """Generate 'count' independent signing identities."""
    signer = PolicySigner()
    return [
        signer.generate_identity(f"signer{i}@example.com", ISSUER, now=now)
        for i in range(count)
    ]


def make_signed(
    listed: Sequence[SigningIdentity],
    threshold: int = 1,
    expires: datetime = EXPIRES,
    namespace: str = "test",
    version: int = 1
) -> dict:
    """Build a 'signed' body whose Root role lists the given identities."""
    signer = PolicySigner()
    for identity in listed:
        signer.register(identity)
    sections = signer.root_keys(threshold=threshold)
    return build_signed_body(
        namespace, sections["keys"], sections["roles"], expires, version=version
    )


def make_document(
    listed: Sequence[SigningIdentity],
    signers: Optional[Sequence[SigningIdentity]] = None,
    threshold: int = 1,
    expires: datetime = EXPIRES,
    indent: Optional[int] = 2
) -> bytes:
    """
    Build a complete signed document.

    Args:
        listed: Identities trusted by the Root role
        signers: Identities that sign (default: all listed)
        threshold: Root threshold
        expires: Policy expiry
        indent: JSON indentation (None for canonical compact form)
    """
    signed = make_signed(listed, threshold=threshold, expires=expires)
    return build_policy_document(signed, listed if signers is None else signers, indent=indent)
