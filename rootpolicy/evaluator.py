"""
rootpolicy Evaluator

Decides whether a raw root policy document is trusted:

    TRUSTED    not expired, and the role collected at least 'threshold'
               distinct valid signatures from its listed keys
    EXPIRED    'expires' is not after the evaluation time
    UNTRUSTED  not expired, but the threshold was not reached

Parse and certificate failures are not verdicts; they propagate as
ParseError / CertificateError.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, FrozenSet, Optional, Sequence, Set

from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .certificates import extract_public_key
from .errors import ExpiredError, ParseError, ThresholdError, VerificationError
from .models import ParsedPolicy, RoleKeys, RoleType, Signature, Signed, decode_policy
from .verifier import verify_signature

logger = logging.getLogger(__name__)


class Verdict(str, Enum):
    """Outcome of evaluating a policy document."""
    TRUSTED = "TRUSTED"
    EXPIRED = "EXPIRED"
    UNTRUSTED = "UNTRUSTED"


@dataclass(frozen=True)
class EvaluationResult:
    """
    Result of evaluating a policy document.

    'signed' is only populated for a TRUSTED verdict. 'threshold' is None
    when the policy expired before its role was resolved.
    """
    verdict: Verdict
    role: RoleType
    valid_keyids: FrozenSet[str]
    remaining: timedelta
    threshold: Optional[int] = None
    reason: Optional[str] = None
    signed: Optional[Signed] = None

    def trusted(self) -> bool:
        return self.verdict == Verdict.TRUSTED

    def raise_for_verdict(self) -> Signed:
        """Return the trusted body, or raise the error matching the verdict."""
        if self.verdict == Verdict.EXPIRED:
            raise ExpiredError(self.reason or "Policy expired")
        if self.verdict == Verdict.UNTRUSTED:
            raise ThresholdError(self.reason or "Signature threshold not met")
        return self.signed


def _check_role(role: RoleType, role_keys: RoleKeys, signed: Signed) -> FrozenSet[str]:
    """Validate a role's key references and return its distinct key ids."""
    for keyid in role_keys.keyids:
        if keyid not in signed.keys:
            raise ParseError(f"Role {role.value} references unknown keyid: {keyid}")

    listed = frozenset(role_keys.keyids)
    if role_keys.threshold > len(listed):
        raise ThresholdError(
            f"Role {role.value} threshold {role_keys.threshold} exceeds "
            f"its {len(listed)} distinct key ids"
        )
    return listed


def _signing_key(signature: Signature, message: bytes) -> Optional[bytes]:
    """DER SubjectPublicKeyInfo of the key that made a valid signature, else None."""
    # CertificateError propagates: an unusable cert fails the whole document.
    public_key = extract_public_key(signature.cert)
    try:
        verify_signature(public_key, signature.sig, message)
    except VerificationError:
        logger.debug("Signature from keyid %s did not verify", signature.keyid)
        return None
    return public_key.public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)


def _match_keys(candidates: Dict[str, Set[bytes]]) -> FrozenSet[str]:
    """
    Pair key ids with distinct public keys (maximum bipartite matching).

    Key ids are self-declared by each entry. Every credited key id is
    backed by a key that no other credited key id uses.
    """
    owner: Dict[bytes, str] = {}

    def assign(keyid: str, seen: Set[bytes]) -> bool:
        for spki in sorted(candidates[keyid]):
            if spki in seen:
                continue
            seen.add(spki)
            if spki not in owner or assign(owner[spki], seen):
                owner[spki] = keyid
                return True
        return False

    for keyid in sorted(candidates):
        assign(keyid, set())
    return frozenset(owner.values())


class PolicyEvaluator:
    """
    Evaluates root policy documents against a role's signature threshold.

    Per-signature checks are independent, so with max_workers > 1 they run
    on a thread pool. Valid entries are reduced to a matching of
    listed key ids onto distinct public keys, so the outcome does not depend on evaluation order
    and one key never counts twice.
    """

    def __init__(self, max_workers: int = 1, role: RoleType = RoleType.ROOT):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.role = role

    def evaluate(self, raw: bytes, now: datetime) -> EvaluationResult:
        """
        Evaluate a raw policy document at time 'now'.

        Args:
            raw: The policy document exactly as received
            now: Evaluation time (timezone-aware)

        Returns:
            EvaluationResult with the verdict

        Raises:
            ParseError: if the document or its role definition is malformed
            CertificateError: if any signature's certificate is unusable
            ThresholdError: if the role's threshold can never be met
            ValueError: if 'now' is naive
        """
        return self.evaluate_parsed(decode_policy(raw), now)

    def evaluate_parsed(self, parsed: ParsedPolicy, now: datetime) -> EvaluationResult:
        if now.tzinfo is None or now.utcoffset() is None:
            raise ValueError("now must be a timezone-aware datetime")

        policy = parsed.policy
        signed = policy.signed

        # Expiry is decided before, and regardless of, the role and its signatures.
        remaining = policy.validate_expires(now)
        if remaining <= timedelta(0):
            return EvaluationResult(
                verdict=Verdict.EXPIRED,
                role=self.role,
                valid_keyids=frozenset(),
                remaining=remaining,
                reason=f"Policy expired at {signed.expires.isoformat()}",
            )

        role_keys = signed.role(self.role)
        listed = _check_role(self.role, role_keys, signed)

        valid_keyids = self._count_valid(policy.signatures, listed, parsed.signed_bytes)

        result = dict(
            role=self.role,
            threshold=role_keys.threshold,
            valid_keyids=valid_keyids,
            remaining=remaining,
        )

        if len(valid_keyids) < role_keys.threshold:
            return EvaluationResult(
                verdict=Verdict.UNTRUSTED,
                reason=(
                    f"Role {self.role.value} has {len(valid_keyids)} valid signature(s), "
                    f"threshold is {role_keys.threshold}"
                ),
                **result
            )

        return EvaluationResult(verdict=Verdict.TRUSTED, signed=signed, **result)

    def _count_valid(
        self,
        signatures: Sequence[Signature],
        listed: FrozenSet[str],
        message: bytes
    ) -> FrozenSet[str]:
        if self.max_workers > 1 and len(signatures) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                keys = list(pool.map(lambda s: _signing_key(s, message), signatures))
        else:
            keys = [_signing_key(s, message) for s in signatures]

        candidates: Dict[str, Set[bytes]] = {}
        for signature, spki in zip(signatures, keys):
            if spki is None:
                continue
            if signature.keyid not in listed:
                logger.debug("Not counting valid signature from unlisted keyid %s", signature.keyid)
                continue
            candidates.setdefault(signature.keyid, set()).add(spki)
        return _match_keys(candidates)


def evaluate_policy(raw: bytes, now: datetime, max_workers: int = 1) -> EvaluationResult:
    """Convenience function to evaluate a document for the Root role."""
    return PolicyEvaluator(max_workers=max_workers).evaluate(raw, now)


def verify_policy(raw: bytes, now: datetime, max_workers: int = 1) -> Signed:
    """
    Verify a document and return its trusted body.

    Raises:
        ParseError, CertificateError: if the document cannot be evaluated
        ExpiredError: if the policy is expired
        ThresholdError: if the Root role is not satisfied
    """
    return evaluate_policy(raw, now, max_workers=max_workers).raise_for_verdict()
