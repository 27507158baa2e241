"""
rootpolicy: Signed Root Policy Verification

Validates a signed root-of-trust policy document: a JSON object asserting
which keys and roles are authorized within a namespace, authenticated by
ECDSA P-256 signatures over short-lived certificates.

A document is TRUSTED when it has not expired and its Root role collected
at least 'threshold' distinct valid signatures from its listed keys.

Usage:
    from datetime import datetime, timezone
    from rootpolicy import PolicyEvaluator, verify_policy

    evaluator = PolicyEvaluator()
    result = evaluator.evaluate(raw_bytes, datetime.now(timezone.utc))

    if result.trusted():
        # Decoded trust map for downstream decisions
        keys = result.signed.keys
    else:
        print(result.verdict.value, result.reason)

    # Or raise on anything but TRUSTED
    signed = verify_policy(raw_bytes, datetime.now(timezone.utc))
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

# Errors
from .errors import (
    RootPolicyError,
    ParseError,
    CertificateError,
    CertificateFailure,
    VerificationError,
    ExpiredError,
    ThresholdError,
)

# Canonical document handling
from .canonicalization import RawPolicy, split_document, canonicalize, canonicalize_str

# Data model
from .models import (
    Policy,
    ParsedPolicy,
    Signature,
    Signed,
    RoleKeys,
    RoleType,
    Key,
    SigstoreOidcKey,
    SigstoreOidcKeyVal,
    KEY_TYPES,
    decode_policy,
)

# Keys and signatures
from .certificates import extract_public_key, load_certificate
from .verifier import verify_signature, is_valid_signature

# Evaluator
from .evaluator import (
    PolicyEvaluator,
    EvaluationResult,
    Verdict,
    evaluate_policy,
    verify_policy,
)


__all__ = [
    # Version
    "__version__",

    # Errors
    "RootPolicyError",
    "ParseError",
    "CertificateError",
    "CertificateFailure",
    "VerificationError",
    "ExpiredError",
    "ThresholdError",

    # Canonicalization
    "RawPolicy",
    "split_document",
    "canonicalize",
    "canonicalize_str",

    # Data model
    "Policy",
    "ParsedPolicy",
    "Signature",
    "Signed",
    "RoleKeys",
    "RoleType",
    "Key",
    "SigstoreOidcKey",
    "SigstoreOidcKeyVal",
    "KEY_TYPES",
    "decode_policy",

    # Keys and signatures
    "extract_public_key",
    "load_certificate",
    "verify_signature",
    "is_valid_signature",

    # Evaluator
    "PolicyEvaluator",
    "EvaluationResult",
    "Verdict",
    "evaluate_policy",
    "verify_policy",
]
