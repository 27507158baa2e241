"""
rootpolicy Signature Verification

ECDSA over NIST P-256 with SHA-256, signatures in DER form.

Every failure is reported as the same VerificationError: callers cannot
tell a malformed signature from a cryptographic mismatch.
"""

import base64
import binascii

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from .errors import VerificationError


SIGNATURE_ALGORITHM = ec.ECDSA(hashes.SHA256())


def verify_signature(
    public_key: ec.EllipticCurvePublicKey,
    sig_b64: str,
    message: bytes
) -> None:
    """
    Verify that 'sig_b64' was produced by 'public_key' over 'message'.

    Args:
        public_key: P-256 verification key
        sig_b64: Base64 encoded DER ECDSA signature
        message: The exact signed bytes

    Raises:
        VerificationError: if the signature does not decode or does not verify
    """
    try:
        signature = base64.b64decode(sig_b64, validate=True)
        decode_dss_signature(signature)
        public_key.verify(signature, message, SIGNATURE_ALGORITHM)
    except (binascii.Error, ValueError, InvalidSignature):
        raise VerificationError("Verification failed") from None


def is_valid_signature(
    public_key: ec.EllipticCurvePublicKey,
    sig_b64: str,
    message: bytes
) -> bool:
    """Verify a signature, returning True if valid, False otherwise."""
    try:
        verify_signature(public_key, sig_b64, message)
        return True
    except VerificationError:
        return False
