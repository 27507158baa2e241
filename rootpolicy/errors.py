"""
rootpolicy Error Taxonomy

Every failure the core can report is a subclass of RootPolicyError and
carries a stable error_code alongside its human-readable message.
"""

from enum import Enum
from typing import Optional


class RootPolicyError(Exception):
    """Base class for all root policy failures."""

    error_code = "ROOT_POLICY_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code

    def to_dict(self):
        return {"error_code": self.error_code, "message": self.message}


class ParseError(RootPolicyError):
    """Malformed document, unknown enum tag, or violated numeric invariant."""

    error_code = "PARSE_ERROR"


class CertificateFailure(str, Enum):
    """Distinct ways a signing certificate can fail to yield a key."""
    INVALID_BASE64 = "INVALID_BASE64"
    INVALID_PEM = "INVALID_PEM"
    INVALID_X509 = "INVALID_X509"
    UNSUPPORTED_KEY = "UNSUPPORTED_KEY"


class CertificateError(RootPolicyError):
    """The certificate attached to a signature could not be turned into a key."""

    error_code = "CERTIFICATE_ERROR"

    def __init__(self, failure: CertificateFailure, message: str):
        super().__init__(message)
        self.failure = failure

    def to_dict(self):
        d = super().to_dict()
        d["failure"] = self.failure.value
        return d


class VerificationError(RootPolicyError):
    """
    A signature did not validate.

    Decode failures and cryptographic mismatches are reported identically.
    """

    error_code = "VERIFICATION_FAILED"


class ExpiredError(RootPolicyError):
    """The policy's expires timestamp is not after the evaluation time."""

    error_code = "EXPIRED"


class ThresholdError(RootPolicyError):
    """A role did not collect enough distinct valid signatures."""

    error_code = "THRESHOLD_NOT_MET"
