"""
rootpolicy Certificate Key Extraction

Each signature entry carries the short-lived (Fulcio-style) certificate
that was used for that signing act. This module answers "what key does
this certificate assert". Whether the certificate itself should be
trusted is decided elsewhere: no chain or CA validation happens here.
"""

import base64
import binascii

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec

from .errors import CertificateError, CertificateFailure


PEM_BEGIN = b"-----BEGIN CERTIFICATE-----"
PEM_END = b"-----END CERTIFICATE-----"


def decode_certificate_pem(cert_b64: str) -> bytes:
    """Base64-decode a certificate field and check its PEM framing."""
    try:
        pem = base64.b64decode(cert_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CertificateError(
            CertificateFailure.INVALID_BASE64,
            f"Certificate is not valid base64: {e}"
        ) from e

    begin = pem.find(PEM_BEGIN)
    end = pem.find(PEM_END, begin + len(PEM_BEGIN)) if begin >= 0 else -1
    if end < 0:
        raise CertificateError(
            CertificateFailure.INVALID_PEM,
            "Certificate is not a PEM encoded CERTIFICATE block"
        )

    # The armored body must itself be base64; DER problems are INVALID_X509
    body = b"".join(pem[begin + len(PEM_BEGIN):end].split())
    try:
        der = base64.b64decode(body, validate=True)
    except binascii.Error as e:
        raise CertificateError(
            CertificateFailure.INVALID_PEM,
            f"PEM body is not valid base64: {e}"
        ) from e
    if not der:
        raise CertificateError(CertificateFailure.INVALID_PEM, "PEM body is empty")
    return pem


def load_certificate(cert_b64: str) -> x509.Certificate:
    """
    Decode a base64 PEM certificate into an X.509 certificate object.

    Raises:
        CertificateError: INVALID_BASE64, INVALID_PEM or INVALID_X509
    """
    pem = decode_certificate_pem(cert_b64)
    try:
        return x509.load_pem_x509_certificate(pem)
    except ValueError as e:
        raise CertificateError(
            CertificateFailure.INVALID_X509,
            f"Error parsing signing certificate: {e}"
        ) from e


def extract_public_key(cert_b64: str) -> ec.EllipticCurvePublicKey:
    """
    Extract the NIST P-256 verification key embedded in a certificate.

    Args:
        cert_b64: Standard base64 of a PEM armored X.509 certificate

    Returns:
        The certificate's SubjectPublicKeyInfo as a P-256 public key

    Raises:
        CertificateError: with a failure code naming the step that failed
    """
    certificate = load_certificate(cert_b64)

    try:
        public_key = certificate.public_key()
    except (ValueError, UnsupportedAlgorithm) as e:
        raise CertificateError(
            CertificateFailure.UNSUPPORTED_KEY,
            f"Cannot load key: {e}"
        ) from e

    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise CertificateError(
            CertificateFailure.UNSUPPORTED_KEY,
            f"Expected an EC public key, got {type(public_key).__name__}"
        )
    if not isinstance(public_key.curve, ec.SECP256R1):
        raise CertificateError(
            CertificateFailure.UNSUPPORTED_KEY,
            f"Expected curve secp256r1, got {public_key.curve.name}"
        )

    return public_key
