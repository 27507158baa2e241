"""
rootpolicy Signing

Produces signed root policy documents: short-lived, Fulcio-style
certificates binding a P-256 key to an OIDC identity, and ECDSA
signatures over the exact bytes of the 'signed' body.

Certificates are self-signed. Trust in the issuer is established outside
this package, so nothing here plays the role of a CA.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from .canonicalization import canonicalize
from .models import RoleType
from .util import b64e, format_timestamp, sha256_hex, utc_now
from .verifier import SIGNATURE_ALGORITHM


# Fulcio's OIDC issuer extension (v1, raw string value)
OIDC_ISSUER_OID = x509.ObjectIdentifier("1.3.6.1.4.1.57264.1.1")

KEYTYPE = "sigstore-oidc"
SCHEME = "ecdsa-sha2-nistp256"


@dataclass
class SigningIdentity:
    """A P-256 key and the short-lived certificate that binds it to an identity."""
    identity: str
    issuer: str
    private_key: ec.EllipticCurvePrivateKey
    certificate: x509.Certificate
    scheme: str = SCHEME

    @property
    def keyid(self) -> str:
        """Hex SHA-256 of the DER SubjectPublicKeyInfo."""
        spki = self.private_key.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return sha256_hex(spki)

    @property
    def cert_pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)

    @property
    def valid_from(self) -> datetime:
        return self.certificate.not_valid_before_utc

    @property
    def valid_until(self) -> datetime:
        return self.certificate.not_valid_after_utc

    def key_entry(self) -> Dict[str, Any]:
        """Convert to a 'keys' entry of the signed body."""
        return {
            "keytype": KEYTYPE,
            "keyval": {"identity": self.identity, "issuer": self.issuer},
            "scheme": self.scheme,
        }

    def sign(self, message: bytes) -> Dict[str, str]:
        """
        Sign message bytes.

        Returns:
            Signature entry with keyid, base64 DER signature and base64 PEM cert
        """
        signature = self.private_key.sign(message, SIGNATURE_ALGORITHM)
        return {
            "keyid": self.keyid,
            "sig": b64e(signature),
            "cert": b64e(self.cert_pem),
        }


def _subject_alternative_name(identity: str) -> x509.SubjectAlternativeName:
    if "@" in identity and "://" not in identity:
        return x509.SubjectAlternativeName([x509.RFC822Name(identity)])
    return x509.SubjectAlternativeName([x509.UniformResourceIdentifier(identity)])


def issue_certificate(
    private_key: ec.EllipticCurvePrivateKey,
    identity: str,
    issuer: str,
    not_before: datetime,
    not_after: datetime
) -> x509.Certificate:
    """Issue a self-signed code-signing certificate for an OIDC identity."""
    name = x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "sigstore.dev"),
        x509.NameAttribute(NameOID.COMMON_NAME, "rootpolicy-signer"),
    ])
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CODE_SIGNING]), critical=False
        )
        .add_extension(_subject_alternative_name(identity), critical=True)
        .add_extension(
            x509.UnrecognizedExtension(OIDC_ISSUER_OID, issuer.encode("utf-8")), critical=False
        )
        .sign(private_key, hashes.SHA256())
    )


class PolicySigner:
    """
    Holds the signing identities for a root policy.

    Certificates are short-lived (ten minutes by default), in the manner of
    keyless signing: the key is only meant to exist for one signing act.
    """

    DEFAULT_VALIDITY_MINUTES = 10

    def __init__(self):
        self._identities: Dict[str, SigningIdentity] = {}

    def generate_identity(
        self,
        identity: str,
        issuer: str,
        validity_minutes: int = DEFAULT_VALIDITY_MINUTES,
        now: Optional[datetime] = None
    ) -> SigningIdentity:
        """
        Generate a new P-256 key and certificate for an OIDC identity.

        Args:
            identity: OIDC subject (email or URI)
            issuer: OIDC issuer URL
            validity_minutes: Certificate validity period
            now: Certificate start time (default: current time)
        """
        now = now or utc_now()
        private_key = ec.generate_private_key(ec.SECP256R1())
        certificate = issue_certificate(
            private_key,
            identity,
            issuer,
            not_before=now - timedelta(minutes=1),
            not_after=now + timedelta(minutes=validity_minutes),
        )
        signing_identity = SigningIdentity(
            identity=identity,
            issuer=issuer,
            private_key=private_key,
            certificate=certificate,
        )
        self.register(signing_identity)
        return signing_identity

    def register(self, identity: SigningIdentity) -> None:
        """Register an existing identity, e.g. one shared between policies."""
        self._identities[identity.keyid] = identity

    def get(self, keyid: str) -> SigningIdentity:
        if keyid not in self._identities:
            raise ValueError(f"Key not found: {keyid}")
        return self._identities[keyid]

    def identities(self) -> List[SigningIdentity]:
        return list(self._identities.values())

    def root_keys(self, threshold: Optional[int] = None) -> Dict[str, Any]:
        """
        Build the 'keys' and 'roles' sections trusting every registered identity.

        Args:
            threshold: Root threshold (default: all registered identities)
        """
        keyids = list(self._identities)
        return {
            "keys": {keyid: ident.key_entry() for keyid, ident in self._identities.items()},
            "roles": {
                RoleType.ROOT.value: {
                    "keyids": keyids,
                    "threshold": threshold if threshold is not None else len(keyids),
                }
            },
        }


def build_signed_body(
    namespace: str,
    keys: Dict[str, Any],
    roles: Dict[str, Any],
    expires: datetime,
    version: int = 1,
    spec_version: str = "1.0",
    consistent_snapshot: bool = False
) -> Dict[str, Any]:
    """Assemble the 'signed' section of a root policy."""
    return {
        "consistent_snapshot": consistent_snapshot,
        "expires": format_timestamp(expires),
        "keys": keys,
        "namespace": namespace,
        "roles": roles,
        "spec_version": spec_version,
        "version": version,
    }


def build_policy_document(
    signed: Dict[str, Any],
    identities: Iterable[SigningIdentity],
    indent: Optional[int] = None
) -> bytes:
    """
    Serialize 'signed' once, sign those bytes, and assemble the document.

    The signed body is spliced into the outer object as text, so the bytes
    a verifier recovers are exactly the bytes that were signed. With
    indent=None the body uses the canonical compact encoding.
    """
    if indent is None:
        body = canonicalize(signed)
    else:
        body = json.dumps(signed, indent=indent, ensure_ascii=False).encode("utf-8")

    signatures = [identity.sign(body) for identity in identities]
    signatures_json = json.dumps(signatures, indent=indent).encode("utf-8")

    separator = b"\n" if indent is not None else b""
    return (
        b"{" + separator
        + b'"signatures":' + signatures_json + b"," + separator
        + b'"signed":' + body + separator
        + b"}"
    )
