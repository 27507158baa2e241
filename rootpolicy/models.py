"""
rootpolicy Data Model

Typed representation of a signed root policy document.

Wire layout:
    {
      "signatures": [{"keyid": <hex>, "sig": <base64>, "cert": <base64>}, ...],
      "signed": {
        "consistent_snapshot": <bool>,
        "expires": <RFC 3339 timestamp>,
        "keys": {<keyid>: {"keytype": "sigstore-oidc", "keyval": {...}, "scheme": ...}},
        "namespace": <str>,
        "roles": {"Root": {"keyids": [<keyid>, ...], "threshold": <int >= 1>}},
        "spec_version": <str>,
        "version": <int >= 1>
      }
    }

All models are frozen and decoded in strict mode: the wire types must
match exactly, nothing is coerced.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Union

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from .canonicalization import RawPolicy, split_document
from .errors import ParseError


class RoleType(str, Enum):
    """
    The type of metadata role.

    ROOT: delegates trust to the keys trusted for every other
    top-level role in the system.
    """
    ROOT = "Root"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "RoleType":
        """Parse a role name; unknown names are a hard failure."""
        try:
            return cls(value)
        except ValueError:
            raise ParseError(f"Unknown RoleType: {value}") from None


class Signature(BaseModel):
    """A signature and the key ID and certificate that made it."""
    model_config = ConfigDict(frozen=True, strict=True)

    keyid: str = Field(description="Hex encoded ID of the key that made this signature")
    sig: str = Field(description="Base64 encoded DER ECDSA signature over the signed body")
    cert: str = Field(description="Base64 encoded PEM certificate used to create the signature")


class SigstoreOidcKeyVal(BaseModel):
    """The OIDC identity a sigstore key is bound to."""
    model_config = ConfigDict(frozen=True, strict=True)

    identity: str
    issuer: str


class SigstoreOidcKey(BaseModel):
    """
    A sigstore OIDC key.

    Fields the model does not know about (key_hash_algorithms and the like)
    are accepted and kept in model_extra, but nothing reads them.
    """
    model_config = ConfigDict(frozen=True, strict=True, extra="allow")

    keytype: Literal["sigstore-oidc"]
    keyval: SigstoreOidcKeyVal
    scheme: str

    @property
    def identity(self) -> str:
        return self.keyval.identity

    @property
    def issuer(self) -> str:
        return self.keyval.issuer


# Closed set of key variants, keyed by their 'keytype' tag. A second
# variant turns Key into a Union discriminated on 'keytype'.
KEY_TYPES = {
    "sigstore-oidc": SigstoreOidcKey,
}

Key = SigstoreOidcKey


class RoleKeys(BaseModel):
    """The keys and signature threshold for one role."""
    model_config = ConfigDict(frozen=True, strict=True)

    keyids: List[str] = Field(description="The key IDs used for the role")
    threshold: int = Field(gt=0, description="Signatures required to validate the role")


class Signed(BaseModel):
    """The root policy body that is signed."""
    model_config = ConfigDict(frozen=True, strict=True)

    consistent_snapshot: bool
    expires: AwareDatetime
    keys: Dict[str, Key]
    namespace: str
    roles: Dict[str, RoleKeys]
    spec_version: str
    version: int = Field(gt=0)

    @field_validator("keys", mode="before")
    @classmethod
    def _known_keytypes(cls, value: Any) -> Any:
        if isinstance(value, dict):
            for keyid, key in value.items():
                if not isinstance(key, dict):
                    continue
                if "keytype" not in key:
                    raise ValueError(f"Missing keytype for key {keyid}")
                if not isinstance(key["keytype"], str) or key["keytype"] not in KEY_TYPES:
                    raise ValueError(f"Unknown keytype: {key['keytype']}")
        return value

    @field_validator("expires")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return value.astimezone(timezone.utc)

    def role(self, role_type: Union[RoleType, str]) -> RoleKeys:
        """Look up the keys for a role, failing if the policy does not define it."""
        if not isinstance(role_type, RoleType):
            role_type = RoleType.parse(role_type)
        try:
            return self.roles[role_type.value]
        except KeyError:
            raise ParseError(f"Missing role: {role_type.value}") from None


class Policy(BaseModel):
    """A signed root policy object."""
    model_config = ConfigDict(frozen=True, strict=True)

    signatures: List[Signature]
    signed: Signed

    def validate_expires(self, now: datetime) -> timedelta:
        """
        Time remaining until the policy expires, relative to 'now'.

        Zero or negative means the policy is expired.
        """
        return self.signed.expires - now

    def is_expired(self, now: datetime) -> bool:
        return self.validate_expires(now) <= timedelta(0)

    @classmethod
    def from_json(cls, raw: bytes) -> "Policy":
        """Decode the typed policy from a raw document."""
        return decode_policy(raw).policy


@dataclass(frozen=True)
class ParsedPolicy:
    """
    A decoded policy together with the raw spans it was decoded from.

    Both halves come from the same split of the same input bytes;
    signature checks must use raw.signed, never a re-encoding of policy.
    """
    policy: Policy
    raw: RawPolicy

    @property
    def signed_bytes(self) -> bytes:
        return self.raw.signed


_SIGNATURE_LIST = TypeAdapter(List[Signature])


def _describe(member: str, error: ValidationError) -> str:
    details = error.errors()
    first = details[0]
    loc = ".".join(str(part) for part in (member,) + tuple(first["loc"]))
    message = f"Invalid field '{loc}': {first['msg']}"
    if len(details) > 1:
        message += f" (and {len(details) - 1} more)"
    return message


def decode_policy(raw: bytes) -> ParsedPolicy:
    """
    Split and decode a policy document in one pass.

    Raises:
        ParseError: on malformed JSON, unknown role/key tags, or values that
            break a type invariant (e.g. version or threshold of zero)
    """
    raw_policy = split_document(raw)

    try:
        signatures = _SIGNATURE_LIST.validate_json(raw_policy.signatures)
    except ValidationError as e:
        raise ParseError(_describe("signatures", e)) from e

    try:
        signed = Signed.model_validate_json(raw_policy.signed)
    except ValidationError as e:
        raise ParseError(_describe("signed", e)) from e

    return ParsedPolicy(policy=Policy(signatures=signatures, signed=signed), raw=raw_policy)
