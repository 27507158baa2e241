"""Data model tests: decoding, tags and numeric invariants."""

import copy
import json
import unittest
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from rootpolicy import (
    ParseError,
    Policy,
    RoleType,
    SigstoreOidcKey,
    decode_policy,
)

KEYID = "a" * 64

SIGNED = {
    "consistent_snapshot": False,
    "expires": "2030-01-01T00:00:00Z",
    "keys": {
        KEYID: {
            "keytype": "sigstore-oidc",
            "keyval": {"identity": "alice@example.com", "issuer": "https://accounts.example.com"},
            "scheme": "ecdsa-sha2-nistp256",
        }
    },
    "namespace": "example",
    "roles": {"Root": {"keyids": [KEYID], "threshold": 1}},
    "spec_version": "1.0",
    "version": 3,
}

SIGNATURES = [{"keyid": KEYID, "sig": "c2ln", "cert": "Y2VydA=="}]


def document(signed=None, signatures=None) -> bytes:
    return json.dumps({
        "signatures": SIGNATURES if signatures is None else signatures,
        "signed": SIGNED if signed is None else signed,
    }).encode("utf-8")


def mutated(**changes):
    signed = copy.deepcopy(SIGNED)
    signed.update(changes)
    return signed


class TestDecode(unittest.TestCase):
    """Decoding a well-formed document"""

    def test_decode_fields(self):
        parsed = decode_policy(document())
        signed = parsed.policy.signed

        self.assertEqual(signed.namespace, "example")
        self.assertEqual(signed.version, 3)
        self.assertFalse(signed.consistent_snapshot)
        self.assertEqual(signed.expires, datetime(2030, 1, 1, tzinfo=timezone.utc))
        self.assertEqual(parsed.policy.signatures[0].keyid, KEYID)

        key = signed.keys[KEYID]
        self.assertIsInstance(key, SigstoreOidcKey)
        self.assertEqual(key.identity, "alice@example.com")
        self.assertEqual(key.issuer, "https://accounts.example.com")

        root = signed.role(RoleType.ROOT)
        self.assertEqual(root.keyids, [KEYID])
        self.assertEqual(root.threshold, 1)

    def test_signed_bytes_match_input(self):
        raw = document()
        parsed = decode_policy(raw)
        self.assertIn(parsed.signed_bytes, raw)
        self.assertEqual(json.loads(parsed.signed_bytes), SIGNED)

    def test_from_json(self):
        self.assertEqual(Policy.from_json(document()).signed.version, 3)

    def test_expires_offset_normalized(self):
        parsed = decode_policy(document(mutated(expires="2030-01-01T02:00:00+02:00")))
        self.assertEqual(parsed.policy.signed.expires, datetime(2030, 1, 1, tzinfo=timezone.utc))

    def test_wire_tags_round_trip(self):
        """'Root' and 'sigstore-oidc' are written back exactly as read."""
        dumped = decode_policy(document()).policy.signed.model_dump(mode="json")
        self.assertIn("Root", dumped["roles"])
        self.assertEqual(dumped["keys"][KEYID]["keytype"], "sigstore-oidc")

    def test_extra_key_fields_kept(self):
        signed = copy.deepcopy(SIGNED)
        signed["keys"][KEYID]["key_hash_algorithms"] = ["sha256"]
        key = decode_policy(document(signed)).policy.signed.keys[KEYID]
        self.assertEqual(key.model_extra["key_hash_algorithms"], ["sha256"])

    def test_models_are_frozen(self):
        signed = decode_policy(document()).policy.signed
        with self.assertRaises(ValidationError):
            signed.version = 4


class TestInvariants(unittest.TestCase):
    """Values that break a type invariant are parse errors"""

    def test_version_zero(self):
        with self.assertRaises(ParseError) as ctx:
            decode_policy(document(mutated(version=0)))
        self.assertIn("signed.version", ctx.exception.message)

    def test_version_negative(self):
        with self.assertRaises(ParseError):
            decode_policy(document(mutated(version=-1)))

    def test_threshold_zero(self):
        with self.assertRaises(ParseError) as ctx:
            decode_policy(document(mutated(roles={"Root": {"keyids": [KEYID], "threshold": 0}})))
        self.assertIn("threshold", ctx.exception.message)

    def test_version_as_string_not_coerced(self):
        with self.assertRaises(ParseError):
            decode_policy(document(mutated(version="3")))

    def test_expires_without_offset(self):
        with self.assertRaises(ParseError):
            decode_policy(document(mutated(expires="2030-01-01T00:00:00")))

    def test_missing_signed_field(self):
        signed = copy.deepcopy(SIGNED)
        del signed["namespace"]
        with self.assertRaises(ParseError):
            decode_policy(document(signed))

    def test_signature_missing_cert(self):
        with self.assertRaises(ParseError) as ctx:
            decode_policy(document(signatures=[{"keyid": KEYID, "sig": "c2ln"}]))
        self.assertIn("signatures", ctx.exception.message)


class TestTags(unittest.TestCase):
    """Closed enumerations"""

    def test_unknown_keytype(self):
        signed = copy.deepcopy(SIGNED)
        signed["keys"][KEYID]["keytype"] = "ed25519"
        with self.assertRaises(ParseError) as ctx:
            decode_policy(document(signed))
        self.assertIn("Unknown keytype", ctx.exception.message)

    def test_non_string_keytype(self):
        for value in (["sigstore-oidc"], {"name": "sigstore-oidc"}, 1, None):
            with self.subTest(keytype=value):
                signed = copy.deepcopy(SIGNED)
                signed["keys"][KEYID]["keytype"] = value
                with self.assertRaises(ParseError) as ctx:
                    decode_policy(document(signed))
                self.assertIn("Unknown keytype", ctx.exception.message)

    def test_missing_keytype(self):
        signed = copy.deepcopy(SIGNED)
        del signed["keys"][KEYID]["keytype"]
        with self.assertRaises(ParseError) as ctx:
            decode_policy(document(signed))
        self.assertIn("Missing keytype", ctx.exception.message)

    def test_role_type_parse(self):
        self.assertIs(RoleType.parse("Root"), RoleType.ROOT)
        self.assertEqual(str(RoleType.ROOT), "Root")

    def test_role_type_is_case_sensitive(self):
        for name in ("root", "ROOT", "Targets"):
            with self.subTest(name=name):
                with self.assertRaises(ParseError):
                    RoleType.parse(name)

    def test_missing_root_role(self):
        signed = decode_policy(document(mutated(roles={"Targets": {"keyids": [], "threshold": 1}}))).policy.signed
        with self.assertRaises(ParseError) as ctx:
            signed.role(RoleType.ROOT)
        self.assertEqual(ctx.exception.message, "Missing role: Root")


class TestExpiry(unittest.TestCase):
    """validate_expires"""

    def setUp(self):
        self.policy = decode_policy(document()).policy
        self.expires = datetime(2030, 1, 1, tzinfo=timezone.utc)

    def test_remaining_positive(self):
        now = self.expires - timedelta(hours=1)
        self.assertEqual(self.policy.validate_expires(now), timedelta(hours=1))
        self.assertFalse(self.policy.is_expired(now))

    def test_expired_exactly_at_expiry(self):
        self.assertEqual(self.policy.validate_expires(self.expires), timedelta(0))
        self.assertTrue(self.policy.is_expired(self.expires))

    def test_remaining_negative(self):
        now = self.expires + timedelta(seconds=1)
        self.assertEqual(self.policy.validate_expires(now), timedelta(seconds=-1))
        self.assertTrue(self.policy.is_expired(now))


if __name__ == "__main__":
    unittest.main()
