#!/usr/bin/env python3
"""
rootpolicy Command Line Interface

Usage:
    rootpolicy verify --policy <file> [--now <timestamp>] [--workers <n>]
    rootpolicy inspect --policy <file>
    rootpolicy demo

Exit codes for verify:
    0  TRUSTED
    1  EXPIRED or UNTRUSTED
    2  the document could not be evaluated (parse or certificate error)
"""

import argparse
import json
import sys
from datetime import timedelta
from pathlib import Path


EXIT_TRUSTED = 0
EXIT_REJECTED = 1
EXIT_INVALID = 2


def load_bytes(path: str) -> bytes:
    """Load a policy document exactly as stored."""
    return Path(path).read_bytes()


def _read_policy(path: str):
    """Read a policy file, reporting an unreadable path instead of raising."""
    try:
        return load_bytes(path)
    except OSError as e:
        print(f"✗ INVALID: cannot read {path}: {e.strerror or e}")
        return None


def _positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return n


def cmd_verify(args):
    """Verify a root policy document."""
    from rootpolicy import PolicyEvaluator, RootPolicyError, ThresholdError
    from rootpolicy.logging_config import audit_log
    from rootpolicy.util import utc_now

    raw = _read_policy(args.policy)
    if raw is None:
        return EXIT_INVALID
    now = args.now or utc_now()

    evaluator = PolicyEvaluator(max_workers=args.workers)
    try:
        result = evaluator.evaluate(raw, now)
    except ThresholdError as e:
        audit_log.policy_rejected(e.error_code, e.message, source=args.policy)
        print(f"✗ UNTRUSTED: {e.message}")
        return EXIT_REJECTED
    except RootPolicyError as e:
        audit_log.policy_rejected(e.error_code, e.message, source=args.policy)
        print(f"✗ INVALID: {e.message}")
        print(json.dumps(e.to_dict(), indent=2))
        return EXIT_INVALID

    audit_log.policy_evaluated(
        namespace=result.signed.namespace if result.signed else None,
        verdict=result.verdict.value,
        threshold=result.threshold,
        valid_keyids=result.valid_keyids,
        version=result.signed.version if result.signed else None,
        reason=result.reason,
    )

    if result.trusted():
        print(f"✓ {result.verdict.value}")
        print(f"  Namespace: {result.signed.namespace}")
        print(f"  Version: {result.signed.version}")
        print(f"  Signatures: {len(result.valid_keyids)}/{result.threshold}")
        print(f"  Expires in: {result.remaining}")
        return EXIT_TRUSTED

    print(f"✗ {result.verdict.value}: {result.reason}")
    return EXIT_REJECTED


def cmd_inspect(args):
    """Decode a root policy document without verifying it."""
    from rootpolicy import RootPolicyError, decode_policy

    raw = _read_policy(args.policy)
    if raw is None:
        return EXIT_INVALID

    try:
        parsed = decode_policy(raw)
    except RootPolicyError as e:
        print(f"✗ INVALID: {e.message}")
        return EXIT_INVALID

    output = {
        "signatures": [s.keyid for s in parsed.policy.signatures],
        "signed": parsed.policy.signed.model_dump(mode="json"),
    }
    print(json.dumps(output, indent=2))
    return EXIT_TRUSTED


def cmd_demo(args):
    """Run a demonstration of root policy verification."""
    from rootpolicy import PolicyEvaluator
    from rootpolicy.signing import PolicySigner, build_policy_document, build_signed_body
    from rootpolicy.util import utc_now

    print("=" * 60)
    print("Root Policy Verification Demonstration")
    print("=" * 60)

    now = utc_now()
    issuer = "https://accounts.example.com"

    signer = PolicySigner()
    alice = signer.generate_identity("alice@example.com", issuer)
    bob = signer.generate_identity("bob@example.com", issuer)

    print(f"\nGenerated signer: {alice.identity} ({alice.keyid[:16]}...)")
    print(f"Generated signer: {bob.identity} ({bob.keyid[:16]}...)")

    evaluator = PolicyEvaluator()

    def show(title, document):
        print("\n" + "-" * 60)
        print(title)
        print("-" * 60)
        result = evaluator.evaluate(document, now)
        print(f"Verdict: {result.verdict.value}")
        if result.threshold is not None:
            print(f"Valid signatures: {len(result.valid_keyids)}/{result.threshold}")
        if result.reason:
            print(f"Reason: {result.reason}")

    # Scenario 1: single signer, threshold 1
    single = PolicySigner()
    single.register(alice)
    sections = single.root_keys(threshold=1)
    signed = build_signed_body("demo", sections["keys"], sections["roles"], now + timedelta(days=30))
    show("Scenario 1: One listed signer, threshold 1", build_policy_document(signed, [alice]))

    # Scenario 2: same policy, already expired
    signed = build_signed_body("demo", sections["keys"], sections["roles"], now - timedelta(seconds=1))
    show("Scenario 2: Same policy, expired one second ago", build_policy_document(signed, [alice]))

    # Scenario 3: two listed signers, threshold 2, only one signature
    sections = signer.root_keys(threshold=2)
    signed = build_signed_body("demo", sections["keys"], sections["roles"], now + timedelta(days=30))
    show("Scenario 3: Threshold 2, only one signature", build_policy_document(signed, [alice]))

    # Scenario 4: both signers
    show("Scenario 4: Threshold 2, both signatures", build_policy_document(signed, [alice, bob]))

    print("\n" + "=" * 60)
    print("Demonstration complete.")
    print("=" * 60)
    return EXIT_TRUSTED


def main(argv=None):
    from rootpolicy import config
    from rootpolicy.logging_config import configure_logging
    from rootpolicy.util import parse_timestamp

    parser = argparse.ArgumentParser(
        description="Signed root policy verifier",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rootpolicy demo                                Run demonstration
  rootpolicy verify -p root.json
  rootpolicy verify -p root.json --now 2030-01-01T00:00:00Z -w 4
  rootpolicy inspect -p root.json
        """
    )
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify a root policy document")
    verify_parser.add_argument("-p", "--policy", default=config.POLICY_PATH, help="Policy JSON file")
    verify_parser.add_argument(
        "-n", "--now", type=parse_timestamp,
        help="Evaluation time (ISO 8601, default: current time)"
    )
    verify_parser.add_argument(
        "-w", "--workers", type=_positive_int, default=config.MAX_WORKERS,
        help="Threads used to verify signatures"
    )

    # inspect
    inspect_parser = subparsers.add_parser("inspect", help="Decode a policy without verifying it")
    inspect_parser.add_argument("-p", "--policy", default=config.POLICY_PATH, help="Policy JSON file")

    # demo
    subparsers.add_parser("demo", help="Run demonstration")

    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, json_format=config.LOG_JSON)

    if args.command == "verify":
        return cmd_verify(args)
    elif args.command == "inspect":
        return cmd_inspect(args)
    elif args.command == "demo":
        return cmd_demo(args)
    else:
        parser.print_help()
        return EXIT_INVALID


if __name__ == "__main__":
    sys.exit(main())
