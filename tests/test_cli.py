import json
from datetime import timedelta

import pytest

from rootpolicy.cli import EXIT_INVALID, EXIT_REJECTED, EXIT_TRUSTED, main

from builders import NOW, make_document

STAMP = "2026-01-15T12:00:00Z"


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch):
    # Keep pytest's own log capture handlers in place
    monkeypatch.setattr("rootpolicy.logging_config.configure_logging", lambda **kwargs: None)


def write(tmp_path, document, name="root.json"):
    path = tmp_path / name
    path.write_bytes(document)
    return str(path)


def test_verify_trusted(tmp_path, signers, capsys):
    path = write(tmp_path, make_document(signers[:1]))
    assert main(["verify", "-p", path, "--now", STAMP]) == EXIT_TRUSTED
    out = capsys.readouterr().out
    assert "TRUSTED" in out
    assert "Namespace: test" in out


def test_verify_parallel_workers(tmp_path, signers):
    path = write(tmp_path, make_document(signers, threshold=2))
    assert main(["verify", "-p", path, "--now", STAMP, "-w", "4"]) == EXIT_TRUSTED


def test_verify_expired(tmp_path, signers, capsys):
    path = write(tmp_path, make_document(signers[:1], expires=NOW - timedelta(seconds=1)))
    assert main(["verify", "-p", path, "--now", STAMP]) == EXIT_REJECTED
    assert "EXPIRED" in capsys.readouterr().out


def test_verify_untrusted(tmp_path, signers, capsys):
    path = write(tmp_path, make_document(signers, signers=signers[1:], threshold=2))
    assert main(["verify", "-p", path, "--now", STAMP]) == EXIT_REJECTED
    assert "UNTRUSTED" in capsys.readouterr().out


def test_verify_invalid(tmp_path, capsys):
    path = write(tmp_path, b'{"signed": {}}')
    assert main(["verify", "-p", path, "--now", STAMP]) == EXIT_INVALID
    out = capsys.readouterr().out
    assert "INVALID" in out
    assert "PARSE_ERROR" in out


def test_verify_rejects_bad_now(tmp_path, signers):
    path = write(tmp_path, make_document(signers[:1]))
    with pytest.raises(SystemExit):
        main(["verify", "-p", path, "--now", "tomorrow"])


def test_verify_rejects_zero_workers(tmp_path, signers):
    path = write(tmp_path, make_document(signers[:1]))
    with pytest.raises(SystemExit):
        main(["verify", "-p", path, "-w", "0"])


def test_inspect(tmp_path, signers, capsys):
    path = write(tmp_path, make_document(signers[:1]))
    assert main(["inspect", "-p", path]) == EXIT_TRUSTED
    output = json.loads(capsys.readouterr().out)
    assert output["signatures"] == [signers[0].keyid]
    assert output["signed"]["namespace"] == "test"


def test_inspect_invalid(tmp_path):
    path = write(tmp_path, b"not json")
    assert main(["inspect", "-p", path]) == EXIT_INVALID


def test_demo(capsys):
    assert main(["demo"]) == EXIT_TRUSTED
    out = capsys.readouterr().out
    for verdict in ("TRUSTED", "EXPIRED", "UNTRUSTED"):
        assert f"Verdict: {verdict}" in out


def test_no_command():
    assert main([]) == EXIT_INVALID


def test_verify_missing_file(tmp_path, capsys):
    assert main(["verify", "-p", str(tmp_path / "absent.json"), "--now", STAMP]) == EXIT_INVALID
    assert "cannot read" in capsys.readouterr().out


def test_inspect_missing_file(tmp_path):
    assert main(["inspect", "-p", str(tmp_path / "absent.json")]) == EXIT_INVALID
