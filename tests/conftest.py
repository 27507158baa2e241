import pytest
from fastapi.testclient import TestClient

from rootpolicy import config
from rootpolicy.api import app

from builders import make_document, make_signers


@pytest.fixture(scope="session")
def signers():
    return make_signers(2)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def policy_file(tmp_path, signers, monkeypatch):
    """A trusted single-signer policy installed as the configured policy."""
    path = tmp_path / "root_policy.json"
    path.write_bytes(make_document(signers[:1]))
    monkeypatch.setattr(config, "POLICY_PATH", str(path))
    config.invalidate_config_cache()
    yield path
    config.invalidate_config_cache()
