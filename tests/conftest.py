"""Pytest configuration and fixtures."""

import pytest
import sys
from pathlib import Path

# Add src (and this directory, for the shared fakes) to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeHasher, FakeNode, FakeProver, FakeRelayer, FakeSigner  # noqa: E402
from zkpool.config import reset_settings  # noqa: E402
from zkpool.core.events import InMemoryEventCacheStore  # noqa: E402
from zkpool.storage.database import reset_db_manager  # noqa: E402


def pytest_configure(config):
    config.addinivalue_line("markers", "benchmark: performance benchmarks")


@pytest.fixture(autouse=True)
def _fresh_singletons():
    """Keep process-wide settings and database managers out of other tests."""
    reset_settings()
    reset_db_manager()
    yield
    reset_settings()
    reset_db_manager()


@pytest.fixture
def temp_db(tmp_path):
    """Fixture providing a temporary SQLite URL."""
    return f"sqlite:///{tmp_path / 'events.db'}"


@pytest.fixture
def node():
    """Fake JSON-RPC node with the chain head at block 5000."""
    return FakeNode()


@pytest.fixture
def rpc(node):
    return node.client()


@pytest.fixture
def store():
    return InMemoryEventCacheStore()


@pytest.fixture
def hasher():
    return FakeHasher()


@pytest.fixture
def prover():
    return FakeProver()


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def relayer_api():
    return FakeRelayer()


@pytest.fixture(scope="session")
def test_data():
    """Fixture providing test data."""
    return {
        "sender": 0xAA,
        "recipient": 0xBB,
        "private_key": 0x4C0883A69102937D6231471B5DBB6204FE5129617082792AE468D01A3F362318,
        "sample_tree_height": 4,
    }
