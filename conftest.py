"""
Shared pytest fixtures for helperkit.
"""

import os
import sys
from typing import Generator

import pytest
from dotenv import load_dotenv

# Load environment variables from .env file, then force the test profile
load_dotenv()
os.environ["APP_ENV"] = "test"
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from helperkit.db.session import dispose_engines  # noqa: E402
from helperkit.security.encryption import generate_key  # noqa: E402
from helperkit.utils.logger import configure_logging  # noqa: E402

configure_logging()


class FixedRandomSource:
    """Deterministic nonce source: hands out the same bytes every call."""

    def __init__(self, fill: bytes = b"\x01"):
        self.fill = fill
        self.calls = 0

    def token_bytes(self, n: int) -> bytes:
        self.calls += 1
        return (self.fill * n)[:n]


@pytest.fixture
def key() -> bytes:
    """A fresh 32-byte AES-256 key."""
    return generate_key()


@pytest.fixture
def other_key() -> bytes:
    return generate_key()


@pytest.fixture
def fixed_random() -> FixedRandomSource:
    return FixedRandomSource()


@pytest.fixture(scope="function")
def sqlite_url(tmp_path) -> Generator[str, None, None]:
    """Yield a file-backed SQLite URL and dispose cached engines afterwards."""
    yield f"sqlite:///{tmp_path / 'helperkit-test.db'}"
    dispose_engines()
