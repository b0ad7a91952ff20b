"""
Shared pytest fixtures for the LoginVault test suite.
"""

import logging
import os

import pytest

from loginvault.keys import KeyManager
from loginvault.paths import VaultPaths
from loginvault.storage import AccountStore
from loginvault.totp import TotpGenerator

# RFC 6238 Appendix B shared secret "12345678901234567890" in Base32.
RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


class FakeClock:
    """Settable clock returning Unix seconds."""

    def __init__(self, now: float = 0):
        self.now = now
        self.slept = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Drop handlers installed by setup_logging so log files are closed between tests."""
    yield
    package_logger = logging.getLogger("loginvault")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def paths(tmp_path):
    return VaultPaths.for_directory(str(tmp_path / "vault"))


@pytest.fixture
def key_manager(paths):
    paths.ensure_data_dir()
    return KeyManager(paths.key_file, vault_path=paths.accounts_file)


@pytest.fixture
def store(paths, key_manager):
    return AccountStore(paths.accounts_file, key_manager)


@pytest.fixture
def clock():
    return FakeClock(150)


@pytest.fixture
def totp(clock):
    return TotpGenerator(clock=clock, sleep=clock.sleep)


@pytest.fixture
def key():
    return os.urandom(32)
