"""
Pytest configuration and shared fixtures for rvmkit tests.
"""

from pathlib import Path

import pytest

from rvmkit.core.config import RvmConfig
from rvmkit.core.platform import clear_platform_cache
from rvmkit.releases.fetcher import StagedArtifact
from rvmkit.store.store import VersionStore
from tests.helpers import BASE_URL, binary_content, make_descriptor


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path_factory):
    """Keep tests away from the user's data directory and environment."""
    for name in ("RVM_HOME", "RVM_MANIFEST_URL", "RVM_LOCK_TIMEOUT", "RVM_OFFLINE"):
        monkeypatch.delenv(name, raising=False)
    fake_home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setenv("USERPROFILE", str(fake_home))
    monkeypatch.setenv("XDG_DATA_HOME", str(fake_home / ".local" / "share"))
    clear_platform_cache()
    yield
    clear_platform_cache()


@pytest.fixture
def store_root(tmp_path) -> Path:
    """Root directory of a fresh version store."""
    return tmp_path / "rvm"


@pytest.fixture
def store(store_root) -> VersionStore:
    """Empty version store with a short lock timeout."""
    return VersionStore(store_root, lock_timeout=2)


@pytest.fixture
def config() -> RvmConfig:
    """Configuration pointing at the mocked distribution host."""
    return RvmConfig(manifest_url=BASE_URL, max_retries=2, retry_backoff=0)


@pytest.fixture
def make_staged(tmp_path):
    """Factory creating verified staged artifacts outside any store."""
    staging = tmp_path / "staging"
    staging.mkdir()

    def factory(version: str, content: bytes = None) -> StagedArtifact:
        content = binary_content(version) if content is None else content
        descriptor = make_descriptor(version, content)
        path = staging / f"sha256-{descriptor.digest.value}"
        path.write_bytes(content)
        return StagedArtifact(
            path=path, digest=descriptor.digest, size=len(content), descriptor=descriptor
        )

    return factory
