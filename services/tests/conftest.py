"""Pytest configuration and fixtures."""

import shutil
from pathlib import Path

import pytest

from proxyca.ca import LeafCertificateIssuer, RootAuthority
from proxyca.ca.codec import KeyPair, generate_key_pair
from proxyca.config import Settings


@pytest.fixture(scope="session")
def root_template(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Create a root CA once per session; tests get a copy of its files.

    RSA generation is the slow part of every test, so it only happens here.
    """
    base = tmp_path_factory.mktemp("root-template")
    RootAuthority.open(base, settings=Settings(base_dir=base))
    return base


@pytest.fixture(scope="session")
def spare_key_pair() -> KeyPair:
    """A pre-generated key pair for tests that patch out key generation."""
    return generate_key_pair(2048)


@pytest.fixture
def base_dir(tmp_path: Path, root_template: Path) -> Path:
    """Per-test CA directory seeded with the session root."""
    base = tmp_path / "proxyca"
    shutil.copytree(root_template, base)
    return base


@pytest.fixture
def test_settings(base_dir: Path) -> Settings:
    """Default settings pointing at the per-test directory."""
    return Settings(base_dir=base_dir)


@pytest.fixture
def authority(base_dir: Path, test_settings: Settings) -> RootAuthority:
    """Root authority loaded from the per-test directory."""
    return RootAuthority.open(base_dir, settings=test_settings)


@pytest.fixture
def issuer(authority: RootAuthority) -> LeafCertificateIssuer:
    """Leaf issuer bound to the per-test root."""
    return LeafCertificateIssuer(authority)
