"""Tests for the root CA bootstrap command."""

from pathlib import Path
from unittest.mock import patch

import pytest

from proxyca.ca import RootAuthority
from proxyca.cli.bootstrap import main


class TestBootstrap:
    """Test the bootstrap entry point."""

    @pytest.fixture(autouse=True)
    def no_logging_setup(self):
        """Leave pytest's log capture handlers in place."""
        with patch("proxyca.cli.bootstrap.configure_logging"):
            yield

    def test_prints_root_path_and_fingerprint(
        self,
        base_dir: Path,
        authority: RootAuthority,
        capsys: pytest.CaptureFixture[str],
    ):
        """Test an existing root is loaded and reported."""
        assert main(["--base-dir", str(base_dir)]) == 0

        out = capsys.readouterr().out.splitlines()
        assert str(base_dir / "certs" / "ca.pem") in out
        assert f"SHA256 fingerprint: {authority.fingerprint}" in out

    def test_creates_missing_root(self, tmp_path: Path):
        """Test a fresh directory gets a new root."""
        assert main(["--base-dir", str(tmp_path)]) == 0
        assert (tmp_path / "certs" / "ca.pem").is_file()

    def test_corrupt_root_exits_nonzero(self, base_dir: Path):
        """Test a corrupt store is reported rather than replaced."""
        cert_path = base_dir / "certs" / "ca.pem"
        cert_path.write_text("garbage")

        assert main(["--base-dir", str(base_dir)]) == 1
        assert cert_path.read_text() == "garbage"

    def test_binary_root_exits_nonzero(self, base_dir: Path):
        """Test a root certificate that is not text exits 1 instead of crashing."""
        cert_path = base_dir / "certs" / "ca.pem"
        cert_path.write_bytes(b"\xff\xfe\x00garbage")

        assert main(["--base-dir", str(base_dir)]) == 1
