"""On-disk layout for root and leaf key material.

Layout under the base directory:
    certs/ca.pem                 root certificate
    keys/ca.private.key          root private key
    keys/ca.public.key           root public key
    certs/<safe-host>.pem        leaf certificate
    keys/<safe-host>.key         leaf private key
    keys/<safe-host>.public.key  leaf public key
"""

import os
import tempfile
from pathlib import Path
from typing import Protocol

from proxyca.exceptions import CertificateNotFound, LeafPersistenceFailed, MalformedKeyMaterial

ROOT_NAME = "ca"
PRIVATE_KEY_MODE = 0o600
PUBLIC_MODE = 0o644


class FileStore(Protocol):
    """Filesystem primitives the certificate store relies on."""

    def makedirs(self, path: Path) -> None: ...

    def exists(self, path: Path) -> bool: ...

    def read_text(self, path: Path) -> str: ...

    def write_text(self, path: Path, text: str, mode: int | None = None) -> None: ...

    def remove(self, path: Path) -> None: ...


class LocalFileStore:
    """FileStore backed by the local filesystem. Writes are atomic per file."""

    def makedirs(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def exists(self, path: Path) -> bool:
        return path.is_file()

    def read_text(self, path: Path) -> str:
        # PEM is ASCII armoured
        return path.read_text(encoding="ascii")

    def write_text(self, path: Path, text: str, mode: int | None = None) -> None:
        # Write to a sibling temp file, then rename over the target
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(text)
            if mode is not None:
                os.chmod(tmp_name, mode)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove(self, path: Path) -> None:
        path.unlink(missing_ok=True)


def safe_host_key(host: str) -> str:
    """Map a hostname to a file name stem: every '*' becomes '_'."""
    return host.replace("*", "_")


class CertificateStore:
    """Deterministic paths plus read/write helpers for certs/ and keys/."""

    def __init__(self, base_dir: Path | str, files: FileStore | None = None):
        self.base_dir = Path(base_dir)
        self.certs_dir = self.base_dir / "certs"
        self.keys_dir = self.base_dir / "keys"
        self.files: FileStore = files or LocalFileStore()

    def ensure_layout(self) -> None:
        """Create base, certs/ and keys/ if missing."""
        self.files.makedirs(self.base_dir)
        self.files.makedirs(self.certs_dir)
        self.files.makedirs(self.keys_dir)

    # ── Paths ────────────────────────────────────────────────────────────

    def certificate_path(self, host: str) -> Path:
        return self.certs_dir / f"{safe_host_key(host)}.pem"

    def private_key_path(self, host: str) -> Path:
        return self.keys_dir / f"{safe_host_key(host)}.key"

    def public_key_path(self, host: str) -> Path:
        return self.keys_dir / f"{safe_host_key(host)}.public.key"

    @property
    def root_certificate_path(self) -> Path:
        return self.certs_dir / f"{ROOT_NAME}.pem"

    @property
    def root_private_key_path(self) -> Path:
        return self.keys_dir / f"{ROOT_NAME}.private.key"

    @property
    def root_public_key_path(self) -> Path:
        return self.keys_dir / f"{ROOT_NAME}.public.key"

    # ── Leaf Entries ─────────────────────────────────────────────────────

    def has(self, host: str) -> bool:
        """True if both the certificate and the private key are on disk."""
        return self.files.exists(self.certificate_path(host)) and self.files.exists(
            self.private_key_path(host)
        )

    def load(self, host: str) -> tuple[str, str]:
        """Return (certificate_pem, private_key_pem) for host.

        Raises:
            CertificateNotFound: if either file is missing.
            MalformedKeyMaterial: if either file is not PEM text.
        """
        cert_path = self.certificate_path(host)
        key_path = self.private_key_path(host)
        try:
            return self.files.read_text(cert_path), self.files.read_text(key_path)
        except FileNotFoundError as e:
            raise CertificateNotFound(host) from e
        except UnicodeDecodeError as e:
            raise MalformedKeyMaterial(f"Cached material for {host} is not PEM text: {e}") from e

    def save(
        self,
        host: str,
        certificate_pem: str,
        private_key_pem: str,
        public_key_pem: str,
    ) -> list[LeafPersistenceFailed]:
        """Write all three leaf artifacts. Returns the writes that failed.

        Every write is attempted even if an earlier one fails.
        """
        failures: list[LeafPersistenceFailed] = []
        writes = [
            (self.certificate_path(host), certificate_pem, PUBLIC_MODE),
            (self.private_key_path(host), private_key_pem, PRIVATE_KEY_MODE),
            (self.public_key_path(host), public_key_pem, PUBLIC_MODE),
        ]
        for path, text, mode in writes:
            try:
                self.files.write_text(path, text, mode=mode)
            except OSError as e:
                failures.append(LeafPersistenceFailed(path, e))
        return failures

    # ── Root Entry ───────────────────────────────────────────────────────

    def has_root(self) -> bool:
        return self.files.exists(self.root_certificate_path)

    def load_root(self) -> tuple[str, str, str]:
        """Return (certificate_pem, private_key_pem, public_key_pem) for the root.

        Raises:
            MalformedKeyMaterial: if a root file is not PEM text.
        """
        try:
            return (
                self.files.read_text(self.root_certificate_path),
                self.files.read_text(self.root_private_key_path),
                self.files.read_text(self.root_public_key_path),
            )
        except UnicodeDecodeError as e:
            raise MalformedKeyMaterial(f"Root CA material is not PEM text: {e}") from e

    def save_root(self, certificate_pem: str, private_key_pem: str, public_key_pem: str) -> None:
        """Write the root artifacts. Raises OSError on the first failed write.

        The private key goes first so a readable ca.pem always has a key beside it.
        """
        self.files.write_text(self.root_private_key_path, private_key_pem, mode=PRIVATE_KEY_MODE)
        self.files.write_text(self.root_public_key_path, public_key_pem, mode=PUBLIC_MODE)
        self.files.write_text(self.root_certificate_path, certificate_pem, mode=PUBLIC_MODE)

    def discard_root(self) -> None:
        """Remove whatever root artifacts exist."""
        for path in (
            self.root_certificate_path,
            self.root_private_key_path,
            self.root_public_key_path,
        ):
            self.files.remove(path)
