"""Error taxonomy for the proxy certificate authority.

Startup errors (root authority) are fatal for TLS interception as a whole.
Per-connection errors (leaf issuance) only affect the connection that
triggered them.
"""

from pathlib import Path


class ProxyCAError(Exception):
    """Base class for all certificate authority errors."""


class CorruptRootStore(ProxyCAError):
    """Existing root files could not be read or decoded.

    Never recovered automatically: regenerating the root would invalidate
    every certificate clients already trust. The operator must delete the
    store or restore a backup.
    """


class RootPersistenceFailed(ProxyCAError):
    """One of the root artifacts could not be written during creation."""


class EntropyUnavailable(ProxyCAError):
    """Key generation failed because the system could not supply randomness."""


class SigningFailed(ProxyCAError):
    """Signing a certificate failed despite a loaded root authority."""


class MalformedKeyMaterial(ProxyCAError, ValueError):
    """PEM text did not decode into the expected certificate or RSA key."""


class CertificateNotFound(ProxyCAError, KeyError):
    """No cached certificate/key pair exists for a host."""


class LeafPersistenceFailed(ProxyCAError):
    """Writing one leaf artifact to disk failed. Non-fatal."""

    def __init__(self, path: Path, error: OSError):
        super().__init__(f"Failed to write {path}: {error}")
        self.path = path
        self.error = error
