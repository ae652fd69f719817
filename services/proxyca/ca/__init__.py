"""Root authority, leaf issuance and the on-disk certificate store."""

from .authority import RootAuthority
from .codec import KeyPair
from .issuer import LeafCertificateIssuer
from .serial import SerialAllocator
from .store import CertificateStore, FileStore, LocalFileStore, safe_host_key

__all__ = [
    "CertificateStore",
    "FileStore",
    "KeyPair",
    "LeafCertificateIssuer",
    "LocalFileStore",
    "RootAuthority",
    "SerialAllocator",
    "safe_host_key",
]
