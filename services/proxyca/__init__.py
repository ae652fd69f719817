"""Certificate authority core for a TLS-intercepting proxy."""

from .ca import CertificateStore, LeafCertificateIssuer, LocalFileStore, RootAuthority

__version__ = "0.1.0"

__all__ = [
    "CertificateStore",
    "LeafCertificateIssuer",
    "LocalFileStore",
    "RootAuthority",
    "__version__",
]
