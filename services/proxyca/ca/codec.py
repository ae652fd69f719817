"""Key generation, PEM serialization and signing.

Thin layer over the cryptography package. Decode failures are reported as
MalformedKeyMaterial so callers can tell bad input apart from bugs.
"""

import asyncio
from dataclasses import dataclass

from cryptography import x509
from cryptography.exceptions import InternalError, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from proxyca.exceptions import EntropyUnavailable, MalformedKeyMaterial, SigningFailed

MIN_KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537


@dataclass(frozen=True)
class KeyPair:
    """RSA key pair. The public half is derived from the private key."""

    private_key: rsa.RSAPrivateKey

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self.private_key.public_key()


# ── Key Generation ───────────────────────────────────────────────────────


def generate_key_pair(bits: int = MIN_KEY_SIZE) -> KeyPair:
    """Generate an RSA key pair. Takes hundreds of milliseconds at 2048 bits."""
    if bits < MIN_KEY_SIZE:
        raise ValueError(f"RSA key size must be at least {MIN_KEY_SIZE} bits, got {bits}")
    try:
        private_key = rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=bits)
    except InternalError as e:
        raise EntropyUnavailable(f"RSA key generation failed: {e}") from e
    return KeyPair(private_key=private_key)


async def agenerate_key_pair(bits: int = MIN_KEY_SIZE) -> KeyPair:
    """Generate a key pair in a worker thread.

    Cancelling the awaiting task releases the caller immediately; the
    thread runs to completion and its key is discarded.
    """
    return await asyncio.to_thread(generate_key_pair, bits)


# ── Serialization Helpers ────────────────────────────────────────────────


def encode_certificate(cert: x509.Certificate) -> str:
    """Serialize certificate to PEM text."""
    return cert.public_bytes(serialization.Encoding.PEM).decode()


def decode_certificate(pem: str | bytes) -> x509.Certificate:
    """Load certificate from PEM text."""
    data = pem.encode() if isinstance(pem, str) else pem
    try:
        return x509.load_pem_x509_certificate(data)
    except ValueError as e:
        raise MalformedKeyMaterial(f"Invalid PEM certificate: {e}") from e


def encode_private_key(key: rsa.RSAPrivateKey) -> str:
    """Serialize private key to unencrypted PKCS#8 PEM text."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


def decode_private_key(pem: str | bytes) -> rsa.RSAPrivateKey:
    """Load an RSA private key from PEM text (PKCS#8 or traditional OpenSSL)."""
    data = pem.encode() if isinstance(pem, str) else pem
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise MalformedKeyMaterial(f"Invalid PEM private key: {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise MalformedKeyMaterial(f"Expected RSA private key, got {type(key).__name__}")
    return key


def encode_public_key(key: rsa.RSAPublicKey) -> str:
    """Serialize public key to SubjectPublicKeyInfo PEM text."""
    return key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


def decode_public_key(pem: str | bytes) -> rsa.RSAPublicKey:
    """Load an RSA public key from PEM text."""
    data = pem.encode() if isinstance(pem, str) else pem
    try:
        key = serialization.load_pem_public_key(data)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise MalformedKeyMaterial(f"Invalid PEM public key: {e}") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise MalformedKeyMaterial(f"Expected RSA public key, got {type(key).__name__}")
    return key


# ── Signing ──────────────────────────────────────────────────────────────


def sign(builder: x509.CertificateBuilder, issuer_key: rsa.RSAPrivateKey) -> x509.Certificate:
    """Sign a certificate builder with SHA-256."""
    try:
        return builder.sign(issuer_key, hashes.SHA256())
    except (ValueError, TypeError, InternalError, UnsupportedAlgorithm) as e:
        raise SigningFailed(f"Certificate signing failed: {e}") from e


def keys_match(cert: x509.Certificate, key: rsa.RSAPrivateKey) -> bool:
    """Return True if the private key belongs to the certificate's public key."""
    return cert.public_key().public_numbers() == key.public_key().public_numbers()


# ── Inspection ───────────────────────────────────────────────────────────


def fingerprint(cert: x509.Certificate) -> str:
    """Get SHA256 fingerprint of certificate."""
    return cert.fingerprint(hashes.SHA256()).hex()


def san_entries(cert: x509.Certificate) -> list[str]:
    """Return SAN entries in certificate order.

    Returns a list like:
        ["DNS:example.com", "IP:192.0.2.5", "DNS:*.example.com"]
    """
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []

    result: list[str] = []
    for name in san.value:
        if isinstance(name, x509.DNSName):
            result.append(f"DNS:{name.value}")
        elif isinstance(name, x509.IPAddress):
            result.append(f"IP:{name.value}")
    return result

