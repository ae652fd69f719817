"""Root certificate authority.

Owns the root key pair and the self-signed root certificate. The root is
created on first start and reloaded on every later start, so clients that
imported it once keep trusting the proxy.
"""

import asyncio
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa

from proxyca.config import Settings
from proxyca.config import settings as default_settings
from proxyca.exceptions import CorruptRootStore, MalformedKeyMaterial, RootPersistenceFailed
from proxyca.logging_config import get_logger

from . import codec, profiles
from .serial import SerialAllocator
from .store import CertificateStore, FileStore

logger = get_logger(__name__)


class RootAuthority:
    """Self-signed root that signs every leaf certificate."""

    def __init__(
        self,
        certificate: x509.Certificate,
        key_pair: codec.KeyPair,
        store: CertificateStore,
        settings: Settings,
    ):
        self._certificate = certificate
        self._key_pair = key_pair
        self._store = store
        self._settings = settings

    @property
    def certificate(self) -> x509.Certificate:
        return self._certificate

    @property
    def certificate_pem(self) -> str:
        """Return the root certificate as a PEM string."""
        return codec.encode_certificate(self._certificate)

    @property
    def certificate_path(self) -> Path:
        """Where the root certificate lives, for client trust installation."""
        return self._store.root_certificate_path

    @property
    def issuer_public_key(self) -> rsa.RSAPublicKey:
        return self._key_pair.public_key

    @property
    def fingerprint(self) -> str:
        return codec.fingerprint(self._certificate)

    @property
    def store(self) -> CertificateStore:
        return self._store

    @property
    def settings(self) -> Settings:
        return self._settings

    def _sign(self, builder: x509.CertificateBuilder) -> x509.Certificate:
        """Sign a leaf builder with the root key. Reserved for the leaf issuer."""
        return codec.sign(builder, self._key_pair.private_key)

    # ── Load or Create ───────────────────────────────────────────────────

    @classmethod
    def open(
        cls,
        base_dir: Path | str | None = None,
        files: FileStore | None = None,
        settings: Settings | None = None,
        serials: SerialAllocator | None = None,
    ) -> "RootAuthority":
        """Load the root from base_dir, or create and persist one.

        Raises:
            CorruptRootStore: existing root files are unreadable or inconsistent.
            RootPersistenceFailed: a freshly generated root could not be written.
        """
        settings = settings or default_settings
        store = CertificateStore(base_dir or settings.base_dir, files=files)
        store.ensure_layout()

        if store.has_root():
            logger.info("Loading root CA from disk", path=str(store.base_dir))
            return cls._load(store, settings)

        logger.info("No existing root CA found, generating new root", path=str(store.base_dir))
        return cls._create(store, settings, serials or SerialAllocator())

    @classmethod
    async def aopen(
        cls,
        base_dir: Path | str | None = None,
        files: FileStore | None = None,
        settings: Settings | None = None,
        serials: SerialAllocator | None = None,
    ) -> "RootAuthority":
        """open() in a worker thread, for callers already inside an event loop."""
        return await asyncio.to_thread(cls.open, base_dir, files, settings, serials)

    @classmethod
    def _load(cls, store: CertificateStore, settings: Settings) -> "RootAuthority":
        try:
            cert_pem, private_pem, public_pem = store.load_root()
            certificate = codec.decode_certificate(cert_pem)
            private_key = codec.decode_private_key(private_pem)
            public_key = codec.decode_public_key(public_pem)
        except (OSError, MalformedKeyMaterial) as e:
            raise CorruptRootStore(f"Root CA files in {store.base_dir} are unreadable: {e}") from e

        if not codec.keys_match(certificate, private_key):
            raise CorruptRootStore(
                f"Root CA private key in {store.base_dir} does not match the root certificate"
            )
        if public_key.public_numbers() != private_key.public_key().public_numbers():
            raise CorruptRootStore(
                f"Root CA public key in {store.base_dir} does not match the private key"
            )

        authority = cls(
            certificate=certificate,
            key_pair=codec.KeyPair(private_key=private_key),
            store=store,
            settings=settings,
        )
        logger.info(
            "Loaded root CA",
            fingerprint=authority.fingerprint[:16],
            expires=certificate.not_valid_after_utc.isoformat(),
        )
        return authority

    @classmethod
    def _create(
        cls,
        store: CertificateStore,
        settings: Settings,
        serials: SerialAllocator,
    ) -> "RootAuthority":
        key_pair = codec.generate_key_pair(settings.certificates.key_size)
        name = profiles.root_name(settings.subject)
        not_before, not_after = profiles.validity_window(settings.certificates)

        builder = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key_pair.public_key)
            .serial_number(serials.next())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
        )
        builder = profiles.add_ca_extensions(builder, key_pair.public_key)
        certificate = codec.sign(builder, key_pair.private_key)

        try:
            store.save_root(
                codec.encode_certificate(certificate),
                codec.encode_private_key(key_pair.private_key),
                codec.encode_public_key(key_pair.public_key),
            )
        except OSError as e:
            logger.error("Failed to persist root CA", path=str(store.base_dir), error=str(e))
            try:
                store.discard_root()
            except OSError as cleanup_error:
                logger.warning(
                    "Failed to remove partial root CA files",
                    path=str(store.base_dir),
                    error=str(cleanup_error),
                )
            raise RootPersistenceFailed(
                f"Could not write root CA to {store.base_dir}: {e}"
            ) from e

        authority = cls(certificate=certificate, key_pair=key_pair, store=store, settings=settings)
        logger.info(
            "Generated new root CA",
            common_name=settings.subject.ca_common_name,
            fingerprint=authority.fingerprint[:16],
            expires=certificate.not_valid_after_utc.isoformat(),
        )
        return authority
