"""Leaf certificate issuance for intercepted hosts.

issue() always signs a fresh certificate. issue_or_fetch() is the
per-connection entry point: it returns a cached certificate when a valid one
exists and otherwise issues one, allowing at most one issuance per host at a
time. Concurrent callers for the same host share that issuance's result.
"""

import asyncio
from collections.abc import Iterable

from cryptography import x509
from cryptography.exceptions import InvalidSignature

from proxyca.exceptions import CertificateNotFound, MalformedKeyMaterial, SigningFailed
from proxyca.logging_config import get_logger

from . import codec, profiles
from .authority import RootAuthority
from .serial import SerialAllocator
from .store import safe_host_key

logger = get_logger(__name__)

# (certificate_pem, private_key_pem)
LeafPem = tuple[str, str]


def normalize_hostnames(hostnames: str | Iterable[str]) -> list[str]:
    """Return hostnames as a non-empty list. A bare string is one host."""
    if isinstance(hostnames, str):
        hosts = [hostnames]
    else:
        hosts = list(hostnames)
    if not hosts:
        raise ValueError("At least one hostname is required")
    for host in hosts:
        if not isinstance(host, str) or not host:
            raise ValueError(f"Invalid hostname: {host!r}")
    return hosts


class LeafCertificateIssuer:
    """Issues root-signed leaf certificates and caches them on disk."""

    def __init__(self, authority: RootAuthority, serials: SerialAllocator | None = None):
        self._authority = authority
        self._store = authority.store
        self._settings = authority.settings
        self._serials = serials or SerialAllocator()
        self._issued: dict[str, LeafPem] = {}
        self._in_flight: dict[str, asyncio.Task[LeafPem]] = {}

    # ── Issuance ─────────────────────────────────────────────────────────

    def issue(self, hostnames: str | Iterable[str]) -> LeafPem:
        """Sign a new leaf certificate for hostnames and persist it.

        The first hostname names the cache files and becomes the commonName.
        Any existing cache entry for it is overwritten. Persistence failures
        are logged and do not prevent returning the certificate.
        """
        hosts = normalize_hostnames(hostnames)
        key_pair = codec.generate_key_pair(self._settings.certificates.key_size)
        cert_pem, key_pem, public_pem = self._build(hosts, key_pair)
        self._persist(hosts[0], cert_pem, key_pem, public_pem)
        self._issued[safe_host_key(hosts[0])] = (cert_pem, key_pem)
        return cert_pem, key_pem

    async def aissue(self, hostnames: str | Iterable[str]) -> LeafPem:
        """issue() with key generation and file writes in worker threads."""
        hosts = normalize_hostnames(hostnames)
        key_pair = await codec.agenerate_key_pair(self._settings.certificates.key_size)
        cert_pem, key_pem, public_pem = self._build(hosts, key_pair)
        await asyncio.to_thread(self._persist, hosts[0], cert_pem, key_pem, public_pem)
        self._issued[safe_host_key(hosts[0])] = (cert_pem, key_pem)
        return cert_pem, key_pem

    async def issue_or_fetch(self, hostnames: str | Iterable[str]) -> LeafPem:
        """Return a valid certificate for hostnames, issuing one on a cache miss.

        Entries are keyed on the first hostname only, so a cached certificate
        may lack SANs requested later. On TimeoutError the worker thread that
        writes the cache files is not interrupted; the files may still appear.

        Raises:
            SigningFailed: the root key could not sign the leaf.
            EntropyUnavailable: key generation failed.
            TimeoutError: issuance exceeded settings.issue_timeout_seconds.
        """
        hosts = normalize_hostnames(hostnames)
        host_key = safe_host_key(hosts[0])

        issued = self._issued.get(host_key)
        if issued is not None:
            self._log_uncovered(hosts, issued[0])
            return issued

        task = self._in_flight.get(host_key)
        if task is None:
            task = asyncio.create_task(self._fetch_or_issue(hosts, host_key))
            task.add_done_callback(self._log_failure)
            self._in_flight[host_key] = task
        else:
            logger.debug("Joining in-flight issuance", host=hosts[0])

        # A cancelled caller must not cancel the issuance other callers wait on
        result = await asyncio.shield(task)
        self._log_uncovered(hosts, result[0])
        return result

    async def _fetch_or_issue(self, hosts: list[str], host_key: str) -> LeafPem:
        try:
            cached = await asyncio.to_thread(self._load_cached, hosts[0])
            if cached is not None:
                logger.debug("Using cached certificate", host=hosts[0])
                self._issued[host_key] = cached
                return cached
            return await asyncio.wait_for(
                self.aissue(hosts), timeout=self._settings.issue_timeout_seconds
            )
        finally:
            self._in_flight.pop(host_key, None)

    @staticmethod
    def _log_failure(task: asyncio.Task[LeafPem]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Leaf issuance failed", error=str(error), error_type=type(error).__name__)

    @staticmethod
    def _log_uncovered(hosts: list[str], cert_pem: str) -> None:
        served = set(codec.san_entries(codec.decode_certificate(cert_pem)))
        missing = [
            host
            for host in hosts
            if (f"IP:{host}" if profiles.is_ip_host(host) else f"DNS:{host}") not in served
        ]
        if missing:
            logger.debug(
                "Cached certificate does not cover every requested host",
                host=hosts[0],
                missing=missing,
            )

    # ── Building and Signing ─────────────────────────────────────────────

    def _build(self, hosts: list[str], key_pair: codec.KeyPair) -> tuple[str, str, str]:
        main_host = hosts[0]
        not_before, not_after = profiles.validity_window(self._settings.certificates)

        builder = (
            x509.CertificateBuilder()
            .subject_name(profiles.server_name(main_host, self._settings.subject))
            .issuer_name(self._authority.certificate.subject)
            .public_key(key_pair.public_key)
            .serial_number(self._serials.next())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
        )
        builder = profiles.add_server_extensions(
            builder,
            key_pair.public_key,
            self._authority.issuer_public_key,
            hosts,
        )

        try:
            cert = self._authority._sign(builder)
        except SigningFailed as e:
            logger.error("Failed to sign leaf certificate", host=main_host, error=str(e))
            raise

        logger.info(
            "Issued leaf certificate",
            host=main_host,
            san=hosts,
            serial=format(cert.serial_number, "x"),
            expires=cert.not_valid_after_utc.isoformat(),
        )
        return (
            codec.encode_certificate(cert),
            codec.encode_private_key(key_pair.private_key),
            codec.encode_public_key(key_pair.public_key),
        )

    def _persist(self, main_host: str, cert_pem: str, key_pem: str, public_pem: str) -> None:
        for failure in self._store.save(main_host, cert_pem, key_pem, public_pem):
            logger.warning(
                "Failed to save leaf certificate material",
                host=main_host,
                path=str(failure.path),
                error=str(failure.error),
            )

    # ── Cache Validation ─────────────────────────────────────────────────

    def _load_cached(self, main_host: str) -> LeafPem | None:
        """Return the cached pair for main_host, or None if absent or unusable."""
        if not self._store.has(main_host):
            return None
        try:
            cert_pem, key_pem = self._store.load(main_host)
            cert = codec.decode_certificate(cert_pem)
            key = codec.decode_private_key(key_pem)
        except (CertificateNotFound, MalformedKeyMaterial, OSError) as e:
            logger.warning("Ignoring unreadable cached certificate", host=main_host, error=str(e))
            return None

        if not codec.keys_match(cert, key):
            logger.warning("Ignoring cached certificate with mismatched key", host=main_host)
            return None
        if not self._issued_by_root(cert):
            logger.warning("Ignoring cached certificate from another root", host=main_host)
            return None
        return cert_pem, key_pem

    def _issued_by_root(self, cert: x509.Certificate) -> bool:
        root = self._authority.certificate
        if cert.issuer != root.subject:
            return False
        try:
            cert.verify_directly_issued_by(root)
        except (ValueError, TypeError, InvalidSignature):
            return False
        return True
