"""Distinguished Names and extension profiles for root and leaf certificates."""

import datetime
import ipaddress
import re

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID, ObjectIdentifier

from proxyca.config import CertificateConfig, SubjectConfig

# Netscape certificate type (nsCertType), still read by some TLS clients
NETSCAPE_CERT_TYPE_OID = ObjectIdentifier("2.16.840.1.113730.1.1")

# DER BIT STRINGs. Bit 0 (MSB) client, 1 server, 2 email, 3 objsign,
# 5 sslCA, 6 emailCA, 7 objCA. Second byte is the unused-bit count.
CA_NETSCAPE_CERT_TYPE = bytes([0x03, 0x02, 0x00, 0xF7])
SERVER_NETSCAPE_CERT_TYPE = bytes([0x03, 0x02, 0x06, 0xC0])

# X.509 upper bound for commonName
MAX_COMMON_NAME_LENGTH = 64

_IP_PATTERN = re.compile(r"^[\d.]+$")


# ── Distinguished Names ──────────────────────────────────────────────────


def _shared_attributes(subject: SubjectConfig) -> list[x509.NameAttribute]:
    return [
        x509.NameAttribute(NameOID.COUNTRY_NAME, subject.country),
        x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, subject.state),
        x509.NameAttribute(NameOID.LOCALITY_NAME, subject.locality),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, subject.organization),
    ]


def root_name(subject: SubjectConfig) -> x509.Name:
    """Subject (and issuer) of the self-signed root."""
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, subject.ca_common_name),
            *_shared_attributes(subject),
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, subject.ca_organizational_unit),
        ]
    )


def server_name(main_host: str, subject: SubjectConfig) -> x509.Name:
    """Subject of a leaf certificate for main_host.

    Hosts longer than the commonName limit are left out of the subject;
    clients match against the SAN anyway.
    """
    attributes: list[x509.NameAttribute] = []
    if len(main_host) <= MAX_COMMON_NAME_LENGTH:
        attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, main_host))
    attributes.extend(_shared_attributes(subject))
    attributes.append(
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, subject.server_organizational_unit)
    )
    return x509.Name(attributes)


# ── Validity ─────────────────────────────────────────────────────────────


def validity_window(
    config: CertificateConfig,
    now: datetime.datetime | None = None,
) -> tuple[datetime.datetime, datetime.datetime]:
    """Return (not_before, not_after) for a certificate issued at now."""
    now = now or datetime.datetime.now(datetime.UTC)
    not_before = now - datetime.timedelta(days=config.backdate_days)
    not_after = now + datetime.timedelta(days=config.validity_days)
    return not_before, not_after


# ── Subject Alternative Names ────────────────────────────────────────────


def is_ip_host(host: str) -> bool:
    """True for dotted-decimal IPv4 literals such as 192.0.2.5."""
    if not _IP_PATTERN.match(host):
        return False
    try:
        ipaddress.IPv4Address(host)
    except ValueError:
        return False
    return True


def subject_alt_names(hostnames: list[str]) -> x509.SubjectAlternativeName:
    """One SAN entry per hostname, in the given order, duplicates kept."""
    entries: list[x509.GeneralName] = []
    for host in hostnames:
        if is_ip_host(host):
            entries.append(x509.IPAddress(ipaddress.IPv4Address(host)))
        else:
            entries.append(x509.DNSName(host))
    return x509.SubjectAlternativeName(entries)


# ── Extension Profiles ───────────────────────────────────────────────────


def add_ca_extensions(
    builder: x509.CertificateBuilder,
    public_key: rsa.RSAPublicKey,
) -> x509.CertificateBuilder:
    """Extensions for the root: may sign certificates, broad key usage."""
    return (
        builder.add_extension(
            x509.BasicConstraints(ca=True, path_length=None),
            critical=True,
        )
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=True,
                key_encipherment=True,
                data_encipherment=True,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.ExtendedKeyUsage(
                [
                    ExtendedKeyUsageOID.SERVER_AUTH,
                    ExtendedKeyUsageOID.CLIENT_AUTH,
                    ExtendedKeyUsageOID.CODE_SIGNING,
                    ExtendedKeyUsageOID.EMAIL_PROTECTION,
                    ExtendedKeyUsageOID.TIME_STAMPING,
                ]
            ),
            critical=False,
        )
        .add_extension(
            x509.UnrecognizedExtension(NETSCAPE_CERT_TYPE_OID, CA_NETSCAPE_CERT_TYPE),
            critical=False,
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(public_key),
            critical=False,
        )
    )


def add_server_extensions(
    builder: x509.CertificateBuilder,
    public_key: rsa.RSAPublicKey,
    issuer_public_key: rsa.RSAPublicKey,
    hostnames: list[str],
) -> x509.CertificateBuilder:
    """Extensions for a leaf: TLS server/client only, SAN from hostnames."""
    return (
        builder.add_extension(
            x509.BasicConstraints(ca=False, path_length=None),
            critical=True,
        )
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=True,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.ExtendedKeyUsage(
                [
                    ExtendedKeyUsageOID.SERVER_AUTH,
                    ExtendedKeyUsageOID.CLIENT_AUTH,
                ]
            ),
            critical=False,
        )
        .add_extension(
            x509.UnrecognizedExtension(NETSCAPE_CERT_TYPE_OID, SERVER_NETSCAPE_CERT_TYPE),
            critical=False,
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(public_key),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_public_key),
            critical=False,
        )
        .add_extension(
            subject_alt_names(hostnames),
            critical=False,
        )
    )
