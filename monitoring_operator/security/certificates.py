"""Webhook TLS material provisioned at process start."""
import datetime
import os
import tempfile
from typing import List, Optional

from cryptography import x509
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from loguru import logger

from ..errors import CertificateError

CA_CERT_FILE = "ca.crt"
TLS_CERT_FILE = "tls.crt"
TLS_KEY_FILE = "tls.key"

CA_VALIDITY_DAYS = 3650
LEAF_VALIDITY_DAYS = 365
RENEW_BEFORE_DAYS = 30


def service_dns_names(service: str, namespace: str) -> List[str]:
    return [
        f"{service}.{namespace}.svc",
        f"{service}.{namespace}.svc.cluster.local",
        f"{service}.{namespace}",
        service,
    ]


def _new_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048, backend=default_backend())


def _create_ca(now: datetime.datetime):
    key = _new_key()
    name = x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "monitoring-operator"),
        x509.NameAttribute(NameOID.COMMON_NAME, "monitoring-operator-ca"),
    ])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=CA_VALIDITY_DAYS))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True, content_commitment=False, key_encipherment=False,
                data_encipherment=False, key_agreement=False, key_cert_sign=True,
                crl_sign=True, encipher_only=False, decipher_only=False,
            ),
            critical=True,
        )
        .sign(key, hashes.SHA256(), default_backend())
    )
    return cert, key


def _create_leaf(ca_cert, ca_key, dns_names: List[str], now: datetime.datetime):
    key = _new_key()
    cert = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "monitoring-operator"),
            x509.NameAttribute(NameOID.COMMON_NAME, dns_names[0]),
        ]))
        .issuer_name(ca_cert.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=LEAF_VALIDITY_DAYS))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(n) for n in dns_names]), critical=False)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .sign(ca_key, hashes.SHA256(), default_backend())
    )
    return cert, key


def _write_atomic(directory: str, filename: str, content: bytes, mode: int = 0o644) -> None:
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{filename}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, os.path.join(directory, filename))
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def _reusable(cert_dir: str, dns_name: str, now: datetime.datetime) -> Optional[bytes]:
    """Return the CA bundle if the existing material can be kept."""
    paths = [os.path.join(cert_dir, f) for f in (CA_CERT_FILE, TLS_CERT_FILE, TLS_KEY_FILE)]
    if not all(os.path.isfile(p) for p in paths):
        return None
    try:
        with open(paths[1], "rb") as f:
            leaf = x509.load_pem_x509_certificate(f.read())
        with open(paths[0], "rb") as f:
            ca_pem = f.read()
        sans = leaf.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except (ValueError, x509.ExtensionNotFound) as e:
        logger.warning(f"Existing webhook certificate in {cert_dir} is unreadable, replacing it: {e}")
        return None
    if dns_name not in sans.get_values_for_type(x509.DNSName):
        return None
    if leaf.not_valid_after_utc - now < datetime.timedelta(days=RENEW_BEFORE_DAYS):
        logger.info(f"Webhook certificate expires at {leaf.not_valid_after_utc}, renewing")
        return None
    return ca_pem


def provision_certificates(cert_dir: str, service: str, namespace: str,
                           now: Optional[datetime.datetime] = None) -> bytes:
    """
    Materialize a CA and a leaf certificate for the webhook service.

    Writes ca.crt, tls.crt and tls.key into `cert_dir` and returns the CA
    certificate in PEM form. Valid existing material is kept. Files are
    replaced atomically. Raises CertificateError on any failure.
    """
    now = now or datetime.datetime.now(datetime.timezone.utc)
    dns_names = service_dns_names(service, namespace)
    try:
        os.makedirs(cert_dir, exist_ok=True)
        existing = _reusable(cert_dir, dns_names[0], now)
        if existing is not None:
            logger.info(f"Reusing webhook certificate in {cert_dir}")
            return existing

        ca_cert, ca_key = _create_ca(now)
        leaf_cert, leaf_key = _create_leaf(ca_cert, ca_key, dns_names, now)
        ca_pem = ca_cert.public_bytes(serialization.Encoding.PEM)
        key_pem = leaf_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
        _write_atomic(cert_dir, TLS_KEY_FILE, key_pem, mode=0o600)
        _write_atomic(cert_dir, TLS_CERT_FILE, leaf_cert.public_bytes(serialization.Encoding.PEM))
        _write_atomic(cert_dir, CA_CERT_FILE, ca_pem)
    except (OSError, ValueError) as e:
        raise CertificateError(f"Failed to provision webhook certificates in {cert_dir}: {e}") from e

    logger.info(f"Provisioned webhook certificate for {dns_names[0]} in {cert_dir}")
    return ca_pem
