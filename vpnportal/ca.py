"""
Certificate authority used to sign VPN client certificates.

The portal only depends on the `CertificateAuthority` interface. `LocalCa`
is a file-backed implementation that keeps its key and certificate in a
directory and signs client certificates with them.
"""

import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from .errors import ConfigurationError
from .models import CertInfo
from .util import SystemClock

logger = logging.getLogger(__name__)


class CertificateAuthority(ABC):
    """Abstract interface for VPN client certificate signing."""

    @abstractmethod
    def client_cert(self, common_name: str, expires_at: datetime) -> CertInfo:
        """
        Sign a new client certificate.

        Args:
            common_name: Subject CN of the certificate
            expires_at: Latest instant the certificate may be valid

        Returns:
            CertInfo with PEM certificate, PEM private key and validity window
        """
        pass

    @abstractmethod
    def ca_cert(self) -> str:
        """Get the PEM encoded CA certificate."""
        pass


class LocalCa(CertificateAuthority):
    """
    File-based CA using an EC P-256 key.

    The CA key and certificate are created in `ca_dir` on first use and
    loaded from there afterwards. Thread-safe.
    """

    CA_CERT_FILE = "ca.crt"
    CA_KEY_FILE = "ca.key"

    def __init__(
        self,
        ca_dir: Union[str, Path],
        clock=None,
        ca_common_name: str = "VPN CA",
        validity_days: int = 5 * 365
    ):
        self._ca_dir = Path(ca_dir)
        self._clock = clock or SystemClock()
        self._ca_common_name = ca_common_name
        self._validity_days = validity_days
        self._lock = threading.RLock()
        self._key: Optional[ec.EllipticCurvePrivateKey] = None
        self._cert: Optional[x509.Certificate] = None

    def _load_or_init(self) -> None:
        with self._lock:
            if self._cert is not None:
                return
            cert_path = self._ca_dir / self.CA_CERT_FILE
            key_path = self._ca_dir / self.CA_KEY_FILE
            if cert_path.exists() and key_path.exists():
                try:
                    self._cert = x509.load_pem_x509_certificate(cert_path.read_bytes())
                    self._key = serialization.load_pem_private_key(key_path.read_bytes(), password=None)
                except ValueError as e:
                    raise ConfigurationError(f"unable to load CA from {self._ca_dir}: {e}") from e
                return
            self._init_ca(cert_path, key_path)

    def _init_ca(self, cert_path: Path, key_path: Path) -> None:
        now = self._clock.now().replace(microsecond=0)
        key = ec.generate_private_key(ec.SECP256R1())
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, self._ca_common_name)])
        cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + timedelta(days=self._validity_days))
            .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=False,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=True,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .sign(key, hashes.SHA256())
        )

        self._ca_dir.mkdir(parents=True, exist_ok=True)
        cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
        key_path.write_bytes(_private_key_pem(key))
        os.chmod(key_path, 0o600)

        self._key = key
        self._cert = cert
        logger.info("Initialized CA in %s", self._ca_dir)

    def client_cert(self, common_name: str, expires_at: datetime) -> CertInfo:
        self._load_or_init()
        valid_from = self._clock.now().replace(microsecond=0)
        valid_to = min(expires_at.replace(microsecond=0), self._cert.not_valid_after_utc)
        if valid_to < valid_from:
            raise ValueError(f"expiry {valid_to.isoformat()} lies before {valid_from.isoformat()}")

        key = ec.generate_private_key(ec.SECP256R1())
        cert = (
            x509.CertificateBuilder()
            .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
            .issuer_name(self._cert.subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(valid_from)
            .not_valid_after(valid_to)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CLIENT_AUTH]), critical=False)
            .sign(self._key, hashes.SHA256())
        )

        return CertInfo(
            cert_data=cert.public_bytes(serialization.Encoding.PEM).decode("ascii"),
            key_data=_private_key_pem(key).decode("ascii"),
            valid_from=cert.not_valid_before_utc,
            valid_to=cert.not_valid_after_utc,
        )

    def ca_cert(self) -> str:
        self._load_or_init()
        return self._cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


def _private_key_pem(key) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
