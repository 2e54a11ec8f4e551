from datetime import timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from vpnportal.ca import LocalCa
from vpnportal.errors import ConfigurationError


def test_client_cert_is_signed_by_ca(tmp_path, clock):
    ca = LocalCa(tmp_path / "ca", clock=clock)
    expires_at = clock.now() + timedelta(days=90)

    info = ca.client_cert("0123456789abcdef0123456789abcdef", expires_at)

    cert = x509.load_pem_x509_certificate(info.cert_data.encode())
    ca_cert = x509.load_pem_x509_certificate(ca.ca_cert().encode())
    cert.verify_directly_issued_by(ca_cert)

    cn = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value
    assert cn == "0123456789abcdef0123456789abcdef"
    eku = cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
    assert ExtendedKeyUsageOID.CLIENT_AUTH in eku

    assert info.valid_from == clock.now()
    assert info.valid_to == expires_at
    assert cert.not_valid_after_utc == expires_at

    key = serialization.load_pem_private_key(info.key_data.encode(), password=None)
    assert key.public_key().public_numbers() == cert.public_key().public_numbers()


def test_validity_never_exceeds_requested_expiry(tmp_path, clock):
    ca = LocalCa(tmp_path / "ca", clock=clock)
    expires_at = clock.now() + timedelta(days=1, microseconds=500)
    info = ca.client_cert("ab" * 16, expires_at)
    assert info.valid_to <= expires_at


def test_validity_clamped_to_ca_lifetime(tmp_path, clock):
    ca = LocalCa(tmp_path / "ca", clock=clock, validity_days=30)
    info = ca.client_cert("ab" * 16, clock.now() + timedelta(days=90))
    assert info.valid_to == clock.now() + timedelta(days=30)


def test_expiry_in_the_past_fails(tmp_path, clock):
    ca = LocalCa(tmp_path / "ca", clock=clock)
    with pytest.raises(ValueError):
        ca.client_cert("ab" * 16, clock.now() - timedelta(seconds=1))


def test_ca_is_persisted_and_reloaded(tmp_path, clock):
    first = LocalCa(tmp_path / "ca", clock=clock).ca_cert()
    second = LocalCa(tmp_path / "ca", clock=clock).ca_cert()
    assert first == second
    assert (tmp_path / "ca" / "ca.key").stat().st_mode & 0o077 == 0


def test_corrupt_ca_files(tmp_path, clock):
    ca_dir = tmp_path / "ca"
    ca_dir.mkdir()
    (ca_dir / "ca.crt").write_text("garbage")
    (ca_dir / "ca.key").write_text("garbage")
    with pytest.raises(ConfigurationError):
        LocalCa(ca_dir, clock=clock).ca_cert()
