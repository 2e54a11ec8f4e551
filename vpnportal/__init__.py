"""
VPN Portal credential core

Issues OpenVPN client certificates to authenticated principals, checks
their lifecycle from stored metadata, and manages the tls-crypt static
key that protects the control channel.

Usage:
    from vpnportal import (
        AccessContextResolver,
        CertificateIssuer,
        LocalCa,
        Principal,
        StaticKey,
        Storage,
        validate_certificate,
    )

    storage = Storage("data/vpnportal.db")
    storage.init_db()
    resolver = AccessContextResolver(storage, portal_config)
    issuer = CertificateIssuer(resolver, LocalCa("data/ca"), storage)

    issued = issuer.issue(Principal("foo", "org.example.app", "config", is_local=False))
    status = validate_certificate(
        storage.get_user_certificate_info(issued.record.common_name),
        datetime.now(timezone.utc),
    )
"""

__version__ = "1.0.0"

from .access import AccessContextResolver
from .ca import CertificateAuthority, LocalCa
from .errors import (
    ConfigurationError,
    InputValidationError,
    IssuanceFailure,
    LookupMiss,
    PortalError,
    ProfileAccessDenied,
    SessionLookupError,
)
from .issuer import CertificateIssuer
from .models import (
    AccessContext,
    CertificateRecord,
    CertInfo,
    IssuedCertificate,
    PortalConfig,
    Principal,
    ProfileConfig,
)
from .profiles import eligible_profiles, is_eligible, is_member, require_profile
from .storage import Storage
from .tls_crypt import StaticKey
from .validator import CertificateStatus, InvalidReason, validate_certificate

__all__ = [
    "AccessContext",
    "AccessContextResolver",
    "CertificateAuthority",
    "CertificateIssuer",
    "CertificateRecord",
    "CertificateStatus",
    "CertInfo",
    "ConfigurationError",
    "InputValidationError",
    "InvalidReason",
    "IssuanceFailure",
    "IssuedCertificate",
    "LocalCa",
    "LookupMiss",
    "PortalConfig",
    "PortalError",
    "Principal",
    "ProfileAccessDenied",
    "ProfileConfig",
    "SessionLookupError",
    "StaticKey",
    "Storage",
    "eligible_profiles",
    "is_eligible",
    "is_member",
    "require_profile",
    "validate_certificate",
]
