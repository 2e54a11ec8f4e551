"""
Client certificate issuance.

A certificate only counts as issued once its metadata has been stored:
random CN -> CA signature -> persisted record -> user notification.
Any failure before the record is stored aborts the whole issuance.
"""

import logging

from .ca import CertificateAuthority
from .errors import IssuanceFailure
from .logging_config import AuditLogger, audit_log
from .models import CertificateRecord, IssuedCertificate, Principal
from .util import SecureRandom, SystemClock, utc_rfc3339

logger = logging.getLogger(__name__)

COMMON_NAME_BYTES = 16


class CertificateIssuer:

    def __init__(
        self,
        resolver,
        ca: CertificateAuthority,
        storage,
        random_source=None,
        audit: AuditLogger = audit_log,
        clock=None
    ):
        self._resolver = resolver
        self._ca = ca
        self._storage = storage
        self._random = random_source or SecureRandom()
        self._audit = audit
        self._clock = clock or SystemClock()

    def issue(self, principal: Principal) -> IssuedCertificate:
        """
        Issue a client certificate for `principal`.

        Raises:
            IssuanceFailure: random source, CA or storage failed
            SessionLookupError: local principal without a recorded session
        """
        try:
            common_name = self._random.get(COMMON_NAME_BYTES)
        except Exception as e:
            raise IssuanceFailure("random", str(e)) from e

        expires_at = self._resolver.expires_at(principal)

        try:
            cert_info = self._ca.client_cert(common_name, expires_at)
        except Exception as e:
            raise IssuanceFailure("ca", str(e), common_name) from e
        if cert_info.valid_to > expires_at:
            raise IssuanceFailure(
                "ca",
                f"certificate valid until {utc_rfc3339(cert_info.valid_to)}, "
                f"beyond session expiry {utc_rfc3339(expires_at)}",
                common_name
            )

        try:
            record = CertificateRecord(
                common_name=common_name,
                user_id=principal.user_id,
                client_id=principal.client_id,
                valid_from=cert_info.valid_from,
                valid_to=cert_info.valid_to,
            )
        except ValueError as e:
            raise IssuanceFailure("ca", str(e), common_name) from e

        try:
            self._storage.add_certificate(
                principal.user_id,
                common_name,
                principal.client_id,
                cert_info.valid_from,
                cert_info.valid_to,
                principal.client_id
            )
        except Exception as e:
            # signed but never recorded: the certificate is abandoned
            self._audit.security_event(
                "orphaned_certificate",
                severity="high",
                common_name=common_name,
                user_id=principal.user_id,
                client_id=principal.client_id,
                valid_from=utc_rfc3339(cert_info.valid_from),
                valid_to=utc_rfc3339(cert_info.valid_to),
                error=str(e),
            )
            raise IssuanceFailure("storage", str(e), common_name) from e

        try:
            self._storage.add_user_message(
                principal.user_id,
                "notification",
                f'new certificate generated by application "{principal.client_id}"',
                self._clock.now()
            )
        except Exception as e:
            logger.exception("Unable to record issuance notification")
            self._audit.security_event(
                "audit_notification_failed",
                severity="high",
                user_id=principal.user_id,
                client_id=principal.client_id,
                error=str(e),
            )

        self._audit.certificate_issued(
            principal.user_id,
            principal.client_id,
            common_name,
            cert_info.valid_to
        )
        return IssuedCertificate(record=record, cert_data=cert_info.cert_data, key_data=cert_info.key_data)
