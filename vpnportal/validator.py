"""
Certificate lifecycle validation.

Decides, from stored metadata alone, whether a client certificate is
currently usable. Nothing here talks to the CA or has side effects.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .models import CertificateRecord


class InvalidReason(str, Enum):
    CERTIFICATE_MISSING = "certificate_missing"
    CERTIFICATE_NOT_YET_VALID = "certificate_not_yet_valid"
    CERTIFICATE_EXPIRED = "certificate_expired"


@dataclass(frozen=True)
class CertificateStatus:
    """Result of checking a certificate."""
    is_valid: bool
    reason: Optional[InvalidReason] = None

    @classmethod
    def valid(cls) -> 'CertificateStatus':
        return cls(is_valid=True)

    @classmethod
    def invalid(cls, reason: InvalidReason) -> 'CertificateStatus':
        return cls(is_valid=False, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"is_valid": self.is_valid}
        if not self.is_valid:
            data["reason"] = self.reason.value
        return data


def validate_certificate(record: Optional[CertificateRecord], now: datetime) -> CertificateStatus:
    """
    Map a certificate lookup result and the current time to a verdict.

    Both ends of the validity window are inclusive.
    """
    if record is None:
        # never issued, deleted by the user, or issued by a previous CA
        return CertificateStatus.invalid(InvalidReason.CERTIFICATE_MISSING)
    if now < record.valid_from:
        return CertificateStatus.invalid(InvalidReason.CERTIFICATE_NOT_YET_VALID)
    if now > record.valid_to:
        return CertificateStatus.invalid(InvalidReason.CERTIFICATE_EXPIRED)
    return CertificateStatus.valid()
