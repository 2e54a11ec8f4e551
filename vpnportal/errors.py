"""
Error taxonomy for the VPN portal core.

Each error is raised by the layer that first detects it and handled
where the caller can still make a meaningful decision.
"""

from typing import Optional


class PortalError(Exception):
    """Base class for all portal errors."""


class InputValidationError(PortalError):
    """Malformed or unacceptable caller input."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ProfileAccessDenied(InputValidationError):
    """Requested profile is hidden, ACL-excluded or unknown."""

    def __init__(self, profile_id: str):
        self.profile_id = profile_id
        super().__init__("user has no access to this profile")


class ConfigurationError(PortalError):
    """Malformed configuration or key material, fatal at startup."""


class IssuanceFailure(PortalError):
    """
    A certificate could not be issued.

    `stage` names the step that failed: "random", "ca" or "storage".
    """

    def __init__(self, stage: str, message: str, common_name: Optional[str] = None):
        self.stage = stage
        self.common_name = common_name
        super().__init__(f"issuance failed at {stage}: {message}")


class LookupMiss(PortalError):
    """A record that was looked up does not exist."""


class SessionLookupError(LookupMiss):
    """No session expiry is recorded for a local user."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"no session expiry recorded for user {user_id}")
