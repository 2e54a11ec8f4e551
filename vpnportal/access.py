"""
Access context resolution.

Derives what a principal may see (permissions) and how long a
certificate issued to it may live (expiry).
"""

from datetime import datetime
from typing import FrozenSet

from .errors import SessionLookupError
from .models import AccessContext, PortalConfig, Principal
from .util import SystemClock


class AccessContextResolver:
    """
    Delegated (non-local) principals never carry portal-managed
    permissions and get a fixed session length from the portal config.
    Local principals get whatever the storage has recorded for them.
    """

    def __init__(self, storage, portal_config: PortalConfig, clock=None):
        self._storage = storage
        self._portal_config = portal_config
        self._clock = clock or SystemClock()

    def permission_list(self, principal: Principal) -> FrozenSet[str]:
        if not principal.is_local:
            return frozenset()
        return frozenset(self._storage.get_permission_list(principal.user_id))

    def expires_at(self, principal: Principal) -> datetime:
        """Second precision, the finest X.509 validity and stored timestamps carry."""
        if not principal.is_local:
            expires_at = self._clock.now() + self._portal_config.session_expiry_delta()
        else:
            expires_at = self._storage.get_session_expires_at(principal.user_id)
            if expires_at is None:
                raise SessionLookupError(principal.user_id)
        return expires_at.replace(microsecond=0)

    def resolve(self, principal: Principal) -> AccessContext:
        return AccessContext(
            permissions=self.permission_list(principal),
            expires_at=self.expires_at(principal),
        )
