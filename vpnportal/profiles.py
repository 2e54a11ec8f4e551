"""Profile visibility based on the user's permission set."""

from typing import AbstractSet, Iterable, Iterator, Tuple

from .errors import ProfileAccessDenied
from .models import PortalConfig, ProfileConfig


def is_member(acl_permission_list: Iterable[str], permissions: AbstractSet[str]) -> bool:
    """True if the user holds at least one of the ACL permissions."""
    return any(p in permissions for p in acl_permission_list)


def is_eligible(profile: ProfileConfig, permissions: AbstractSet[str]) -> bool:
    if profile.hide_profile:
        return False
    if profile.enable_acl:
        return is_member(profile.acl_permission_list, permissions)
    return True


def eligible_profiles(
    portal_config: PortalConfig,
    permissions: AbstractSet[str]
) -> Iterator[Tuple[str, ProfileConfig]]:
    for profile_id, profile in portal_config.profile_list.items():
        if is_eligible(profile, permissions):
            yield profile_id, profile


def require_profile(
    portal_config: PortalConfig,
    profile_id: str,
    permissions: AbstractSet[str]
) -> ProfileConfig:
    """Return the requested profile, or raise ProfileAccessDenied."""
    profile = portal_config.get_profile_config(profile_id)
    if profile is None or not is_eligible(profile, permissions):
        raise ProfileAccessDenied(profile_id)
    return profile
