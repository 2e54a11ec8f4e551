import unittest

from vpnportal.config import parse_portal_config
from vpnportal.errors import InputValidationError, ProfileAccessDenied
from vpnportal.models import ProfileConfig
from vpnportal.profiles import eligible_profiles, is_eligible, is_member, require_profile


def profile(**kwargs) -> ProfileConfig:
    return ProfileConfig(display_name="Test", **kwargs)


class TestIsMember(unittest.TestCase):

    def test_any_overlap(self):
        self.assertTrue(is_member(["admin", "staff"], {"staff"}))

    def test_no_overlap(self):
        self.assertFalse(is_member(["admin"], {"staff", "user"}))

    def test_empty_acl(self):
        self.assertFalse(is_member([], {"staff"}))


class TestIsEligible(unittest.TestCase):

    def test_acl_admin(self):
        p = profile(enable_acl=True, acl_permission_list=["admin"])
        self.assertTrue(is_eligible(p, {"admin", "user"}))
        self.assertFalse(is_eligible(p, {"user"}))
        self.assertFalse(is_eligible(p, frozenset()))

    def test_acl_disabled_ignores_permissions(self):
        p = profile(enable_acl=False, acl_permission_list=["admin"])
        for permissions in (set(), {"user"}, {"admin"}):
            self.assertTrue(is_eligible(p, permissions))

    def test_hidden_profile_never_eligible(self):
        p = profile(hide_profile=True, enable_acl=True, acl_permission_list=["admin"])
        self.assertFalse(is_eligible(p, {"admin"}))
        self.assertFalse(is_eligible(profile(hide_profile=True), set()))


class TestProfileSelection(unittest.TestCase):

    def setUp(self):
        self.config = parse_portal_config({
            "profile_list": {
                "internet": {"display_name": "Internet"},
                "office": {"display_name": "Office", "enable_acl": True, "acl_permission_list": ["staff"]},
                "admin": {"display_name": "Admin", "hide_profile": True},
            }
        })

    def test_eligible_profiles_keep_config_order(self):
        ids = [pid for pid, _ in eligible_profiles(self.config, {"staff"})]
        self.assertEqual(ids, ["internet", "office"])

    def test_eligible_profiles_without_permissions(self):
        ids = [pid for pid, _ in eligible_profiles(self.config, frozenset())]
        self.assertEqual(ids, ["internet"])

    def test_require_profile(self):
        p = require_profile(self.config, "office", {"staff"})
        self.assertEqual(p.profile_id, "office")
        self.assertEqual(p.display_name, "Office")

    def test_require_acl_excluded_profile(self):
        with self.assertRaises(ProfileAccessDenied):
            require_profile(self.config, "office", {"user"})

    def test_require_hidden_profile(self):
        with self.assertRaises(ProfileAccessDenied):
            require_profile(self.config, "admin", {"staff"})

    def test_require_unknown_profile(self):
        with self.assertRaises(ProfileAccessDenied) as ctx:
            require_profile(self.config, "nope", {"staff"})
        self.assertIsInstance(ctx.exception, InputValidationError)
        self.assertEqual(ctx.exception.reason, "user has no access to this profile")


if __name__ == "__main__":
    unittest.main()
