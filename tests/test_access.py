import unittest

from datakit.dataviews.access import DELETE, EDIT, VIEW, ReadOnlyAccessController, RoleAccessController, Subject, any_record


class AccessControllerTests(unittest.TestCase):
    def test_read_only_controller_allows_view_only(self):
        access = ReadOnlyAccessController()
        self.assertTrue(access.can(VIEW, Subject("posts")))
        self.assertFalse(access.can(EDIT, Subject("posts")))
        self.assertFalse(access.can(DELETE))
        self.assertEqual(access.scope, "anonymous")

    def test_admin_can_everything_even_with_restrictive_rules(self):
        access = RoleAccessController("admin", "1", rules={"posts": {"ADMIN": set()}})
        self.assertTrue(access.can(DELETE, Subject("posts", "5", owner_id="9")))

    def test_editor_and_subscriber_defaults(self):
        editor = RoleAccessController("EDITOR", "2")
        subscriber = RoleAccessController("SUBSCRIBER", "3")
        self.assertTrue(editor.can(DELETE, Subject("posts", "5")))
        self.assertTrue(subscriber.can(VIEW, Subject("posts")))
        self.assertFalse(subscriber.can(DELETE, Subject("posts")))

    def test_author_acts_on_own_records_only(self):
        author = RoleAccessController("AUTHOR", "10")
        self.assertTrue(author.can(DELETE, Subject("posts")))
        self.assertTrue(author.can(DELETE, Subject("posts", "1", owner_id="10")))
        self.assertFalse(author.can(DELETE, Subject("posts", "2", owner_id="11")))
        self.assertFalse(author.can(EDIT, any_record("posts")))

    def test_per_source_rules_override_defaults(self):
        access = RoleAccessController("EDITOR", "2", rules={"users": {"EDITOR": {VIEW}}})
        self.assertFalse(access.can(DELETE, Subject("users", "4")))
        self.assertTrue(access.can(DELETE, Subject("posts", "4")))
        self.assertFalse(RoleAccessController("SUBSCRIBER", rules={"secret": {}}).can(VIEW, Subject("secret")))

    def test_per_source_rules_replace_owner_grants(self):
        author = RoleAccessController("AUTHOR", "10", rules={"posts": {"AUTHOR": {VIEW}}})
        self.assertFalse(author.can(DELETE, Subject("posts")))
        self.assertFalse(author.can(DELETE, Subject("posts", "1", owner_id="10")))
        self.assertTrue(author.can(DELETE, Subject("pages", "1", owner_id="10")))

    def test_scope_separates_callers(self):
        self.assertNotEqual(RoleAccessController("AUTHOR", "10").scope, RoleAccessController("AUTHOR", "11").scope)
        self.assertEqual(RoleAccessController("author").scope, "AUTHOR:-")
        restricted = RoleAccessController("EDITOR", "2", rules={"posts": {"EDITOR": {VIEW}}})
        self.assertNotEqual(restricted.scope, RoleAccessController("EDITOR", "2").scope)


if __name__ == "__main__":
    unittest.main()
