import unittest

from cidash.entities import Branch, Commit
from cidash.services.paginator import (
    BranchPaginator,
    CommitPaginator,
    PageWindow,
    is_primary_branch,
    sort_local_branches,
)


def _local(name, current=False):
    return Branch(name=name, is_current=current)


def _remote(name):
    return Branch(name=name, is_remote=True)


class TestBranchOrdering(unittest.TestCase):
    def test_current_first_then_primary_then_alphabetical(self):
        branches = [_local("zeta"), _local("Master"), _local("alpha"), _local("main"), _local("dev", current=True)]

        ordered = [b.name for b in sort_local_branches(branches)]

        self.assertEqual(ordered, ["dev", "Master", "main", "alpha", "zeta"])

    def test_current_primary_is_not_duplicated(self):
        ordered = [b.name for b in sort_local_branches([_local("b"), _local("main", current=True), _local("a")])]
        self.assertEqual(ordered, ["main", "a", "b"])

    def test_primary_names_are_case_insensitive(self):
        self.assertTrue(is_primary_branch("MAIN"))
        self.assertTrue(is_primary_branch("master"))
        self.assertFalse(is_primary_branch("mainline"))


class TestPageWindow(unittest.TestCase):
    def test_show_more_reveals_one_page(self):
        window = PageWindow(2, list(range(5)))

        self.assertEqual(window.visible, [0, 1])
        self.assertEqual(window.remaining, 3)
        self.assertEqual(window.show_more(), [2, 3])
        self.assertEqual(window.show_more(), [4])
        self.assertFalse(window.has_more)
        self.assertEqual(window.show_more(), [])

    def test_show_all(self):
        window = PageWindow(2, list(range(5)))
        self.assertEqual(window.show_all(), [2, 3, 4])
        self.assertEqual(window.remaining, 0)

    def test_reset_goes_back_to_first_page(self):
        window = PageWindow(2, list(range(5)))
        window.show_all()
        window.reset(["a", "b", "c"])
        self.assertEqual(window.visible, ["a", "b"])

    def test_page_size_must_be_positive(self):
        with self.assertRaises(ValueError):
            PageWindow(0)


class TestBranchPaginator(unittest.TestCase):
    def setUp(self):
        self.paginator = BranchPaginator(page_size=2)
        self.paginator.set_branches(
            [
                _local("feature-b"),
                _local("main", current=True),
                _local("feature-a"),
                _remote("origin/main"),
                _remote("origin/dev"),
                _remote("origin/feature-a"),
            ]
        )

    def test_local_and_remote_paged_independently(self):
        self.assertEqual([b.name for b in self.paginator.local.visible], ["main", "feature-a"])
        self.assertEqual([b.name for b in self.paginator.remote.visible], ["origin/dev", "origin/feature-a"])

        self.paginator.show_more_remote()

        self.assertEqual(len(self.paginator.remote.visible), 3)
        self.assertEqual(len(self.paginator.local.visible), 2)
        self.assertEqual(self.paginator.local.remaining, 1)

    def test_exclusion_hides_branch_and_resets_pages(self):
        self.paginator.show_all_local()

        self.paginator.set_exclusion("main")

        self.assertEqual([b.name for b in self.paginator.local.visible], ["feature-a", "feature-b"])
        self.assertEqual(self.paginator.local.remaining, 0)
        self.assertIn("origin/main", [b.name for b in self.paginator.remote.items])

    def test_same_exclusion_keeps_pages(self):
        self.paginator.set_exclusion("feature-b")
        self.paginator.show_more_remote()

        self.paginator.set_exclusion("feature-b")

        self.assertEqual(self.paginator.remote.remaining, 0)

    def test_clear(self):
        self.paginator.clear()
        self.assertEqual(self.paginator.local.items, [])
        self.assertEqual(self.paginator.remote.items, [])
        self.assertIsNone(self.paginator.exclude)


class TestCommitPaginator(unittest.TestCase):
    def setUp(self):
        self.commits = [Commit(hash=f"{i:040x}", message=f"commit {i}") for i in range(25)]
        self.paginator = CommitPaginator(page_size=10, threshold=50)
        self.paginator.reset(self.commits)

    def test_first_page_in_served_order(self):
        self.assertEqual(self.paginator.visible, self.commits[:10])

    def test_scroll_far_from_bottom_reveals_nothing(self):
        self.assertEqual(self.paginator.on_scroll(scroll_top=0, client_height=400, scroll_height=1000), [])
        self.assertEqual(len(self.paginator.visible), 10)

    def test_scroll_near_bottom_reveals_next_page(self):
        revealed = self.paginator.on_scroll(scroll_top=560, client_height=400, scroll_height=1000)

        self.assertEqual(revealed, self.commits[10:20])
        self.assertEqual(self.paginator.remaining, 5)

    def test_threshold_is_inclusive(self):
        self.assertTrue(self.paginator.near_bottom(scroll_top=550, client_height=400, scroll_height=1000))
        self.assertFalse(self.paginator.near_bottom(scroll_top=549, client_height=400, scroll_height=1000))

    def test_no_reveal_when_exhausted(self):
        self.paginator.show_all()
        self.assertEqual(self.paginator.on_scroll(1000, 400, 1000), [])


if __name__ == "__main__":
    unittest.main()
