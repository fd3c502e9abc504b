"""
Incremental disclosure of branches and commits.

Branch selectors show local and remote branches as two independently paged
lists, with an explicit "show more" / "show all". Commit lists page forward
only, driven by how close the operator has scrolled to the bottom.
"""

import logging
from typing import Generic, Iterable, List, Optional, Sequence, TypeVar

from cidash.config import settings
from cidash.entities import Branch, Commit

logger = logging.getLogger(__name__)

T = TypeVar("T")

PRIMARY_BRANCH_NAMES = ("main", "master")


def is_primary_branch(name: str) -> bool:
    return name.lower() in PRIMARY_BRANCH_NAMES


def sort_local_branches(branches: Iterable[Branch]) -> List[Branch]:
    """Current branch first, then main/master, then the rest by name."""
    return sorted(
        branches,
        key=lambda b: (not b.is_current, not is_primary_branch(b.name), b.name),
    )


def sort_remote_branches(branches: Iterable[Branch]) -> List[Branch]:
    return sorted(branches, key=lambda b: b.name)


class PageWindow(Generic[T]):
    """A prefix of an ordered sequence that grows one page at a time."""

    def __init__(self, page_size: int, items: Sequence[T] = ()):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.page_size = page_size
        self._items: List[T] = list(items)
        self._visible = min(page_size, len(self._items))

    def reset(self, items: Sequence[T]) -> None:
        """Replace the underlying items and go back to the first page."""
        self._items = list(items)
        self._visible = min(self.page_size, len(self._items))

    @property
    def items(self) -> List[T]:
        return list(self._items)

    @property
    def visible(self) -> List[T]:
        return self._items[: self._visible]

    @property
    def remaining(self) -> int:
        return len(self._items) - self._visible

    @property
    def has_more(self) -> bool:
        return self.remaining > 0

    def show_more(self) -> List[T]:
        """Reveal exactly one more page and return the newly visible items."""
        start = self._visible
        self._visible = min(self._visible + self.page_size, len(self._items))
        return self._items[start : self._visible]

    def show_all(self) -> List[T]:
        start = self._visible
        self._visible = len(self._items)
        return self._items[start:]


class BranchPaginator:
    """
    Candidate branches for one selector.

    `exclude` is the branch chosen in the opposite selector; it is removed
    from both lists. Changing the branch set or the exclusion re-sorts and
    returns both lists to their first page.
    """

    def __init__(self, page_size: Optional[int] = None):
        size = page_size or settings.BRANCHES_PER_PAGE
        self._branches: List[Branch] = []
        self._exclude: Optional[str] = None
        self.local = PageWindow[Branch](size)
        self.remote = PageWindow[Branch](size)

    @property
    def exclude(self) -> Optional[str]:
        return self._exclude

    @property
    def branches(self) -> List[Branch]:
        return list(self._branches)

    def set_branches(self, branches: Sequence[Branch]) -> None:
        self._branches = list(branches)
        self._rebuild()

    def set_exclusion(self, name: Optional[str]) -> None:
        name = name or None
        if name == self._exclude:
            return
        self._exclude = name
        self._rebuild()

    def clear(self) -> None:
        self._branches = []
        self._exclude = None
        self._rebuild()

    def _rebuild(self) -> None:
        candidates = [b for b in self._branches if b.name != self._exclude]
        self.local.reset(sort_local_branches(b for b in candidates if not b.is_remote))
        self.remote.reset(sort_remote_branches(b for b in candidates if b.is_remote))

    def show_more_local(self) -> List[Branch]:
        return self.local.show_more()

    def show_more_remote(self) -> List[Branch]:
        return self.remote.show_more()

    def show_all_local(self) -> List[Branch]:
        return self.local.show_all()

    def show_all_remote(self) -> List[Branch]:
        return self.remote.show_all()


class CommitPaginator(PageWindow[Commit]):
    """
    Commit history in the order served (newest first), revealed forward only.

    The next page is revealed when the scrollable region is within
    `threshold` units of its bottom edge.
    """

    def __init__(self, page_size: Optional[int] = None, threshold: Optional[int] = None):
        super().__init__(page_size or settings.COMMITS_PER_PAGE)
        self.threshold = settings.COMMIT_SCROLL_THRESHOLD if threshold is None else threshold

    def near_bottom(self, scroll_top: float, client_height: float, scroll_height: float) -> bool:
        return scroll_height - (scroll_top + client_height) <= self.threshold

    def on_scroll(self, scroll_top: float, client_height: float, scroll_height: float) -> List[Commit]:
        """Reveal the next page if the viewport is near the bottom."""
        if not self.has_more or not self.near_bottom(scroll_top, client_height, scroll_height):
            return []
        revealed = self.show_more()
        logger.debug(f"Revealed {len(revealed)} more commits ({self.remaining} remaining)")
        return revealed
