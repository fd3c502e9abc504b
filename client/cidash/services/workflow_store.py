"""
Workflow state for the image builder page.

The store owns everything the operator manipulates on the way from "pick a
repository" to "submit a build": the repository, the branch and commit
reference pairs, the active comparison mode, the detection result, the
service selection and the build inputs. Tracked fields are written to the
persistence adapter as soon as they change and removed when they become
empty, so a restarted client picks up where the operator left off.

All public methods resolve failures to state (validation_message,
notifications, a None result) instead of raising.

Ordering: every repository switch bumps a generation counter. Responses
that arrive for an older generation are logged and dropped, so a slow
request for a previous repository can never write into the current one.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from cidash.api import BackendApi
from cidash.config import settings
from cidash.core.tracing import start_operation
from cidash.entities import Branch, ChangedService, Commit, ComparisonMode, Repository
from cidash.persistence import PersistenceAdapter
from cidash.services.build_orchestrator import BuildOrchestrator, BuildOutcome, ServiceSelection
from cidash.services.change_detection import ChangeDetectionClient, validate_ref_pair
from cidash.services.comparison import ComparisonEvent, ComparisonModeArbiter
from cidash.services.exceptions import DashboardError, ValidationFailure
from cidash.services.notification_service import Notifier
from cidash.services.paginator import BranchPaginator, CommitPaginator

logger = logging.getLogger(__name__)


class StorageKeys:
    """Keys of the client-local persisted workflow fields."""

    SELECTED_REPO = "selectedRepo"
    BASE_BRANCH = "baseBranch"
    CURRENT_BRANCH = "currentBranch"
    BASE_COMMIT = "baseCommit"
    CURRENT_COMMIT = "currentCommit"
    ACTIVE_COMPARISON = "activeComparison"
    SELECTED_SERVICES = "selectedServices"

    # Cleared whenever the repository changes
    REPOSITORY_SCOPED = (
        BASE_BRANCH,
        CURRENT_BRANCH,
        BASE_COMMIT,
        CURRENT_COMMIT,
        ACTIVE_COMPARISON,
        SELECTED_SERVICES,
    )


def _parse_service_paths(value: Any) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
        raise ValueError("expected a JSON array of service paths")
    return value


@dataclass
class WorkflowState:
    repositories: List[Repository] = field(default_factory=list)
    selected_repo: Optional[Repository] = None

    branches: List[Branch] = field(default_factory=list)
    loading_branches: bool = False

    base_branch: str = ""
    current_branch: str = ""
    base_commit: str = ""
    current_commit: str = ""

    commit_branch: str = ""
    loading_commits: bool = False

    # None: no detection result; []: detection found no changed services
    changed_services: Optional[List[ChangedService]] = None
    detecting: bool = False

    branch_validation_attempted: bool = False
    commit_validation_attempted: bool = False
    validation_message: Optional[str] = None

    build_tag: str = ""
    build_registry: str = ""
    last_build: Optional[BuildOutcome] = None


class WorkflowStateStore:
    def __init__(
        self,
        api: BackendApi,
        persistence: Optional[PersistenceAdapter] = None,
        notifier: Optional[Notifier] = None,
        branches_per_page: Optional[int] = None,
        commits_per_page: Optional[int] = None,
    ):
        self.api = api
        self.persistence = persistence or PersistenceAdapter()
        self.notifier = notifier or Notifier()

        self.state = WorkflowState()
        self.arbiter = ComparisonModeArbiter()
        self.selection = ServiceSelection()
        self.detection = ChangeDetectionClient(api.imagebuilder)
        self.orchestrator = BuildOrchestrator(api.imagebuilder)

        # Each selector hides the branch chosen in the other one
        self.base_branch_options = BranchPaginator(branches_per_page or settings.BRANCHES_PER_PAGE)
        self.current_branch_options = BranchPaginator(branches_per_page or settings.BRANCHES_PER_PAGE)
        self.commits = CommitPaginator(commits_per_page or settings.COMMITS_PER_PAGE)

        self._generation = 0

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def active_comparison(self) -> Optional[ComparisonMode]:
        return self.arbiter.active

    @property
    def selected_services(self) -> List[str]:
        return self.selection.selected

    @property
    def building(self) -> bool:
        return self.orchestrator.in_flight

    @property
    def resolved_ref(self) -> Optional[str]:
        """Ref the build runs against: the current side of the active comparison."""
        if self.arbiter.active == ComparisonMode.BRANCH:
            return self.state.current_branch or None
        if self.arbiter.active == ComparisonMode.COMMIT:
            return self.state.current_commit or None
        return None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Restore persisted fields. Absent or malformed values start empty."""
        p = self.persistence
        self.state.selected_repo = p.get_json(StorageKeys.SELECTED_REPO, Repository.model_validate)
        self.state.base_branch = p.get_str(StorageKeys.BASE_BRANCH) or ""
        self.state.current_branch = p.get_str(StorageKeys.CURRENT_BRANCH) or ""
        self.state.base_commit = p.get_str(StorageKeys.BASE_COMMIT) or ""
        self.state.current_commit = p.get_str(StorageKeys.CURRENT_COMMIT) or ""
        self.arbiter.restore(p.get_choice(StorageKeys.ACTIVE_COMPARISON, ComparisonMode))
        self.selection.restore(p.get_json(StorageKeys.SELECTED_SERVICES, _parse_service_paths) or [])
        self._sync_exclusions()

        if self.state.selected_repo:
            logger.info(
                f"Restored workflow for repository {self.state.selected_repo.id} "
                f"(mode={self.arbiter.active.value if self.arbiter.active else 'idle'})"
            )

    def _persist_repo(self) -> None:
        repo = self.state.selected_repo
        self.persistence.save_json(
            StorageKeys.SELECTED_REPO,
            repo.model_dump(mode="json", by_alias=True) if repo else None,
        )

    def _persist_mode(self) -> None:
        mode = self.arbiter.active
        self.persistence.save_str(StorageKeys.ACTIVE_COMPARISON, mode.value if mode else None)

    def _persist_selection(self) -> None:
        self.persistence.save_json(StorageKeys.SELECTED_SERVICES, self.selection.selected)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _reject(self, failure: ValidationFailure) -> None:
        self.state.validation_message = failure.message
        self.notifier.error(failure.title, failure.message)

    def _is_stale(self, generation: int, what: str) -> bool:
        if generation == self._generation:
            return False
        logger.info(f"Discarding {what} response: repository selection changed while it was in flight")
        return True

    def _sync_exclusions(self) -> None:
        self.base_branch_options.set_exclusion(self.state.current_branch)
        self.current_branch_options.set_exclusion(self.state.base_branch)

    def _set_branches(self, branches: List[Branch]) -> None:
        self.state.branches = list(branches)
        self.base_branch_options.set_branches(branches)
        self.current_branch_options.set_branches(branches)

    def _set_result(self, services: Optional[List[ChangedService]]) -> None:
        self.state.changed_services = services
        self.selection.set_services(services)
        self._persist_selection()

    def _find_repository(self, repo_id: int) -> Optional[Repository]:
        for repo in self.state.repositories:
            if repo.id == repo_id:
                return repo
        return None

    # ------------------------------------------------------------------
    # Repository
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Restore persisted state, load repositories and the restored repository's branches."""
        self.load()
        await self.fetch_repositories()
        if self.state.selected_repo:
            await self.refresh_branches()

    async def fetch_repositories(self) -> List[Repository]:
        try:
            repositories = await self.api.repositories.list_repositories()
        except DashboardError as e:
            self.notifier.error("Error", f"Failed to fetch repositories: {e.message}")
            return self.state.repositories

        self.state.repositories = repositories
        selected = self.state.selected_repo
        if selected:
            fresh = self._find_repository(selected.id)
            if fresh and fresh != selected:
                self.state.selected_repo = fresh
                self._persist_repo()
        return repositories

    async def select_repository(self, repo: Union[Repository, int, None]) -> None:
        """
        Switch repository.

        References, comparison mode, detection result, selection and commit
        list are reset and their persisted keys removed before the new
        repository's branches are fetched.
        """
        if isinstance(repo, int):
            found = self._find_repository(repo)
            if found is None:
                logger.warning(f"Repository {repo} is not in the repository list")
            repo = found

        self._generation += 1
        self.state.selected_repo = repo
        self._persist_repo()

        self.state.base_branch = ""
        self.state.current_branch = ""
        self.state.base_commit = ""
        self.state.current_commit = ""
        self.state.commit_branch = ""
        self.state.loading_branches = False
        self.state.loading_commits = False
        self.state.detecting = False
        self.state.branch_validation_attempted = False
        self.state.commit_validation_attempted = False
        self.state.validation_message = None
        self.state.last_build = None
        self.arbiter.reset()
        self.selection.set_services(None)
        self.state.changed_services = None
        self.base_branch_options.clear()
        self.current_branch_options.clear()
        self.commits.reset([])
        self.state.branches = []
        for key in StorageKeys.REPOSITORY_SCOPED:
            self.persistence.remove(key)

        if repo is None:
            logger.info("Repository selection cleared")
            return

        logger.info(f"Selected repository {repo.id} ({repo.display_name})")
        await self.refresh_branches()

    async def refresh_branches(self) -> List[Branch]:
        repo = self.state.selected_repo
        if repo is None:
            return []

        generation = self._generation
        start_operation("fetch_branches", repo_id=str(repo.id))
        self.state.loading_branches = True
        try:
            branches = await self.api.imagebuilder.list_branches(repo.url)
        except DashboardError as e:
            if not self._is_stale(generation, "branch"):
                self.state.loading_branches = False
                self.notifier.error("Error", e.message)
            return []

        if self._is_stale(generation, "branch"):
            return []

        self.state.loading_branches = False
        self._set_branches(branches)
        logger.info(f"Loaded {len(branches)} branches for repository {repo.id}")
        return branches

    async def checkout_branch(self, branch: str) -> bool:
        repo = self.state.selected_repo
        if repo is None:
            return False
        try:
            await self.api.repositories.checkout_branch(repo.id, branch)
        except DashboardError as e:
            self.notifier.error("Checkout Failed", e.message)
            return False
        self.notifier.success("Branch Checked Out", f"Switched to branch '{branch}'")
        await self.refresh_branches()
        return True

    async def sync_repository(self) -> bool:
        repo = self.state.selected_repo
        if repo is None:
            return False
        try:
            await self.api.repositories.sync_repository(repo.id)
        except DashboardError as e:
            self.notifier.error("Sync Failed", e.message)
            return False
        self.notifier.success("Repository Synced", repo.display_name)
        await self.refresh_branches()
        return True

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    async def load_commits(self, branch: str) -> List[Commit]:
        """Load a branch's history as the candidate list for commit comparison."""
        repo = self.state.selected_repo
        if repo is None or not branch:
            return []

        generation = self._generation
        self.state.commit_branch = branch
        self.state.loading_commits = True
        try:
            commits = await self.api.repositories.get_branch_commits(repo.id, branch)
        except DashboardError as e:
            if not self._is_stale(generation, "commit"):
                self.state.loading_commits = False
                self.notifier.error("Error", e.message)
            return []

        if self._is_stale(generation, "commit") or branch != self.state.commit_branch:
            return []

        self.state.loading_commits = False
        self.commits.reset(commits)
        return commits

    def on_commit_scroll(self, scroll_top: float, client_height: float, scroll_height: float) -> List[Commit]:
        return self.commits.on_scroll(scroll_top, client_height, scroll_height)

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def _set_ref(self, mode: ComparisonMode, attr: str, key: str, value: Optional[str]) -> bool:
        try:
            self.arbiter.ensure_enabled(mode)
        except ValidationFailure as e:
            self._reject(e)
            return False

        value = (value or "").strip()
        setattr(self.state, attr, value)
        self.persistence.save_str(key, value)
        if mode == ComparisonMode.BRANCH:
            self._sync_exclusions()
        return True

    def set_base_branch(self, name: Optional[str]) -> bool:
        return self._set_ref(ComparisonMode.BRANCH, "base_branch", StorageKeys.BASE_BRANCH, name)

    def set_current_branch(self, name: Optional[str]) -> bool:
        return self._set_ref(ComparisonMode.BRANCH, "current_branch", StorageKeys.CURRENT_BRANCH, name)

    def set_base_commit(self, commit_hash: Optional[str]) -> bool:
        return self._set_ref(ComparisonMode.COMMIT, "base_commit", StorageKeys.BASE_COMMIT, commit_hash)

    def set_current_commit(self, commit_hash: Optional[str]) -> bool:
        return self._set_ref(ComparisonMode.COMMIT, "current_commit", StorageKeys.CURRENT_COMMIT, commit_hash)

    def _clear_comparison(self, mode: ComparisonMode) -> bool:
        if self.state.detecting:
            return False
        event = ComparisonEvent.CLEAR_BRANCH if mode == ComparisonMode.BRANCH else ComparisonEvent.CLEAR_COMMIT
        try:
            self.arbiter.apply(event)
        except ValidationFailure as e:
            self._reject(e)
            return False

        if mode == ComparisonMode.BRANCH:
            self.state.base_branch = ""
            self.state.current_branch = ""
            self.state.branch_validation_attempted = False
            self.persistence.remove(StorageKeys.BASE_BRANCH)
            self.persistence.remove(StorageKeys.CURRENT_BRANCH)
            self._sync_exclusions()
        else:
            self.state.base_commit = ""
            self.state.current_commit = ""
            self.state.commit_validation_attempted = False
            self.persistence.remove(StorageKeys.BASE_COMMIT)
            self.persistence.remove(StorageKeys.CURRENT_COMMIT)

        self.state.validation_message = None
        self._persist_mode()
        self._set_result(None)
        return True

    def clear_branch_comparison(self) -> bool:
        return self._clear_comparison(ComparisonMode.BRANCH)

    def clear_commit_comparison(self) -> bool:
        return self._clear_comparison(ComparisonMode.COMMIT)

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------

    async def detect_branch_changes(self) -> Optional[List[ChangedService]]:
        return await self._detect(ComparisonMode.BRANCH)

    async def detect_commit_changes(self) -> Optional[List[ChangedService]]:
        return await self._detect(ComparisonMode.COMMIT)

    async def _detect(self, mode: ComparisonMode) -> Optional[List[ChangedService]]:
        if self.state.detecting:
            logger.debug("Change detection already in flight; ignoring trigger")
            return None

        repo = self.state.selected_repo
        if mode == ComparisonMode.BRANCH:
            self.state.branch_validation_attempted = True
            base, current = self.state.base_branch, self.state.current_branch
            event = ComparisonEvent.DETECT_BRANCH
        else:
            self.state.commit_validation_attempted = True
            base, current = self.state.base_commit, self.state.current_commit
            event = ComparisonEvent.DETECT_COMMIT

        try:
            self.arbiter.ensure_enabled(mode)
            validate_ref_pair(repo.url if repo else "", base, current, mode.value)
        except ValidationFailure as e:
            logger.info(f"{mode.value.capitalize()} detection rejected: {e.message}")
            self._reject(e)
            return None

        generation = self._generation
        start_operation("detect_changes", repo_id=str(repo.id))
        self.state.validation_message = None
        self.state.detecting = True
        self._set_result(None)
        self.arbiter.apply(event)
        self._persist_mode()

        try:
            if mode == ComparisonMode.BRANCH:
                services = await self.detection.detect_by_branches(repo.url, base, current)
            else:
                services = await self.detection.detect_by_commits(repo.url, base, current)
        except DashboardError as e:
            if not self._is_stale(generation, "change detection"):
                self.state.detecting = False
                self._set_result(None)
                self.notifier.error("Error Detecting Changes", e.message)
            return None

        if self._is_stale(generation, "change detection"):
            return None

        self.state.detecting = False
        self._set_result(services)
        if not services:
            if mode == ComparisonMode.BRANCH:
                detail = f"No service changes found between '{base}' and '{current}'"
            else:
                detail = "No service changes found between commits"
            self.notifier.info("No Changes Detected", detail)
        else:
            plural = "" if len(services) == 1 else "s"
            self.notifier.success("Changes Detected", f"Found changes in {len(services)} service{plural}")
        return services

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def toggle_service(self, path: str) -> bool:
        """Flip one service; services without a Dockerfile are rejected."""
        try:
            self.selection.toggle(path)
        except ValidationFailure as e:
            self._reject(e)
            return False
        self._persist_selection()
        return True

    def restore_selection(self, paths: List[str]) -> List[str]:
        """Re-apply an earlier selection to the current result; unbuildable paths drop out."""
        self.selection.restore(paths)
        self._persist_selection()
        dropped = [p for p in paths if not self.selection.is_selected(p)]
        if dropped:
            logger.info(f"Dropped previously selected services no longer buildable: {', '.join(dropped)}")
        return self.selection.selected

    def select_all_services(self) -> None:
        self.selection.select_all()
        self._persist_selection()

    def deselect_all_services(self) -> None:
        self.selection.deselect_all()
        self._persist_selection()

    def toggle_all_services(self) -> None:
        self.selection.toggle_all()
        self._persist_selection()

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def set_build_tag(self, tag: Optional[str]) -> None:
        self.state.build_tag = (tag or "").strip()

    def set_build_registry(self, registry: Optional[str]) -> None:
        self.state.build_registry = (registry or "").strip()

    async def submit_build(self, tag: Optional[str] = None, registry: Optional[str] = None) -> BuildOutcome:
        if tag is not None:
            self.set_build_tag(tag)
        if registry is not None:
            self.set_build_registry(registry)

        repo = self.state.selected_repo
        generation = self._generation
        start_operation("build_images", repo_id=str(repo.id) if repo else "")
        outcome = await self.orchestrator.submit(
            repo.url if repo else None,
            self.resolved_ref,
            self.selection.selected,
            self.state.build_tag,
            self.state.build_registry,
        )

        if self._is_stale(generation, "build"):
            return outcome

        self.state.last_build = outcome
        if outcome.accepted:
            self.notifier.success("Build Started", outcome.message)
        elif outcome.failure == "validation":
            self.state.validation_message = outcome.message
            self.notifier.error("Invalid Selection", outcome.message)
        elif outcome.failure != "in_flight":
            self.notifier.error("Build Failed", outcome.message)
        return outcome
