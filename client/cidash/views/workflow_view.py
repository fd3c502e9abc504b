"""
Projection of the workflow store into what the image builder page shows.

`project_workflow` is a pure function of the store; it never mutates it.
Every control that must be unusable in the current state is reported as
disabled here, which is how the branch/commit modes exclude each other and
how duplicate detections or builds are prevented.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel

from cidash.entities import Branch, ChangedService, Commit, ComparisonMode
from cidash.services.paginator import BranchPaginator
from cidash.services.workflow_store import WorkflowStateStore


class BranchOptions(BaseModel):
    local: List[Branch]
    remote: List[Branch]
    remaining_local: int
    remaining_remote: int
    placeholder: str


class ServiceRow(BaseModel):
    path: str
    has_build_recipe: bool
    selected: bool
    selectable: bool
    note: Optional[str] = None


class WorkflowView(BaseModel):
    repository_label: Optional[str]
    repositories_empty: bool

    branch_inputs_enabled: bool
    commit_inputs_enabled: bool
    base_branch_options: BranchOptions
    current_branch_options: BranchOptions
    base_branch_error: Optional[str] = None
    current_branch_error: Optional[str] = None
    base_commit_error: Optional[str] = None
    current_commit_error: Optional[str] = None

    commits: List[Commit]
    remaining_commits: int

    can_detect_branches: bool
    can_detect_commits: bool
    can_clear_branches: bool
    can_clear_commits: bool
    detecting: bool

    result_mode: Literal["not_run", "empty", "services"]
    services: List[ServiceRow]
    can_toggle_all: bool
    all_selected: bool

    can_build: bool
    building: bool
    build_ref: Optional[str]
    validation_message: Optional[str] = None


def _branch_options(paginator: BranchPaginator, loading: bool, placeholder: str) -> BranchOptions:
    return BranchOptions(
        local=paginator.local.visible,
        remote=paginator.remote.visible,
        remaining_local=paginator.local.remaining,
        remaining_remote=paginator.remote.remaining,
        placeholder="Loading branches..." if loading else placeholder,
    )


def _service_rows(services: List[ChangedService], selected: List[str]) -> List[ServiceRow]:
    return [
        ServiceRow(
            path=s.path,
            has_build_recipe=s.has_build_recipe,
            selected=s.path in selected,
            selectable=s.has_build_recipe,
            note=None if s.has_build_recipe else "No Dockerfile",
        )
        for s in services
    ]


def _missing(attempted: bool, value: str, message: str) -> Optional[str]:
    return message if attempted and not value else None


def project_workflow(store: WorkflowStateStore) -> WorkflowView:
    state = store.state
    arbiter = store.arbiter
    has_repo = state.selected_repo is not None
    busy = state.detecting

    branch_enabled = arbiter.is_enabled(ComparisonMode.BRANCH) and not state.loading_branches
    commit_enabled = arbiter.is_enabled(ComparisonMode.COMMIT)

    can_detect_branches = (
        has_repo
        and branch_enabled
        and not busy
        and bool(state.base_branch)
        and bool(state.current_branch)
        and state.base_branch != state.current_branch
    )
    can_detect_commits = (
        has_repo
        and commit_enabled
        and not busy
        and bool(state.base_commit)
        and bool(state.current_commit)
        and state.base_commit != state.current_commit
    )

    if state.changed_services is None:
        result_mode = "not_run"
        rows: List[ServiceRow] = []
    elif not state.changed_services:
        result_mode = "empty"
        rows = []
    else:
        result_mode = "services"
        rows = _service_rows(state.changed_services, store.selected_services)

    can_build = (
        not store.building
        and not busy
        and result_mode == "services"
        and bool(store.selected_services)
        and store.resolved_ref is not None
    )

    return WorkflowView(
        repository_label=state.selected_repo.display_name if has_repo else None,
        repositories_empty=not state.repositories,
        branch_inputs_enabled=has_repo and branch_enabled,
        commit_inputs_enabled=has_repo and commit_enabled,
        base_branch_options=_branch_options(store.base_branch_options, state.loading_branches, "Select base branch"),
        current_branch_options=_branch_options(
            store.current_branch_options, state.loading_branches, "Select current branch"
        ),
        base_branch_error=_missing(state.branch_validation_attempted, state.base_branch, "Base branch is required"),
        current_branch_error=_missing(
            state.branch_validation_attempted, state.current_branch, "Current branch is required"
        ),
        base_commit_error=_missing(state.commit_validation_attempted, state.base_commit, "Base commit is required"),
        current_commit_error=_missing(
            state.commit_validation_attempted, state.current_commit, "Current commit is required"
        ),
        commits=store.commits.visible,
        remaining_commits=store.commits.remaining,
        can_detect_branches=can_detect_branches,
        can_detect_commits=can_detect_commits,
        can_clear_branches=not busy and arbiter.is_enabled(ComparisonMode.BRANCH),
        can_clear_commits=not busy and arbiter.is_enabled(ComparisonMode.COMMIT),
        detecting=busy,
        result_mode=result_mode,
        services=rows,
        can_toggle_all=result_mode == "services" and bool(store.selection.buildable) and not store.building,
        all_selected=store.selection.all_selected,
        can_build=can_build,
        building=store.building,
        build_ref=store.resolved_ref,
        validation_message=state.validation_message,
    )
