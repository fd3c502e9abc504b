"""Ask the backend which services differ between two references."""

import logging
from typing import List

from cidash.api import ImageBuilderApi
from cidash.dtos import DetectChangesRequest, DetectCommitChangesRequest
from cidash.entities import ChangedService
from cidash.services.exceptions import ValidationFailure

logger = logging.getLogger(__name__)


def validate_ref_pair(repo_url: str, base: str, current: str, kind: str) -> None:
    """
    Reject a comparison before it reaches the network.

    Missing repository or reference comes first, so two empty references
    report as missing rather than identical.
    """
    if not repo_url or not base or not current:
        if kind == "branch":
            message = "Please select a repository and both branches to compare"
        else:
            message = "Please select a repository and provide both commit hashes"
        raise ValidationFailure(message, title="Missing Selection")

    if base == current:
        if kind == "branch":
            message = "Please select different branches to compare"
        else:
            message = "Please provide different commit hashes to compare"
        raise ValidationFailure(message, title="Invalid Selection")


class ChangeDetectionClient:
    """
    Validated change detection.

    Both operations raise ValidationFailure without any network call when the
    reference pair is incomplete or identical, and propagate NetworkFailure /
    BackendRejection / ProtocolFailure from the API otherwise. An empty list
    means the references differ in no service.
    """

    def __init__(self, api: ImageBuilderApi):
        self.api = api

    async def detect_by_branches(
        self, repo_url: str, base_branch: str, current_branch: str
    ) -> List[ChangedService]:
        validate_ref_pair(repo_url, base_branch, current_branch, "branch")
        logger.info(f"Detecting changes in {repo_url} between branches '{base_branch}' and '{current_branch}'")
        services = await self.api.detect_changes(
            DetectChangesRequest(url=repo_url, base_branch=base_branch, current_branch=current_branch)
        )
        logger.info(f"Found {len(services)} changed service(s)")
        return services

    async def detect_by_commits(
        self, repo_url: str, base_commit: str, current_commit: str
    ) -> List[ChangedService]:
        validate_ref_pair(repo_url, base_commit, current_commit, "commit")
        logger.info(f"Detecting changes in {repo_url} between commits {base_commit[:7]} and {current_commit[:7]}")
        services = await self.api.detect_commit_changes(
            DetectCommitChangesRequest(url=repo_url, base_commit=base_commit, current_commit=current_commit)
        )
        logger.info(f"Found {len(services)} changed service(s)")
        return services
