"""Repository management endpoints."""

from typing import List

from cidash.api.client import ApiClient, parse_payload
from cidash.dtos import (
    BranchListResponse,
    CheckoutBranchRequest,
    CloneRepositoryRequest,
    CommitListResponse,
    RepositoryListResponse,
)
from cidash.entities import Branch, Commit, Repository


class RepositoryApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def list_repositories(self) -> List[Repository]:
        payload = await self.client.get("/repository/list", fallback_error="Failed to fetch repositories")
        return parse_payload(RepositoryListResponse, payload, "repository list").repositories

    async def get_repository(self, repo_id: int) -> Repository:
        payload = await self.client.get(f"/repository/{repo_id}", fallback_error="Failed to fetch repository")
        return parse_payload(Repository, payload, "repository")

    async def clone_repository(self, request: CloneRepositoryRequest) -> Repository:
        payload = await self.client.post(
            "/repository/clone",
            json=request.model_dump(),
            fallback_error="Failed to clone repository",
        )
        return parse_payload(Repository, payload, "repository")

    async def delete_repository(self, repo_id: int) -> None:
        await self.client.delete(f"/repository/{repo_id}", fallback_error="Failed to delete repository")

    async def checkout_branch(self, repo_id: int, branch: str) -> None:
        await self.client.post(
            f"/repository/{repo_id}/checkout",
            json=CheckoutBranchRequest(branch=branch).model_dump(),
            fallback_error="Failed to checkout branch",
        )

    async def get_branch_commits(self, repo_id: int, branch: str) -> List[Commit]:
        payload = await self.client.get(
            f"/repository/{repo_id}/commits",
            params={"branch": branch},
            fallback_error="Failed to fetch branch commits",
        )
        return parse_payload(CommitListResponse, {"commits": payload}, "commit list").commits

    async def sync_repository(self, repo_id: int) -> None:
        await self.client.post(f"/repository/{repo_id}/sync", fallback_error="Failed to sync repository")

    async def get_repository_branches(self, repo_id: int) -> List[Branch]:
        """Resolve the repository's URL, then ask the image builder for its branches."""
        repo = await self.get_repository(repo_id)
        payload = await self.client.get(
            "/imagebuilder/branches",
            params={"url": repo.url},
            fallback_error="Failed to fetch repository branches",
        )
        return parse_payload(BranchListResponse, payload, "branch").branches
