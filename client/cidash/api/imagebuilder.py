"""Image builder endpoints: branch listing, change detection and multi-service builds."""

from typing import List

from cidash.api.client import ApiClient, parse_payload
from cidash.dtos import (
    BranchListResponse,
    BuildMultipleRequest,
    BuildMultipleResponse,
    DetectChangesRequest,
    DetectChangesResponse,
    DetectCommitChangesRequest,
)
from cidash.entities import Branch, ChangedService


class ImageBuilderApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def list_branches(self, url: str) -> List[Branch]:
        payload = await self.client.get(
            "/imagebuilder/branches",
            params={"url": url},
            fallback_error="Failed to fetch repository branches",
        )
        return parse_payload(BranchListResponse, payload, "branch").branches

    async def detect_changes(self, request: DetectChangesRequest) -> List[ChangedService]:
        payload = await self.client.post(
            "/imagebuilder/detect-changes",
            json=request.model_dump(by_alias=True),
            fallback_error="Failed to detect changes between branches",
        )
        return parse_payload(DetectChangesResponse, payload or {}, "change detection").changed_services

    async def detect_commit_changes(self, request: DetectCommitChangesRequest) -> List[ChangedService]:
        payload = await self.client.post(
            "/imagebuilder/detect-commit-changes",
            json=request.model_dump(by_alias=True),
            fallback_error="Failed to detect changes between commits",
        )
        return parse_payload(DetectChangesResponse, payload or {}, "change detection").changed_services

    async def build_multiple(self, request: BuildMultipleRequest) -> BuildMultipleResponse:
        payload = await self.client.post(
            "/imagebuilder/build-multiple",
            json=request.model_dump(by_alias=True),
            fallback_error="Failed to build images",
        )
        return parse_payload(BuildMultipleResponse, payload or {}, "build")
