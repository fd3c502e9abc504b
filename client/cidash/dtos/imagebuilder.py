"""Image builder request/response DTOs"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cidash.entities import Branch, ChangedService


class BranchListResponse(BaseModel):
    branches: List[Branch]

    @field_validator("branches", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return [] if value is None else value


class DetectChangesRequest(BaseModel):
    url: str
    base_branch: str = Field(..., alias="baseBranch")
    current_branch: str = Field(..., alias="currentBranch")

    model_config = ConfigDict(populate_by_name=True)


class DetectCommitChangesRequest(BaseModel):
    url: str
    base_commit: str = Field(..., alias="baseCommit")
    current_commit: str = Field(..., alias="currentCommit")

    model_config = ConfigDict(populate_by_name=True)


class DetectChangesResponse(BaseModel):
    """Shared by branch and commit detection."""

    changed_services: List[ChangedService] = Field(default_factory=list, alias="changedServices")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("changed_services", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        # The backend serializes an empty result as null
        return [] if value is None else value


class BuildMultipleRequest(BaseModel):
    url: str
    branch: str
    service_paths: List[str] = Field(..., alias="servicePaths")
    tag: str
    registry: str

    model_config = ConfigDict(populate_by_name=True)


class ServiceBuildResult(BaseModel):
    service: str
    tag: str = ""
    commit: str = ""
    branch: str = ""
    build_time: Optional[datetime] = Field(default=None, alias="buildTime")
    success: bool = False
    output: Optional[str] = None
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class BuildMultipleResponse(BaseModel):
    message: Optional[str] = None
    results: List[ServiceBuildResult] = Field(default_factory=list)

    @field_validator("results", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return [] if value is None else value
