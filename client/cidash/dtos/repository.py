"""Repository management DTOs"""

from typing import List

from pydantic import BaseModel, field_validator

from cidash.entities import Commit, Repository


class RepositoryListResponse(BaseModel):
    repositories: List[Repository]

    @field_validator("repositories", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return [] if value is None else value


class CloneRepositoryRequest(BaseModel):
    url: str
    name: str
    description: str = ""


class CheckoutBranchRequest(BaseModel):
    branch: str


class CommitListResponse(BaseModel):
    """The commits endpoint returns a bare array; it is wrapped before validation."""

    commits: List[Commit]

    @field_validator("commits", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return [] if value is None else value
