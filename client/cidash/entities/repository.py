"""Repository, branch and commit records as returned by the backend."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Repository(BaseModel):
    """A cloned repository known to the backend."""

    id: int
    url: str
    name: str = ""
    description: str = ""
    local_path: Optional[str] = Field(default=None, alias="localPath")
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    current_branch: Optional[str] = Field(default=None, alias="currentBranch")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def display_name(self) -> str:
        return self.name or self.url


class Branch(BaseModel):
    """
    Snapshot of one branch.

    Names are unique within the local or the remote partition only, so a
    local `main` and a remote `main` may both be present.
    """

    name: str
    is_current: bool = Field(default=False, alias="isCurrent")
    is_remote: bool = Field(default=False, alias="isRemote")
    last_commit: str = Field(default="", alias="lastCommit")
    last_commit_date: Optional[datetime] = Field(default=None, alias="lastCommitDate")
    remote_name: Optional[str] = Field(default=None, alias="remoteName")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Commit(BaseModel):
    """One commit of a branch history, newest first as served."""

    hash: str
    message: str = ""
    author: str = ""
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @property
    def short_hash(self) -> str:
        return self.hash[:7]
