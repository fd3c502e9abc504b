"""Changed services reported by change detection."""

from pydantic import BaseModel, ConfigDict, Field


class ChangedService(BaseModel):
    """A sub-project directory that differs between two references."""

    path: str
    has_build_recipe: bool = Field(default=False, alias="hasDockerfile")

    model_config = ConfigDict(populate_by_name=True, frozen=True)
