"""Registry DTOs, including the status frames pushed over the streaming channel."""

from typing import Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


class CreateRegistryRequest(BaseModel):
    name: str
    url: str
    username: str
    password: str
    description: Optional[str] = None


class UpdateRegistryRequest(CreateRegistryRequest):
    pass


class ConnectionStatusFrame(BaseModel):
    """One inbound frame of the test-connection channel."""

    status: Literal["connecting", "connected", "success", "failed", "error"]
    message: str = ""
    time: Optional[str] = None


class TestConnectionResult(BaseModel):
    """Body of the one-shot test-connection endpoint."""

    status: Literal["connecting", "connected", "success", "failed", "error"]
    message: str = ""


# Images -------------------------------------------------------------------
#
# The backend serializes image records in snake_case; camelCase is accepted
# as well since older servers sent it.


class DockerImage(BaseModel):
    name: str
    tags: List[str] = Field(default_factory=list)
    size: int = 0
    created_at: str = Field(default="", validation_alias=AliasChoices("created_at", "createdAt"))
    last_updated: str = Field(default="", validation_alias=AliasChoices("last_updated", "lastUpdated"))

    @field_validator("tags", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return [] if value is None else value


class ImageLayer(BaseModel):
    digest: str
    size: int = 0
    created_at: str = Field(default="", validation_alias=AliasChoices("created_at", "createdAt"))


class ImageHistory(BaseModel):
    created: str = ""
    created_by: str = Field(default="", validation_alias=AliasChoices("created_by", "createdBy"))
    comment: str = ""
    empty_layer: bool = Field(default=False, validation_alias=AliasChoices("empty_layer", "emptyLayer"))


class ImageConfig(BaseModel):
    architecture: str = ""
    os: str = ""
    env: List[str] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)

    @field_validator("env", "labels", mode="before")
    @classmethod
    def _null_is_empty(cls, value, info):
        if value is None:
            return [] if info.field_name == "env" else {}
        return value


class DockerImageDetail(DockerImage):
    layers: List[ImageLayer] = Field(default_factory=list)
    history: List[ImageHistory] = Field(default_factory=list)
    config: ImageConfig = Field(default_factory=ImageConfig)
    labels: Dict[str, str] = Field(default_factory=dict)

    @field_validator("layers", "history", mode="before")
    @classmethod
    def _null_list_is_empty(cls, value):
        return [] if value is None else value

    @field_validator("labels", "config", mode="before")
    @classmethod
    def _null_object_is_default(cls, value):
        return {} if value is None else value


class RetagImageRequest(BaseModel):
    source_image: str
    source_tag: str
    destination_image: str
    destination_tag: str


class CopyImageRequest(BaseModel):
    source_registry_id: int
    source_image: str
    source_tag: str
    destination_registry_id: int
    destination_image: str
    destination_tag: str
