"""Registry endpoints and the per-registry status channel address."""

import re
from typing import List, Optional
from urllib.parse import quote

from pydantic import BaseModel

from cidash.api.client import ApiClient, parse_payload
from cidash.dtos import (
    CopyImageRequest,
    CreateRegistryRequest,
    DockerImage,
    DockerImageDetail,
    RetagImageRequest,
    TestConnectionResult,
    UpdateRegistryRequest,
)
from cidash.entities import Registry


class _RegistryList(BaseModel):
    registries: List[Registry]


class _ImageList(BaseModel):
    images: List[DockerImage]


class RegistryApi:
    def __init__(self, client: ApiClient, ws_base_url: Optional[str] = None):
        self.client = client
        self.ws_base_url = (ws_base_url or re.sub(r"^http", "ws", client.base_url)).rstrip("/")

    async def list_registries(self) -> List[Registry]:
        payload = await self.client.get("/registries", fallback_error="Failed to fetch registries")
        # Served either as a bare array or wrapped in {"registries": [...]}
        if isinstance(payload, dict):
            payload = payload.get("registries")
        return parse_payload(_RegistryList, {"registries": payload or []}, "registry list").registries

    async def get_registry(self, registry_id: int) -> Registry:
        payload = await self.client.get(f"/registries/{registry_id}", fallback_error="Failed to fetch registry")
        return parse_payload(Registry, payload, "registry")

    async def create_registry(self, request: CreateRegistryRequest) -> Registry:
        payload = await self.client.post(
            "/registries",
            json=request.model_dump(exclude_none=True),
            fallback_error="Failed to create registry",
        )
        return parse_payload(Registry, payload, "registry")

    async def update_registry(self, registry_id: int, request: UpdateRegistryRequest) -> Registry:
        payload = await self.client.put(
            f"/registries/{registry_id}",
            json=request.model_dump(exclude_none=True),
            fallback_error="Failed to update registry",
        )
        return parse_payload(Registry, payload, "registry")

    async def delete_registry(self, registry_id: int) -> None:
        await self.client.delete(f"/registries/{registry_id}", fallback_error="Failed to delete registry")

    async def test_connection(self, registry_id: int) -> TestConnectionResult:
        payload = await self.client.post(
            f"/registries/{registry_id}/test-connection",
            fallback_error="Failed to test registry connection",
        )
        return parse_payload(TestConnectionResult, payload, "connection test")

    def status_channel_url(self, registry_id: int) -> str:
        return f"{self.ws_base_url}/registries/{registry_id}/test-connection-ws"

    # Images ---------------------------------------------------------------

    async def list_images(self, registry_id: int) -> List[DockerImage]:
        payload = await self.client.get(f"/registries/{registry_id}/images", fallback_error="Failed to fetch images")
        if isinstance(payload, dict):
            payload = payload.get("images")
        return parse_payload(_ImageList, {"images": payload or []}, "image list").images

    async def get_image_detail(self, registry_id: int, image: str, tag: str) -> DockerImageDetail:
        payload = await self.client.get(
            f"/registries/{registry_id}/images/{_segment(image)}/{_segment(tag)}",
            fallback_error="Failed to fetch image details",
        )
        return parse_payload(DockerImageDetail, payload, "image detail")

    async def retag_image(self, registry_id: int, request: RetagImageRequest) -> None:
        await self.client.post(
            f"/registries/{registry_id}/images/retag",
            json=request.model_dump(),
            fallback_error="Failed to retag image",
        )

    async def delete_image(self, registry_id: int, image: str, tag: str) -> None:
        await self.client.delete(
            f"/registries/{registry_id}/images/{_segment(image)}/{_segment(tag)}",
            fallback_error="Failed to delete image",
        )

    async def copy_image(self, request: CopyImageRequest) -> None:
        await self.client.post(
            "/registries/images/copy",
            json=request.model_dump(),
            fallback_error="Failed to copy image",
        )


def _segment(value: str) -> str:
    """Image names may contain slashes; they travel as one path segment."""
    return quote(value, safe="")
