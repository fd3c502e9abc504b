"""
Image management for connected registries.

Every action is gated on the registry's connectivity: while a registry's
monitor is not connected nothing is sent and the operator is told the
registry is offline. Copying needs both registries to be connected.

Like the workflow store, public methods resolve failures to notifications
and a None/False result instead of raising.
"""

import logging
from typing import Callable, List, Optional

from cidash.api import RegistryApi
from cidash.core.tracing import start_operation
from cidash.dtos import CopyImageRequest, DockerImage, DockerImageDetail, RetagImageRequest
from cidash.services.exceptions import DashboardError, RegistryOffline
from cidash.services.notification_service import Notifier

logger = logging.getLogger(__name__)


class RegistryImageManager:
    def __init__(
        self,
        api: RegistryApi,
        is_usable: Callable[[int], bool],
        notifier: Optional[Notifier] = None,
    ):
        self.api = api
        self.is_usable = is_usable
        self.notifier = notifier or Notifier()

    def _ensure_usable(self, *registry_ids: int) -> bool:
        for registry_id in registry_ids:
            if not self.is_usable(registry_id):
                failure = RegistryOffline(registry_id)
                logger.info(f"Image action blocked: {failure.message}")
                self.notifier.error(failure.title, failure.message)
                return False
        return True

    async def list_images(self, registry_id: int) -> Optional[List[DockerImage]]:
        if not self._ensure_usable(registry_id):
            return None
        start_operation("list_images", registry_id=str(registry_id))
        try:
            images = await self.api.list_images(registry_id)
        except DashboardError as e:
            self.notifier.error("Error Fetching Images", e.message)
            return None
        logger.info(f"Registry {registry_id}: {len(images)} images")
        return images

    async def image_detail(self, registry_id: int, image: str, tag: str) -> Optional[DockerImageDetail]:
        if not self._ensure_usable(registry_id):
            return None
        start_operation("image_detail", registry_id=str(registry_id))
        try:
            return await self.api.get_image_detail(registry_id, image, tag)
        except DashboardError as e:
            self.notifier.error("Error Fetching Image", e.message)
            return None

    async def retag(
        self,
        registry_id: int,
        image: str,
        tag: str,
        new_tag: str,
        new_image: Optional[str] = None,
    ) -> bool:
        """Add `new_tag` (optionally under another repository name) to an existing image."""
        if not self._ensure_usable(registry_id):
            return False
        request = RetagImageRequest(
            source_image=image,
            source_tag=tag,
            destination_image=new_image or image,
            destination_tag=new_tag,
        )
        start_operation("retag_image", registry_id=str(registry_id))
        try:
            await self.api.retag_image(registry_id, request)
        except DashboardError as e:
            self.notifier.error("Retag Failed", e.message)
            return False
        self.notifier.success(
            "Image Retagged",
            f"{image}:{tag} -> {request.destination_image}:{request.destination_tag}",
        )
        return True

    async def delete(self, registry_id: int, image: str, tag: str) -> bool:
        if not self._ensure_usable(registry_id):
            return False
        start_operation("delete_image", registry_id=str(registry_id))
        try:
            await self.api.delete_image(registry_id, image, tag)
        except DashboardError as e:
            self.notifier.error("Delete Failed", e.message)
            return False
        self.notifier.success("Image Deleted", f"{image}:{tag}")
        return True

    async def copy(
        self,
        source_registry_id: int,
        image: str,
        tag: str,
        destination_registry_id: int,
        destination_image: Optional[str] = None,
        destination_tag: Optional[str] = None,
    ) -> bool:
        if not self._ensure_usable(source_registry_id, destination_registry_id):
            return False
        request = CopyImageRequest(
            source_registry_id=source_registry_id,
            source_image=image,
            source_tag=tag,
            destination_registry_id=destination_registry_id,
            destination_image=destination_image or image,
            destination_tag=destination_tag or tag,
        )
        start_operation("copy_image", registry_id=str(source_registry_id))
        try:
            await self.api.copy_image(request)
        except DashboardError as e:
            self.notifier.error("Copy Failed", e.message)
            return False
        self.notifier.success(
            "Image Copied",
            f"{image}:{tag} -> registry {destination_registry_id} "
            f"{request.destination_image}:{request.destination_tag}",
        )
        return True
