"""Selection of buildable services and submission of one multi-service build."""

import logging
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from cidash.api import ImageBuilderApi
from cidash.config import settings
from cidash.dtos import BuildMultipleRequest, ServiceBuildResult
from cidash.entities import ChangedService
from cidash.services.exceptions import (
    BackendRejection,
    NetworkFailure,
    ProtocolFailure,
    UnbuildableServiceError,
    ValidationFailure,
)

logger = logging.getLogger(__name__)


class BuildOutcome(BaseModel):
    """Terminal, displayable result of a build submission."""

    accepted: bool
    message: str
    failure: Optional[str] = None  # validation, in_flight, rejected, network, protocol
    results: List[ServiceBuildResult] = Field(default_factory=list)


class ServiceSelection:
    """
    Selected service paths, limited to services that have a Dockerfile.

    Until a detection result is known (e.g. right after restoring persisted
    state) paths are kept as given; once services are set, only buildable
    paths can be selected and "select all" selects exactly those.
    """

    def __init__(self):
        self._services: Optional[Dict[str, ChangedService]] = None
        self._selected: List[str] = []

    def set_services(self, services: Optional[Sequence[ChangedService]]) -> None:
        """Adopt a new detection result; the previous selection is dropped."""
        self._services = None if services is None else {s.path: s for s in services}
        self._selected = []

    def restore(self, paths: Sequence[str]) -> None:
        self._selected = []
        for path in paths:
            if self._services is None or self.is_buildable(path):
                if path not in self._selected:
                    self._selected.append(path)

    def clear(self) -> None:
        self._selected = []

    @property
    def selected(self) -> List[str]:
        return list(self._selected)

    @property
    def buildable(self) -> List[str]:
        if self._services is None:
            return []
        return [path for path, service in self._services.items() if service.has_build_recipe]

    def is_buildable(self, path: str) -> bool:
        if self._services is None:
            return False
        service = self._services.get(path)
        return service is not None and service.has_build_recipe

    def is_selected(self, path: str) -> bool:
        return path in self._selected

    @property
    def all_selected(self) -> bool:
        buildable = self.buildable
        return bool(buildable) and all(path in self._selected for path in buildable)

    def select(self, path: str) -> None:
        if not self.is_buildable(path):
            raise UnbuildableServiceError(
                f"Service '{path}' has no Dockerfile and cannot be built",
                title="Service Not Buildable",
            )
        if path not in self._selected:
            self._selected.append(path)

    def deselect(self, path: str) -> None:
        if path in self._selected:
            self._selected.remove(path)

    def toggle(self, path: str) -> bool:
        """Flip `path` and return whether it is now selected."""
        if self.is_selected(path):
            self.deselect(path)
            return False
        self.select(path)
        return True

    def select_all(self) -> None:
        self._selected = self.buildable

    def deselect_all(self) -> None:
        self._selected = []

    def toggle_all(self) -> None:
        if self.all_selected:
            self.deselect_all()
        else:
            self.select_all()


class BuildOrchestrator:
    """
    Submits one build for a set of services.

    Only one submission may be in flight; a second call while one is
    outstanding is rejected without a request.
    """

    def __init__(self, api: ImageBuilderApi, default_tag: Optional[str] = None):
        self.api = api
        self.default_tag = default_tag or settings.DEFAULT_IMAGE_TAG
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def validate(
        self,
        repo_url: Optional[str],
        resolved_ref: Optional[str],
        service_paths: Sequence[str],
        registry: Optional[str],
    ) -> None:
        if not repo_url or not resolved_ref:
            raise ValidationFailure(
                "Please select a repository and run a comparison before building",
                title="Missing Selection",
            )
        if not service_paths:
            raise ValidationFailure("Please select at least one service to build", title="No Services Selected")
        if not registry:
            raise ValidationFailure("Please provide a destination registry", title="Missing Registry")

    async def submit(
        self,
        repo_url: Optional[str],
        resolved_ref: Optional[str],
        service_paths: Sequence[str],
        tag: Optional[str],
        registry: Optional[str],
    ) -> BuildOutcome:
        if self._in_flight:
            return BuildOutcome(accepted=False, message="A build is already being submitted", failure="in_flight")

        try:
            self.validate(repo_url, resolved_ref, service_paths, registry)
        except ValidationFailure as e:
            logger.info(f"Build rejected locally: {e.message}")
            return BuildOutcome(accepted=False, message=e.message, failure="validation")

        request = BuildMultipleRequest(
            url=repo_url,
            branch=resolved_ref,
            service_paths=list(service_paths),
            tag=tag or self.default_tag,
            registry=registry,
        )

        self._in_flight = True
        logger.info(
            f"Submitting build of {len(request.service_paths)} service(s) from {request.url}@{request.branch} "
            f"to {request.registry} with tag {request.tag}"
        )
        try:
            response = await self.api.build_multiple(request)
        except BackendRejection as e:
            logger.error(f"Build rejected by backend ({e.status_code}): {e.message}")
            return BuildOutcome(accepted=False, message=e.message, failure="rejected")
        except NetworkFailure as e:
            logger.error(f"Build submission failed: {e.message}")
            return BuildOutcome(accepted=False, message=e.message, failure="network")
        except ProtocolFailure as e:
            logger.error(f"Unexpected build response: {e.message}")
            return BuildOutcome(accepted=False, message=e.message, failure="protocol")
        finally:
            self._in_flight = False

        message = response.message or f"Build submitted for {len(request.service_paths)} service(s)"
        logger.info(f"Build accepted: {message}")
        return BuildOutcome(accepted=True, message=message, results=response.results)
