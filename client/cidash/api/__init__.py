"""HTTP client for the CI backend, one class per backend area."""

from .client import ApiClient
from .imagebuilder import ImageBuilderApi
from .registries import RegistryApi
from .repository import RepositoryApi


class BackendApi:
    """Bundle of the per-area clients sharing one connection pool."""

    def __init__(self, client: ApiClient):
        self.client = client
        self.repositories = RepositoryApi(client)
        self.imagebuilder = ImageBuilderApi(client)
        self.registries = RegistryApi(client)

    async def __aenter__(self) -> "BackendApi":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.client.aclose()


__all__ = ["ApiClient", "BackendApi", "ImageBuilderApi", "RegistryApi", "RepositoryApi"]
