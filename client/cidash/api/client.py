"""Async HTTP client for the CI backend."""

from __future__ import annotations

import logging
from typing import Any, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from cidash.api.error_codes import extract_error_message, get_error_code
from cidash.config import settings
from cidash.services.exceptions import BackendRejection, NetworkFailure, ProtocolFailure

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ApiClient:
    """
    Thin wrapper over `httpx.AsyncClient`.

    Transport errors become NetworkFailure, non-2xx responses become
    BackendRejection carrying the backend's own message when the body has one,
    and bodies that are not JSON become ProtocolFailure.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        fallback_error: str,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None when empty)."""
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            logger.warning(f"{method} {path} failed: {exc}")
            raise NetworkFailure(f"{fallback_error}: {exc}") from exc

        if response.is_error:
            payload = _safe_json(response)
            message = extract_error_message(payload) or fallback_error
            error_code = get_error_code(response.status_code)
            logger.warning(f"{method} {path} rejected with {response.status_code} ({error_code.value}): {message}")
            raise BackendRejection(
                message,
                status_code=response.status_code,
                error_code=error_code.value,
                payload=payload,
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as exc:
            raise ProtocolFailure(f"{fallback_error}: response is not valid JSON") from exc

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)


def parse_payload(model: Type[ModelT], payload: Any, what: str) -> ModelT:
    """Validate a decoded body against a DTO, mapping shape errors to ProtocolFailure."""
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        logger.error(f"Unexpected {what} payload: {exc}")
        raise ProtocolFailure(f"Invalid {what} data received") from exc


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
