"""Async HTTP client for the randomuser.me directory."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from userdex.schemas.user import RandomUserResponse, UserRecord
from userdex.settings import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_RANDOMUSER_BASE_URL,
    DEFAULT_USER_AGENT,
)

logger = logging.getLogger(__name__)


class RemoteDirectoryError(Exception):
    """Transport, HTTP status or decoding failure reported by the remote source."""


@runtime_checkable
class RemoteDirectorySource(Protocol):
    async def fetch(
        self,
        *,
        results_per_page: int,
        page: int,
        nationality: str | None = None,
        seed: str | None = None,
    ) -> list[UserRecord]:
        ...


class RandomUserClient:
    """Fetch a single page of records, exactly as requested, without retries."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_RANDOMUSER_BASE_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
        )

    async def fetch(
        self,
        *,
        results_per_page: int,
        page: int,
        nationality: str | None = None,
        seed: str | None = None,
    ) -> list[UserRecord]:
        if results_per_page < 1 or page < 1:
            raise ValueError("results_per_page and page must be positive integers")

        params: dict[str, str | int] = {"results": results_per_page, "page": page}
        if nationality:
            params["nat"] = nationality
        if seed:
            params["seed"] = seed

        try:
            response = await self._client.get(self._base_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise RemoteDirectoryError(
                f"Directory responded with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteDirectoryError(f"Directory request failed: {exc}") from exc
        except ValueError as exc:
            raise RemoteDirectoryError("Directory returned a non-JSON payload") from exc

        if isinstance(payload, dict) and payload.get("error"):
            raise RemoteDirectoryError(f"Directory reported an error: {payload['error']}")

        try:
            decoded = RandomUserResponse.model_validate(payload)
        except ValidationError as exc:
            raise RemoteDirectoryError(
                f"Directory payload failed validation ({exc.error_count()} errors)"
            ) from exc

        logger.debug(
            "Decoded %s records for page %s (seed=%s)",
            len(decoded.results),
            decoded.info.page,
            decoded.info.seed,
        )
        return decoded.results

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RandomUserClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
