"""Outbound HTTP transport to courier APIs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from fastapi_logistics.exceptions import ProviderUnavailable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class CourierResponse:
    """Status and decoded body of a non-5xx courier response."""

    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class CourierClient:
    """Thin httpx wrapper with token auth and a bounded timeout.

    Transport failures, timeouts and 5xx responses raise
    :class:`ProviderUnavailable`. Every other response is returned so
    the adapter can classify error bodies itself.
    """

    def __init__(
        self,
        *,
        provider: str,
        base_url: str,
        token: str | None = None,
        auth_scheme: str = "Token",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.provider = provider
        self.base_url = base_url.rstrip("/") + "/"
        self.token = token
        self.auth_scheme = auth_scheme
        self.timeout = timeout or DEFAULT_TIMEOUT_SECONDS
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"{self.auth_scheme} {self.token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> CourierResponse:
        url = path.lstrip("/")
        logger.debug(
            "%s %s %s%s payload=%s",
            self.provider,
            method,
            self.base_url,
            url,
            json,
        )
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=httpx.Timeout(self.timeout),
                transport=self.transport,
            ) as client:
                response = await client.request(
                    method, url, json=json, params=params
                )
        except httpx.TimeoutException as exc:
            raise ProviderUnavailable(
                f"{self.provider} did not respond within {self.timeout:g}s",
                provider=self.provider,
            ) from exc
        except httpx.TransportError as exc:
            raise ProviderUnavailable(
                f"Could not reach {self.provider}: {exc}",
                provider=self.provider,
            ) from exc

        body = _decode_body(response)
        logger.debug(
            "%s responded %s: %s", self.provider, response.status_code, body
        )
        if response.status_code >= 500:
            raise ProviderUnavailable(
                f"{self.provider} returned HTTP {response.status_code}",
                provider=self.provider,
                http_status=response.status_code,
            )
        return CourierResponse(status_code=response.status_code, body=body)

    async def get(
        self, path: str, *, params: dict[str, Any] | None = None
    ) -> CourierResponse:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, *, json: Any = None) -> CourierResponse:
        return await self.request("POST", path, json=json)


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
