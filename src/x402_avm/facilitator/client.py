"""HTTP-based facilitator client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from x402_avm.types import (
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    SupportedResponse,
    VerifyResponse,
)

DEFAULT_FACILITATOR_URL = "http://localhost:3000/facilitator"


@dataclass
class FacilitatorConfig:
    """Configuration for the HTTP facilitator client."""

    url: str = DEFAULT_FACILITATOR_URL
    timeout: float = 30.0
    http_client: Optional[httpx.AsyncClient] = None
    # Returns {"verify": {...}, "settle": {...}, "supported": {...}} headers
    create_headers: Optional[Callable[[], dict[str, dict[str, str]]]] = None


class HTTPFacilitatorClient:
    """Talks to a remote facilitator exposing /verify, /settle and /supported."""

    def __init__(self, config: FacilitatorConfig | dict[str, Any] | None = None) -> None:
        if isinstance(config, dict):
            config = FacilitatorConfig(**config)
        config = config or FacilitatorConfig()

        self._url = config.url.rstrip("/")
        self._timeout = config.timeout
        self._create_headers = config.create_headers
        self._http_client = config.http_client
        self._owns_client = config.http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._timeout, follow_redirects=True
            )
        return self._http_client

    def _headers(self, endpoint: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._create_headers:
            headers.update(self._create_headers().get(endpoint, {}))
        return headers

    async def aclose(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def url(self) -> str:
        return self._url

    async def verify(
        self, payload: PaymentPayload, requirements: PaymentRequirements
    ) -> VerifyResponse:
        """Verify a payment with the facilitator.

        Raises:
            httpx.HTTPError: If request fails.
            ValueError: If the facilitator answers with a non-200 status.
        """
        data = await self._post("verify", payload, requirements)
        return VerifyResponse.model_validate(data)

    async def settle(
        self, payload: PaymentPayload, requirements: PaymentRequirements
    ) -> SettleResponse:
        """Settle a payment with the facilitator.

        Raises:
            httpx.HTTPError: If request fails.
            ValueError: If the facilitator answers with a non-200 status.
        """
        data = await self._post("settle", payload, requirements)
        return SettleResponse.model_validate(data)

    async def supported(self) -> SupportedResponse:
        """Get supported payment kinds."""
        response = await self._get_client().get(
            f"{self._url}/supported", headers=self._headers("supported")
        )
        if response.status_code != 200:
            raise ValueError(
                f"Facilitator supported failed ({response.status_code}): {response.text}"
            )
        return SupportedResponse.model_validate(response.json())

    async def _post(
        self,
        endpoint: str,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> dict[str, Any]:
        request_body = {
            "x402Version": payload.x402_version,
            "paymentPayload": payload.model_dump(
                by_alias=True, exclude_none=True, mode="json"
            ),
            "paymentRequirements": requirements.model_dump(
                by_alias=True, exclude_none=True, mode="json"
            ),
        }
        response = await self._get_client().post(
            f"{self._url}/{endpoint}",
            headers=self._headers(endpoint),
            json=request_body,
        )
        if response.status_code != 200:
            raise ValueError(
                f"Facilitator {endpoint} failed ({response.status_code}): {response.text}"
            )
        return response.json()
