import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..core.exceptions import MalformedResponse, TransportFailure
from ..core.models import ReasoningRequest, ReasoningResponse

logger = logging.getLogger(__name__)


class ReasoningClient:
    """
    Single-shot JSON client for the remote reasoning service.

    One POST per exchange, no retry: a failed exchange is repeated only when
    the user submits again.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings
        client_kwargs = {
            "timeout": httpx.Timeout(settings.http_timeout),
            "headers": {"Content-Type": "application/json"},
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        elif settings.proxy_url:
            client_kwargs["proxy"] = settings.proxy_url

        self._http_client = httpx.AsyncClient(**client_kwargs)

    async def close(self) -> None:
        await self._http_client.aclose()

    async def __aenter__(self) -> 'ReasoningClient':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def ask(self, request: ReasoningRequest) -> ReasoningResponse:
        url = self.settings.reasoning_service_url
        try:
            response = await self._http_client.post(url, json=request.to_wire())
        except httpx.HTTPError as e:
            logger.warning(f"Reasoning request to {url} failed: {e}")
            raise TransportFailure(f"AI request error: {e}", url=url) from e

        if not response.is_success:
            logger.warning(f"Reasoning service answered {response.status_code}")
            raise TransportFailure(
                f"AI request failed ({response.status_code})",
                url=url,
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(
                f"AI request error: response is not JSON ({e})",
                url=url,
                status_code=response.status_code
            ) from e

        try:
            return ReasoningResponse.model_validate(data)
        except ValidationError as e:
            raise MalformedResponse(
                "AI request error: response has no string 'answer'",
                url=url,
                status_code=response.status_code
            ) from e
