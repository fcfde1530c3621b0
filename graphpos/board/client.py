"""
HTTP client for the order board.

Talks to the orders API with httpx. Any non-2xx answer becomes a
BackendError carrying the status code and the server's message.
"""

import json
import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from graphpos.config import settings

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Erro ao comunicar com o servidor"


class BackendError(Exception):
    """Failed call to the orders API."""
    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Dict] = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


def _error_from_response(response: httpx.Response) -> BackendError:
    """Build a BackendError from the FastAPI error body ({"detail"} or {"error"})."""
    message = None
    details: Dict[str, Any] = {}
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        details = body
        detail = body.get("detail", body.get("error"))
        if isinstance(detail, str):
            message = detail
        elif isinstance(detail, list) and detail:
            message = str(detail[0].get("msg", detail[0])) if isinstance(detail[0], dict) else str(detail[0])
    elif response.text:
        message = response.text

    return BackendError(
        message=message or DEFAULT_ERROR_MESSAGE,
        status_code=response.status_code,
        details=details,
    )


class OrdersApiClient:
    """
    Async client for the board endpoints.

    A client is bound to one user session (bearer token) and optionally
    to a store via X-Tenant-ID.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        tenant_id: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.token = token
        self.tenant_id = tenant_id
        self.timeout = timeout or settings.API_TIMEOUT_SECONDS
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.tenant_id:
            headers["X-Tenant-ID"] = str(self.tenant_id)
        return headers

    def _client(self, timeout: Optional[httpx.Timeout] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=timeout if timeout is not None else self.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        async with self._client() as client:
            try:
                response = await client.request(method, path, **kwargs)
            except httpx.RequestError as e:
                logger.warning("Orders API %s %s failed: %s", method, path, e)
                raise BackendError(message=f"Falha de comunicação com o servidor: {e}")

        if response.is_error:
            error = _error_from_response(response)
            logger.info("Orders API %s %s returned %s: %s", method, path, response.status_code, error.message)
            raise error

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def list_orders(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """Every order of the store, newest first."""
        params = {"search": search} if search else None
        return await self._request("GET", "/orders", params=params)

    async def update_status(
        self,
        order_id: uuid.UUID | str,
        status: str,
        user_id: Optional[uuid.UUID | str] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """PATCH the order status; returns the updated order."""
        payload: Dict[str, Any] = {"status": status}
        if user_id is not None:
            payload["user_id"] = str(user_id)
        if notes:
            payload["notes"] = notes
        return await self._request("PATCH", f"/orders/{order_id}/status", json=payload)

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """Order change events from the SSE endpoint. Comments are skipped."""
        # no read timeout: the stream stays open between events
        async with self._client(timeout=httpx.Timeout(self.timeout, read=None)) as client:
            async with client.stream("GET", "/orders/events") as response:
                if response.is_error:
                    await response.aread()
                    raise _error_from_response(response)

                async for line in response.aiter_lines():
                    if line.startswith("data:"):
                        yield json.loads(line[len("data:"):].strip())
