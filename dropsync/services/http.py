# dropsync/services/http.py

import logging
from typing import Any, Dict, Optional, Type

import httpx

from dropsync.core.exceptions import (
    APIError,
    NotFoundError,
    TransientAPIError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)


class BearerAPIClient:
    """
    Base for JSON APIs authenticated with a bearer from a ``TokenManager``.

    A 401 invalidates the token and the request is retried exactly once with
    a freshly obtained token; a second 401 raises ``UnauthorizedError``.
    """

    error_class: Type[APIError] = APIError
    timeout: float = 30.0

    def __init__(self, token_manager):
        self.token_manager = token_manager

    def _get_headers(self, token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(self, method: str, url: str, *, json: Any = None,
                       params: Optional[Dict[str, Any]] = None, retry_on_401: bool = True) -> Any:
        token = await self.token_manager.get_valid_token()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    url,
                    headers=self._get_headers(token),
                    json=json,
                    params=params,
                )
        except httpx.RequestError as e:
            logger.error(f"Network error on {method} {url}: {str(e)}")
            raise TransientAPIError(f"Network error on {method} {url}: {str(e)}")

        status = response.status_code
        if status == 401:
            if retry_on_401:
                logger.warning(f"401 from {url}, refreshing token and retrying once")
                self.token_manager.invalidate(token)
                return await self._request(method, url, json=json, params=params, retry_on_401=False)
            raise UnauthorizedError(f"Unauthorized after token refresh: {method} {url}", status)

        if status == 404:
            raise NotFoundError(f"Not found: {method} {url}", status)
        if status >= 500:
            logger.error(f"Server error {status} on {method} {url}: {response.text}")
            raise TransientAPIError(f"Server error {status} on {method} {url}", status)
        if status >= 400:
            logger.error(f"{method} {url} failed: {status} {response.text}")
            raise self.error_class(f"{method} {url} failed: {status} {response.text}", status)

        if not response.text:
            return {}
        return response.json()
