"""Shared API client used by every resource client.

Wraps a RequestExecutor with verb helpers and applies response shaping
to reads.
"""

import logging
from typing import Any, Optional

from basincli.domain.errors import ApiError, NetworkError, ValidationError
from basincli.domain.models.api import RequestSpec, ShapingOptions
from basincli.domain.models.common import QueryParams, ResponseEnvelope
from basincli.infrastructure.http.request_executor import RequestExecutor
from basincli.infrastructure.shaping.response_shaper import shape_response

logger = logging.getLogger(__name__)

PING_ENDPOINT = "/api/ping"


def require(value: Any, field_name: str, *hints: str) -> str:
    """Returns value as a stripped string, raising ValidationError if it is empty."""
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(f"{field_name} is required", field=field_name, errors=list(hints))
    return text


def numeric_id(value: str, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field_name} must be numeric: {value}", field=field_name) from e


class ApiClient:
    """Verb helpers over one RequestExecutor."""

    def __init__(self, executor: RequestExecutor):
        self.executor = executor

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[QueryParams] = None,
        body: Any = None,
        **options: Any
    ) -> ResponseEnvelope:
        """Builds a RequestSpec and executes it.

        Extra keyword options (timeout, retries, retry_delay, skip_auth,
        debug, headers) are passed through to RequestSpec.
        """
        spec = RequestSpec(method=method, path=path, params=params, body=body, **options)
        return await self.executor.execute(spec)

    async def get(
        self,
        path: str,
        params: Optional[QueryParams] = None,
        shaping: Optional[ShapingOptions] = None,
        **options: Any
    ) -> ResponseEnvelope:
        data = await self.request("GET", path, params=params, **options)
        return shape_response(data, shaping)

    async def post(self, path: str, body: Any = None, **options: Any) -> ResponseEnvelope:
        return await self.request("POST", path, body=body, **options)

    async def put(self, path: str, body: Any = None, **options: Any) -> ResponseEnvelope:
        return await self.request("PUT", path, body=body, **options)

    async def delete(self, path: str, body: Any = None, **options: Any) -> ResponseEnvelope:
        return await self.request("DELETE", path, body=body, **options)

    async def ping(self) -> bool:
        """True when the API answers the unauthenticated ping endpoint."""
        try:
            await self.get(PING_ENDPOINT, skip_auth=True)
            return True
        except (ApiError, NetworkError) as e:
            logger.info(f"Ping failed: {e.message}")
            return False
