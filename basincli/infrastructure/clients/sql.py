"""Catalog discovery and SQL execution through a connector."""

import json
import logging
from typing import Any, Dict, List, Optional

from basincli.domain.errors import ApiError, ValidationError
from basincli.domain.models.common import ResponseEnvelope
from basincli.infrastructure.clients.base import ApiClient, require

logger = logging.getLogger(__name__)


def _decode_listing(response: ResponseEnvelope, key: str, endpoint: str) -> List[Any]:
    """Returns response[key], decoding the body first if it arrived double-encoded."""
    if isinstance(response, str):
        logger.debug(f"Double-encoded JSON from {endpoint}, decoding.")
        try:
            response = json.loads(response)
        except ValueError as e:
            raise ApiError(f"Invalid JSON response: {e}", 200, endpoint, response_body=response[:100]) from e
    if not isinstance(response, dict) or not isinstance(response.get(key), list):
        raise ApiError(f"Response missing expected '{key}' array", 200, endpoint, response_body=response)
    return response[key]


class SqlClient:
    def __init__(self, api: ApiClient):
        self.api = api

    async def list_catalogs(self, connector_id: str) -> List[Dict[str, Any]]:
        connector_id = require(connector_id, "connectorId")
        endpoint = f"/api/v2/connector/catalogs/{connector_id}"
        names = _decode_listing(await self.api.get(endpoint), "catalogs", endpoint)
        return [{"name": name} for name in names]

    async def list_schemas(self, connector_id: str, catalog: Optional[str] = None) -> List[Dict[str, Any]]:
        connector_id = require(connector_id, "connectorId")
        endpoint = f"/api/v2/connector/schemas/{connector_id}"
        names = _decode_listing(await self.api.get(endpoint, params={"catalog": catalog or None}), "schemas", endpoint)
        return [{"name": name, "catalog": catalog} for name in names]

    async def list_tables(
        self, connector_id: str, catalog: Optional[str] = None, schema: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Lists tables; entries may come back as bare names or {name, type} objects."""
        connector_id = require(connector_id, "connectorId")
        endpoint = f"/api/v2/connector/tables/{connector_id}"
        params = [("catalog", catalog or None), ("schema", schema or None)]
        objects = _decode_listing(await self.api.get(endpoint, params=params), "objects", endpoint)

        tables = []
        for item in objects:
            if isinstance(item, dict):
                name, table_type = item.get("name"), item.get("type") or "TABLE"
            else:
                name, table_type = item, "TABLE"
            tables.append({"name": name, "type": table_type, "catalog": catalog, "schema": schema})
        return tables

    async def execute_query(self, connector_id: str, query: str) -> ResponseEnvelope:
        """Runs SQL on the connector.

        Raises:
            ValidationError: If the query is empty or the server reports an in-band failure.
        """
        connector_id = require(connector_id, "connectorId")
        query = require(query, "sql")
        response = await self.api.post(f"/api/connector/{connector_id}/query", {"sql": query})
        if isinstance(response, dict) and not response.get("success") and response.get("error"):
            raise ValidationError(f"Query failed: {response['error']}", field="sql")
        return response
