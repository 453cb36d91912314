"""Connector CRUD and connection tests.

Listing defaults to count mode: the connector listing can hold hundreds
of entries with full credentials metadata.
"""

from typing import Any, Dict, Optional

from basincli.domain.models.api import ShapingOptions
from basincli.domain.models.common import ResponseEnvelope
from basincli.infrastructure.clients.base import ApiClient, require

COUNT_ONLY = ShapingOptions(count=True)


class ConnectorsClient:
    def __init__(self, api: ApiClient):
        self.api = api

    async def list(self, project_id: Optional[str] = None, shaping: Optional[ShapingOptions] = None) -> ResponseEnvelope:
        """Lists connectors, optionally for one project.

        Args:
            project_id: Project internal ID used as the internalID filter.
            shaping: Shaping options; None means count only.
        """
        params = {"internalID": project_id} if project_id else None
        return await self.api.get("/api/connector", params=params, shaping=shaping or COUNT_ONLY)

    async def get_by_id(self, connector_id: str) -> ResponseEnvelope:
        connector_id = require(connector_id, "connectorId")
        return await self.api.get(f"/api/connector/{connector_id}")

    async def create(self, data: Dict[str, Any]) -> ResponseEnvelope:
        return await self.api.post("/api/connector", data)

    async def update(self, connector_id: str, data: Dict[str, Any]) -> ResponseEnvelope:
        connector_id = require(connector_id, "connectorId")
        return await self.api.put(f"/api/connector/{connector_id}", data)

    async def delete_by_id(self, connector_id: str) -> ResponseEnvelope:
        connector_id = require(connector_id, "connectorId")
        return await self.api.delete(f"/api/connector/{connector_id}")

    async def test(self, connector_id: str) -> ResponseEnvelope:
        connector_id = require(connector_id, "connectorId")
        return await self.api.post(f"/api/connector/{connector_id}/test", {})

    async def get_config(self, shaping: Optional[ShapingOptions] = None) -> ResponseEnvelope:
        return await self.api.get("/api/config", shaping=shaping)
