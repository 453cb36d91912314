"""Automation listing, CRUD and run/stop control."""

from typing import Any, Dict, Optional

from basincli.domain.models.api import ShapingOptions
from basincli.domain.models.common import ResponseEnvelope
from basincli.infrastructure.clients.base import ApiClient, numeric_id, require


class AutomationsClient:
    def __init__(self, api: ApiClient):
        self.api = api

    async def list(
        self,
        project_id: str,
        active: Optional[bool] = None,
        running: Optional[bool] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        shaping: Optional[ShapingOptions] = None,
    ) -> ResponseEnvelope:
        project_id = require(project_id, "projectId", "Provide a project ID via --project")
        params = [
            ("internalID", project_id),
            ("active", active),
            ("running", running),
            ("sortBy", sort_by),
            ("sortOrder", sort_order),
        ]
        return await self.api.get("/api/automations", params=params, shaping=shaping)

    async def get_by_id(self, automation_id: str) -> ResponseEnvelope:
        automation_id = require(automation_id, "automationId")
        return await self.api.get(f"/api/automations/{automation_id}")

    async def create(self, data: Dict[str, Any]) -> ResponseEnvelope:
        return await self.api.post("/api/automations", data)

    async def update(self, automation_id: str, data: Dict[str, Any]) -> ResponseEnvelope:
        automation_id = require(automation_id, "automationId")
        return await self.api.put(f"/api/automations/{automation_id}", data)

    async def delete_by_id(self, automation_id: str) -> ResponseEnvelope:
        automation_id = require(automation_id, "automationId")
        return await self.api.delete(f"/api/automations/{automation_id}")

    async def run(self, automation_id: str) -> ResponseEnvelope:
        return await self.api.post("/api/automations/run", await self._control_body(automation_id))

    async def stop(self, automation_id: str) -> ResponseEnvelope:
        return await self.api.post("/api/automations/stop", await self._control_body(automation_id))

    async def _control_body(self, automation_id: str) -> Dict[str, Any]:
        automation_id = require(automation_id, "automationId")
        automation_number = numeric_id(automation_id, "automationId")
        automation = await self.get_by_id(automation_id) or {}
        return {
            "automationID": automation_number,
            "institutionID": automation.get("institutionID"),
            "internalID": automation.get("internalID"),
        }
