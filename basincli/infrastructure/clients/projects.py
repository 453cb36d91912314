"""Projects, organizations and the current user account."""

from typing import Optional

from basincli.domain.models.api import ShapingOptions
from basincli.domain.models.common import ResponseEnvelope
from basincli.infrastructure.clients.base import ApiClient, require


class ProjectsClient:
    def __init__(self, api: ApiClient):
        self.api = api

    async def list(self, shaping: Optional[ShapingOptions] = None) -> ResponseEnvelope:
        return await self.api.get("/api/my/projects", shaping=shaping)

    async def get_by_id(self, project_id: str) -> ResponseEnvelope:
        project_id = require(project_id, "projectId")
        return await self.api.get(f"/api/project/{project_id}")

    async def list_organizations(self, shaping: Optional[ShapingOptions] = None) -> ResponseEnvelope:
        return await self.api.get("/api/my/organizations", shaping=shaping)

    async def get_current_user(self) -> ResponseEnvelope:
        return await self.api.get("/api/my/account")

    async def get_project_users(self, project_id: str, shaping: Optional[ShapingOptions] = None) -> ResponseEnvelope:
        project_id = require(project_id, "projectId")
        return await self.api.get(f"/api/project/{project_id}/users", shaping=shaping)

    async def get_project_stats(self, project_id: str) -> ResponseEnvelope:
        project_id = require(project_id, "projectId")
        return await self.api.get(f"/api/project/{project_id}/stats")
