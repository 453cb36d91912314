"""Pipeline listing, CRUD and manual runs."""

import logging
from typing import Any, Dict, Optional

from basincli.domain.errors import ApiError, ValidationError
from basincli.domain.models.api import ShapingOptions
from basincli.domain.models.common import ResponseEnvelope
from basincli.infrastructure.clients.base import ApiClient, numeric_id, require

logger = logging.getLogger(__name__)


class PipelinesClient:
    def __init__(self, api: ApiClient):
        self.api = api

    async def list(self, project_id: str, shaping: Optional[ShapingOptions] = None) -> ResponseEnvelope:
        """Lists the pipelines of one project.

        The endpoint needs the project's internal ID, its institution ID and
        the caller's user ID, so the project and the account are fetched first.

        Args:
            project_id: Numeric project ID or project internal ID.
            shaping: Shaping options for the pipeline list.

        Raises:
            ValidationError: If the project is missing, unknown, or incomplete.
            ApiError: If the projects or account response has the wrong shape.
        """
        project_id = require(
            project_id, "projectId",
            "Provide a valid project ID with --project (e.g. 'N1r8Do')",
        )

        projects = await self.api.get("/api/my/projects") or []
        if not isinstance(projects, list):
            raise ApiError("Response missing expected projects array", 200, "/api/my/projects", response_body=projects)
        project = next(
            (p for p in projects
             if isinstance(p, dict) and (str(p.get("id")) == project_id or p.get("internalId") == project_id)),
            None,
        )
        if project is None:
            raise ValidationError(
                f"Project not found: {project_id}",
                field="projectId",
                errors=["Run 'databasin projects list' to see available projects"],
            )
        if not project.get("institutionId"):
            raise ValidationError("Project is missing institutionID", field="institutionId")

        user = await self.api.get("/api/my/account") or {}
        if not isinstance(user, dict):
            raise ApiError("Response missing expected account object", 200, "/api/my/account", response_body=user)
        if not user.get("id"):
            raise ValidationError("User account is missing ID", field="userId")

        params = {
            "internalID": project.get("internalId"),
            "institutionID": project["institutionId"],
            "ownerID": user["id"],
        }
        logger.debug(f"Listing pipelines for project {project_id}")
        return await self.api.get("/api/pipeline", params=params, shaping=shaping)

    async def get_by_id(self, pipeline_id: str) -> ResponseEnvelope:
        pipeline_id = require(pipeline_id, "pipelineId")
        return await self.api.get(f"/api/pipeline/v2/{pipeline_id}")

    async def create(self, data: Dict[str, Any]) -> ResponseEnvelope:
        return await self.api.post("/api/pipeline", data)

    async def update(self, pipeline_id: str, data: Dict[str, Any]) -> ResponseEnvelope:
        pipeline_id = require(pipeline_id, "pipelineId")
        return await self.api.put(f"/api/pipeline/{pipeline_id}", data)

    async def delete_by_id(self, pipeline_id: str) -> ResponseEnvelope:
        pipeline_id = require(pipeline_id, "pipelineId")
        return await self.api.delete(f"/api/pipeline/{pipeline_id}")

    async def run(self, pipeline_id: str) -> ResponseEnvelope:
        """Starts a manual run.

        Raises:
            ValidationError: If the pipeline lacks institutionID, internalID or ownerID.
        """
        pipeline_id = require(pipeline_id, "pipelineId")
        pipeline_number = numeric_id(pipeline_id, "pipelineId")
        pipeline = await self.get_by_id(pipeline_id) or {}
        for key in ("institutionID", "internalID", "ownerID"):
            if not pipeline.get(key):
                raise ValidationError(f"Pipeline is missing {key}", field=key)

        body = {
            "pipelineID": pipeline_number,
            "institutionID": pipeline["institutionID"],
            "internalID": pipeline["internalID"],
            "ownerID": pipeline["ownerID"],
            "jobName": pipeline.get("pipelineName") or f"Pipeline_{pipeline_id}",
            "runType": "manual",
        }
        return await self.api.post("/api/pipeline/run", body)
