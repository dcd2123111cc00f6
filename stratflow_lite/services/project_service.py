"""Project data access for the agile-project tracker."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import TypeAdapter

from stratflow_lite.models import Project
from stratflow_lite.services.base_service import CachedResourceService

_PROJECT_LIST = TypeAdapter(list[Project])

LIST_KEY = "allProjects"


class ProjectService(CachedResourceService):
    service_name = "ProjectService"

    async def get_all_projects(self) -> list[Project]:
        async def fetch() -> list[Project]:
            return _PROJECT_LIST.validate_python(await self.api.get("/projects"))

        return await self._cached_get(LIST_KEY, "get_all_projects", "fetch projects", fetch)

    async def get_project(self, project_id: str) -> Project:
        async def fetch() -> Project:
            return Project.model_validate(await self.api.get(f"/projects/{project_id}"))

        return await self._cached_get(f"project:{project_id}", "get_project", "fetch project", fetch)

    async def get_project_metrics(self, project_id: str) -> Any:
        async def fetch() -> Any:
            return await self.api.get(f"/projects/{project_id}/metrics")

        return await self._cached_get(
            f"projectMetrics:{project_id}", "get_project_metrics", "fetch project metrics", fetch
        )

    async def create_project(self, project_data: dict[str, Any]) -> Project:
        async with self._failure_context("create_project", "create project"):
            project = Project.model_validate(await self.api.post("/projects", json=project_data))
        self._invalidate(LIST_KEY)
        return project

    async def update_project(self, project_id: str, project_data: dict[str, Any]) -> Project:
        async with self._failure_context("update_project", "update project"):
            project = Project.model_validate(
                await self.api.put(f"/projects/{project_id}", json=project_data)
            )
        self.refresh_project_cache(project_id)
        return project

    async def delete_project(self, project_id: str) -> None:
        async with self._failure_context("delete_project", "delete project"):
            await self.api.delete(f"/projects/{project_id}")
        self.refresh_project_cache(project_id)

    def refresh_project_cache(self, project_id: Optional[str] = None) -> None:
        """Drop the list plus every key of one project, or everything."""
        if project_id is None:
            self.cache.clear()
            return
        self._invalidate(LIST_KEY)
        self.cache.invalidate_matching(lambda key: key.endswith(f":{project_id}"))
