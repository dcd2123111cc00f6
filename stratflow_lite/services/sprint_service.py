"""Sprint data access for the agile-project tracker."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import TypeAdapter

from stratflow_lite.models import Sprint
from stratflow_lite.services.base_service import CachedResourceService

logger = logging.getLogger(__name__)

_SPRINT_LIST = TypeAdapter(list[Sprint])

LIST_KEY = "allSprints"


class SprintService(CachedResourceService):
    service_name = "SprintService"

    async def get_all_sprints(self) -> list[Sprint]:
        async def fetch() -> list[Sprint]:
            sprints = _SPRINT_LIST.validate_python(await self.api.get("/sprints"))
            logger.debug("Found %d sprints", len(sprints))
            return sprints

        return await self._cached_get(LIST_KEY, "get_all_sprints", "fetch sprints", fetch)

    async def get_sprint(self, sprint_id: str) -> Sprint:
        async def fetch() -> Sprint:
            return Sprint.model_validate(await self.api.get(f"/sprints/{sprint_id}"))

        return await self._cached_get(f"sprint:{sprint_id}", "get_sprint", "fetch sprint", fetch)

    async def get_sprints_by_project(self, project_id: str) -> list[Sprint]:
        async def fetch() -> list[Sprint]:
            return _SPRINT_LIST.validate_python(await self.api.get(f"/projects/{project_id}/sprints"))

        return await self._cached_get(
            f"projectSprints:{project_id}", "get_sprints_by_project", "fetch project sprints", fetch
        )

    async def create_sprint(self, sprint_data: dict[str, Any]) -> Sprint:
        async with self._failure_context("create_sprint", "create sprint"):
            sprint = Sprint.model_validate(await self.api.post("/sprints", json=sprint_data))
        self._invalidate(LIST_KEY)
        if sprint.project:
            self._invalidate(f"projectSprints:{sprint.project}")
        return sprint

    async def update_sprint(self, sprint_id: str, sprint_data: dict[str, Any]) -> Sprint:
        async with self._failure_context("update_sprint", "update sprint"):
            sprint = Sprint.model_validate(await self.api.put(f"/sprints/{sprint_id}", json=sprint_data))
        self._invalidate(LIST_KEY, f"sprint:{sprint_id}")
        self._invalidate_prefix("projectSprints:")
        return sprint

    async def delete_sprint(self, sprint_id: str) -> None:
        async with self._failure_context("delete_sprint", "delete sprint"):
            await self.api.delete(f"/sprints/{sprint_id}")
        self._invalidate(LIST_KEY, f"sprint:{sprint_id}")
        self._invalidate_prefix("projectSprints:")

    def refresh_sprint_cache(self, sprint_id: Optional[str] = None) -> None:
        """Drop cached sprint data; everything when no id is given."""
        if sprint_id is None:
            self.cache.clear()
            return
        self._invalidate(LIST_KEY, f"sprint:{sprint_id}")
