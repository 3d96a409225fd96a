from typing import Optional

from fastapi import APIRouter

from .dashboard import Dashboard, DashboardModule, ImagesView, PodsView


def create_dashboard_router(dashboard: DashboardModule) -> APIRouter:
    """JSON dashboard routes."""
    router = APIRouter(tags=["dashboard"])

    @router.get("/", response_model=Dashboard)
    async def index() -> Dashboard:
        return await dashboard.index()

    @router.get("/pods/{cluster}", response_model=PodsView)
    async def pods(cluster: str) -> PodsView:
        return await dashboard.pods(cluster)

    @router.get("/images/{name}", response_model=ImagesView)
    @router.get("/images/{name}/{tag}", response_model=ImagesView)
    async def images(name: str, tag: Optional[str] = None) -> ImagesView:
        return await dashboard.images(name, tag)

    return router
