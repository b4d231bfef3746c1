from fastapi import APIRouter
from workhub.api.endpoints import apps_router, github_router, health_router

router = APIRouter()

router.include_router(health_router, prefix="/health", tags=["health"])
router.include_router(github_router, prefix="/github", tags=["github"])
router.include_router(apps_router, prefix="/apps/auth", tags=["apps"])
