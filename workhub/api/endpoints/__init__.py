from .apps import router as apps_router
from .github import router as github_router
from .health import router as health_router

__all__ = ["apps_router", "github_router", "health_router"]
