"""Admin routes package."""

from src.admin.routes.auth import router as auth_router
from src.admin.routes.config import router as config_router
from src.admin.routes.history import router as history_router
from src.admin.routes.logs import router as logs_router
from src.admin.routes.runners import router as runners_router
from src.admin.routes.system import router as system_router

__all__ = [
    "auth_router",
    "config_router",
    "history_router",
    "logs_router",
    "runners_router",
    "system_router",
]
