from .config import router as config_router
from .notifications import router as notifications_router
from .scheduler import router as scheduler_router
from .tasks import router as tasks_router

__all__ = [
    "config_router",
    "notifications_router",
    "scheduler_router",
    "tasks_router",
]
