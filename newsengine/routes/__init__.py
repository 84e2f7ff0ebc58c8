"""
API route modules.
"""

from .feeds import router as feeds_router
from .jobs import router as jobs_router
from .maintenance import router as maintenance_router
from .misc import router as misc_router
from .users import router as users_router

__all__ = [
    "feeds_router",
    "jobs_router",
    "maintenance_router",
    "misc_router",
    "users_router",
]
