"""
Admin API module.

Contains endpoints for team administration:
- Team management (list, create, update, delete)
- Team assignments (assign and remove users)
"""

from backend.src.api.admin.teams import router as teams_router
from backend.src.api.admin.team_assignments import router as team_assignments_router

__all__ = ["teams_router", "team_assignments_router"]
