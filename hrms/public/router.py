"""Unauthenticated health checks and a token check."""


from fastapi import APIRouter, Depends

from hrms.auth.dependencies import get_current_user
from hrms.auth.models import User
from hrms.config import settings

router = APIRouter(prefix="", tags=["public"])


@router.get("/health")
async def public_health():
    return {"status": "UP", "environment": settings.ENVIRONMENT}


@router.get("/auth-test")
async def auth_test(user: User = Depends(get_current_user)):
    return {
        "data": {"username": user.username, "roles": user.role_names},
        "message": "Authenticated",
    }
