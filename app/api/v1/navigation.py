from fastapi import APIRouter, Depends, Query
from typing import Optional

from ...api.deps import get_optional_auth
from ...core.security import AuthContext
from ...schemas.navigation import VisibleNav
from ...services.navigation import compute_visible_nav

router = APIRouter(prefix="/navigation", tags=["Navigation"])

@router.get("", response_model=VisibleNav)
async def get_navigation(
    pathname: str = Query("/", max_length=500),
    auth: Optional[AuthContext] = Depends(get_optional_auth)
):
    """Navigation items and chat affordance for the caller on ``pathname``."""
    return compute_visible_nav(auth, pathname)
