# intermeet/api/routes/profile.py

from fastapi import APIRouter, Depends

from intermeet.core import state
from intermeet.models.models import CurrentUser, UpdateProfileRequest
from intermeet.services.auth_service import get_current_user

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("")
async def get_profile(user: CurrentUser = Depends(get_current_user)):
    return {
        "id": user.id,
        "email": user.email,
        "full_name": state.profiles.display_name(user),
        "avatar_url": state.profiles.avatar_url(user),
    }


@router.patch("")
async def update_profile(request: UpdateProfileRequest, user: CurrentUser = Depends(get_current_user)):
    """Change display name and/or avatar reference. Used for later grants and chat."""
    profile = state.profiles.update(user.id, full_name=request.full_name, avatar_url=request.avatar_url)
    return profile.model_dump(mode="json")
