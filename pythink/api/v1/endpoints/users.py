# pythink/api/v1/endpoints/users.py
from fastapi import APIRouter, Depends

from pythink.schemas.user import UserPublic
from pythink.models.user import User
from pythink.core.security import get_current_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserPublic)
def read_me(
    current_user: User = Depends(get_current_user),
):
    return current_user
