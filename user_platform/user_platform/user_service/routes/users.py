"""
Users Router - administrator user management and profile photos.
"""
from fastapi import APIRouter, Depends, File, Response, UploadFile, status
from typing import List

from ..dependencies import AuthContext, authenticate, get_users_service, require_roles
from ..schemas import PhotoUrlResponse, UserCreate, UserResponse, UserUpdate
from ..users import UsersService

router = APIRouter(prefix="/users", tags=["users"])

admin_only = require_roles("admin")
UPLOAD_FILE_PARAM = File(...)


# ---------------- Profile photo (own account) ----------------

@router.post("/me/photo", response_model=UserResponse)
def upload_profile_photo(
    file: UploadFile = UPLOAD_FILE_PARAM,
    ctx: AuthContext = Depends(authenticate),
    users: UsersService = Depends(get_users_service),
):
    data = file.file.read()
    return users.update_profile_photo(ctx.user.id, file.content_type, file.filename, data)


@router.delete("/me/photo", status_code=status.HTTP_204_NO_CONTENT)
def delete_profile_photo(
    ctx: AuthContext = Depends(authenticate),
    users: UsersService = Depends(get_users_service),
):
    users.delete_profile_photo(ctx.user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me/photo", response_model=PhotoUrlResponse)
def get_profile_photo(
    ctx: AuthContext = Depends(authenticate),
    users: UsersService = Depends(get_users_service),
):
    return PhotoUrlResponse(url=users.profile_photo_url(ctx.user.id))


# ---------------- Admin ----------------

@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    _: AuthContext = Depends(admin_only),
    users: UsersService = Depends(get_users_service),
):
    return users.create_user(
        payload.email,
        payload.password,
        name=payload.name,
        last_name=payload.last_name,
        bio=payload.bio,
        role_names=payload.roles,
    )


@router.get("", response_model=List[UserResponse])
def list_users(
    query: str = "",
    limit: int = 10,
    ctx: AuthContext = Depends(admin_only),
    users: UsersService = Depends(get_users_service),
):
    return users.list_users(ctx.user.id, query, limit)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    _: AuthContext = Depends(admin_only),
    users: UsersService = Depends(get_users_service),
):
    return users.get_user(user_id)


@router.get("/{user_id}/photo", response_model=PhotoUrlResponse)
def get_user_photo(
    user_id: int,
    _: AuthContext = Depends(admin_only),
    users: UsersService = Depends(get_users_service),
):
    return PhotoUrlResponse(url=users.profile_photo_url(user_id))


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdate,
    _: AuthContext = Depends(admin_only),
    users: UsersService = Depends(get_users_service),
):
    users.get_user(user_id)
    return users.update_user(user_id, **payload.model_dump(exclude_unset=True, exclude_none=True))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    _: AuthContext = Depends(admin_only),
    users: UsersService = Depends(get_users_service),
):
    users.delete_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
