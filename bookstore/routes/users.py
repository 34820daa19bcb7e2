from fastapi import APIRouter, Depends, Path, Query

from .. import errors, schemas
from ..accounts import AccountService
from ..auth import Principal
from ..deps import get_account_service, get_principal, require_admin
from ..utils import page_count, page_offset

router = APIRouter(prefix="/users", tags=["users"])


# profile routes are declared first so "/profile" never matches "/{user_id}"

@router.get("/profile", response_model=schemas.Envelope[schemas.AuthData])
async def get_profile(principal: Principal = Depends(get_principal), accounts: AccountService = Depends(get_account_service)):
    return {"success": True, "data": {"user": accounts.get_user(principal.id)}}


@router.put("/profile", response_model=schemas.Envelope[schemas.AuthData])
async def update_profile(
    payload: schemas.ProfileUpdate,
    principal: Principal = Depends(get_principal),
    accounts: AccountService = Depends(get_account_service),
):
    user = accounts.update_profile(principal, payload)
    return {"success": True, "data": {"user": user}, "message": "Profile updated successfully"}


@router.put("/profile/password", response_model=schemas.Message)
async def change_password(
    payload: schemas.PasswordChange,
    principal: Principal = Depends(get_principal),
    accounts: AccountService = Depends(get_account_service),
):
    accounts.change_password(principal, payload)
    return {"success": True, "message": "Password changed successfully"}


@router.get("", response_model=schemas.Envelope[schemas.UserPage])
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: Principal = Depends(require_admin),
    accounts: AccountService = Depends(get_account_service),
):
    users, total = accounts.list_users(page_offset(page, limit), limit)
    total_pages = page_count(total, limit)
    pagination = schemas.UserPagination(
        current_page=page,
        total_pages=total_pages,
        total_users=total,
        limit=limit,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )
    return {"success": True, "data": {"users": users, "pagination": pagination}}


@router.get("/{user_id}", response_model=schemas.Envelope[schemas.UserRead])
async def get_user(
    user_id: int = Path(..., gt=0),
    admin: Principal = Depends(require_admin),
    accounts: AccountService = Depends(get_account_service),
):
    return {"success": True, "data": accounts.get_user(user_id)}


@router.patch("/{user_id}/role", response_model=schemas.Envelope[schemas.UserRead])
async def change_role(
    payload: schemas.RoleUpdate,
    user_id: int = Path(..., gt=0),
    admin: Principal = Depends(require_admin),
    accounts: AccountService = Depends(get_account_service),
):
    user = accounts.change_role(user_id, payload.role)
    return {"success": True, "data": user, "message": "User role updated successfully"}


@router.delete("/{user_id}", response_model=schemas.Message)
async def delete_user(
    user_id: int = Path(..., gt=0),
    admin: Principal = Depends(require_admin),
    accounts: AccountService = Depends(get_account_service),
):
    if user_id == admin.id:
        raise errors.Forbidden("You cannot delete your own account")
    if not accounts.delete_user(user_id):
        raise errors.UserNotFound(f"User with ID {user_id} not found")
    return {"success": True, "message": "User deleted successfully"}
