from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func, or_

from shared.config import settings
from shared.db import get_db
from shared.auth import get_current_user, get_current_admin_user, get_password_hash, verify_password, ADMIN_ROLE
from shared.exceptions import NotFoundError, ConflictError, ValidationError, AuthorizationError
from shared.logging_config import get_logger
from shared.responses import success_response, build_pagination
from services.identity.models.users import User, UserRole
from services.identity.schemas.users import UserCreate, UserUpdate, UserOut, PasswordChangeRequest
from services.issuance.models.issuances import Issuance

router = APIRouter(prefix="/users", tags=["Users"])
logger = get_logger(__name__)

# Fields a non-admin may change on their own account
SELF_EDITABLE_FIELDS = {"name"}


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalars().first()
    if not user:
        raise NotFoundError("User not found")
    return user


async def _username_taken(db: AsyncSession, username: str) -> bool:
    result = await db.execute(select(User.id).where(User.username == username))
    return result.first() is not None


# --- LIST USERS (admin) ---
@router.get("")
async def list_users(
    search: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_admin_user)
):
    conditions = []
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(User.username.ilike(pattern), User.name.ilike(pattern)))
    if role:
        conditions.append(User.role == role)

    total = (await db.execute(
        select(func.count()).select_from(User).where(*conditions)
    )).scalar_one()
    result = await db.execute(
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    users = [UserOut.model_validate(u) for u in result.scalars().all()]
    return success_response(users, pagination=build_pagination(page, limit, total))


# --- CREATE USER (admin) ---
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_admin_user)
):
    if await _username_taken(db, payload.username):
        raise ConflictError("Username already exists")

    new_user = User(
        username=payload.username,
        hashed_password=get_password_hash(payload.password),
        name=payload.name,
        role=payload.role
    )
    db.add(new_user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Username already exists")

    await db.refresh(new_user)
    logger.info(f"User '{new_user.username}' ({new_user.role.value}) created by {current_user['username']}")
    return success_response(UserOut.model_validate(new_user), message="User created successfully")


# --- GET USER (admin) ---
@router.get("/{user_id}")
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_admin_user)
):
    user = await _get_user_or_404(db, user_id)
    return success_response(UserOut.model_validate(user))


# --- UPDATE USER (admin, or own profile name) ---
@router.put("/{user_id}")
async def update_user(
    user_id: str,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    is_admin = current_user["role"] == ADMIN_ROLE
    if not is_admin and current_user["user_id"] != user_id:
        raise AuthorizationError("You can only update your own profile")

    update_data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not update_data:
        raise ValidationError("No update data provided")
    if not is_admin and set(update_data) - SELF_EDITABLE_FIELDS:
        raise AuthorizationError("Only administrators can change username, role or password")

    user = await _get_user_or_404(db, user_id)

    new_username = update_data.get("username")
    if new_username and new_username != user.username:
        if await _username_taken(db, new_username):
            raise ConflictError("Username already exists")
        user.username = new_username
    if "name" in update_data:
        user.name = update_data["name"]
    if "role" in update_data:
        user.role = update_data["role"]
    if "password" in update_data:
        user.hashed_password = get_password_hash(update_data["password"])

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Username already exists")

    user = await _get_user_or_404(db, user_id)
    logger.info(f"User {user_id} updated by {current_user['username']}")
    return success_response(UserOut.model_validate(user), message="User updated successfully")


# --- DELETE USER (admin, never an ADMIN account) ---
@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_admin_user)
):
    user = await _get_user_or_404(db, user_id)

    if user.role == UserRole.ADMIN:
        raise ConflictError("Cannot delete admin account")

    issuance_count = (await db.execute(
        select(func.count()).select_from(Issuance).where(Issuance.user_id == user_id)
    )).scalar_one()
    if issuance_count:
        raise ConflictError(f"Cannot delete user with {issuance_count} recorded issuance(s)")

    await db.delete(user)
    await db.commit()
    logger.info(f"User '{user.username}' deleted by {current_user['username']}")
    return success_response(message="User deleted successfully")


# --- CHANGE PASSWORD (self or admin) ---
@router.put("/{user_id}/password")
async def change_password(
    user_id: str,
    payload: PasswordChangeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    if current_user["user_id"] != user_id and current_user["role"] != ADMIN_ROLE:
        raise AuthorizationError("You can only change your own password")

    user = await _get_user_or_404(db, user_id)

    if not verify_password(payload.current_password, user.hashed_password):
        raise ValidationError("Current password is incorrect")

    user.hashed_password = get_password_hash(payload.new_password)
    await db.commit()
    logger.info(f"Password changed for user '{user.username}'")
    return success_response(message="Password changed successfully")
