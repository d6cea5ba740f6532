# services/identity/controllers/auth_service.py

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from shared.db import get_db
from shared.auth import verify_password, create_access_token, get_current_user, ACCESS_TOKEN_EXPIRE_MINUTES
from shared.exceptions import AuthenticationError
from shared.logging_config import get_logger
from shared.responses import success_response
from services.identity.models.users import User
from services.identity.schemas.users import LoginRequest, LoginResponse, UserOut

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = get_logger(__name__)


def _issue_session(user: User) -> LoginResponse:
    access_token = create_access_token({
        "sub": user.username,
        "user_id": user.id,
        "role": user.role.value
    })
    return LoginResponse(
        user=UserOut.model_validate(user),
        access_token=access_token,
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60
    )


# --- LOGIN ---
@router.post("/login")
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.username == payload.username))
    user = result.scalars().first()

    if not user or not verify_password(payload.password, user.hashed_password):
        logger.warning(f"Failed login attempt for username '{payload.username}'")
        raise AuthenticationError("Invalid username or password")

    logger.info(f"User '{user.username}' logged in")
    return success_response(_issue_session(user), message="Login successful")


# --- REFRESH (sliding inactivity window) ---
@router.post("/refresh")
async def refresh_session(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    user = await db.get(User, current_user["user_id"])
    return success_response(_issue_session(user), message="Session refreshed")


# --- CURRENT USER ---
@router.get("/me")
async def read_current_user(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    user = await db.get(User, current_user["user_id"])
    return success_response(UserOut.model_validate(user))
