from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from uuid import UUID
from typing import Annotated, List
from eventlane.services.user_crud import user_crud
from eventlane.schemas.user_schema import UserCreate, UserOut, UserUpdate, AdminUserUpdate, UserLogin, \
    LoginResponse, LogoutRequest, LogoutResponse, RefreshTokenRequest, RefreshTokenResponse
from eventlane.database import get_db
from eventlane.security.auth import oauth2_scheme, get_current_user, get_current_active_user, get_current_admin_user
from eventlane.utils.user_app_service import user_app_service
from eventlane.models.user_model import User
from eventlane.logger import get_logger


user_router = APIRouter()
logger = get_logger(__name__)


def _server_error(action: str, e: Exception):
    logger.error(f"Error {action}: {str(e)}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Error occurred while {action}"
    )


# AUTH ENDPOINTS

@user_router.post("/auth/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register_user(user: UserCreate, db: Session = Depends(get_db)):
    """Create an Eventlane account"""
    try:
        logger.info(f"Registering user: {user.email}")
        return UserOut.model_validate(user_crud.create_user(db, user))

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"registering {user.email}", e)


@user_router.post("/token", response_model=LoginResponse)
async def user_token(
        form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
        db: Session = Depends(get_db),
):
    """OAuth2 password flow; the username field carries the email"""
    logger.info(f"Token request for user: {form_data.username}")
    try:
        user_login = UserLogin(email=form_data.username, password=form_data.password)
        return user_app_service.login_user(db, user_login)
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("issuing token", e)


@user_router.post("/auth/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
def login_user(user_login: UserLogin, db: Session = Depends(get_db)):
    """Login and open the user's unread counter store"""
    try:
        logger.info(f"Login attempt for user: {user_login.email}")
        return user_app_service.login_user(db, user_login)
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"logging in {user_login.email}", e)


@user_router.post("/auth/logout", response_model=LogoutResponse, status_code=status.HTTP_200_OK)
def logout_user(
        logout_request: LogoutRequest,
        current_user: User = Depends(get_current_user),
        token: str = Depends(oauth2_scheme),
        db: Session = Depends(get_db)
):
    """Logout: revoke both tokens and close the unread counter store"""
    try:
        return user_app_service.logout_user(db, current_user, token, logout_request.refresh_token)
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"logging out {current_user.email}", e)


@user_router.post("/auth/refresh", response_model=RefreshTokenResponse, status_code=status.HTTP_200_OK)
def refresh_access_token(refresh_request: RefreshTokenRequest, db: Session = Depends(get_db)):
    try:
        logger.info("Refreshing access token")
        return user_app_service.refresh_access_token(db, refresh_request)
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("refreshing token", e)


# PROFILE

@user_router.get("/me", response_model=UserOut, status_code=status.HTTP_200_OK)
def get_current_user_profile(current_user: User = Depends(get_current_active_user)):
    return UserOut.model_validate(current_user)


@user_router.patch("/me", response_model=UserOut, status_code=status.HTTP_200_OK)
def update_current_user_profile(
        user_update: UserUpdate,
        current_user: User = Depends(get_current_active_user),
        db: Session = Depends(get_db)
):
    """Update name, email, phone, avatar or password"""
    try:
        logger.info(f"User updating profile: {current_user.email}")
        return UserOut.model_validate(user_crud.update_user(db, current_user.id, user_update))
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"updating profile of {current_user.email}", e)


# ADMIN ENDPOINTS

@user_router.get("/users", response_model=List[UserOut], status_code=status.HTTP_200_OK)
def get_all_users(
        skip: int = 0,
        limit: int = 100,
        current_user: User = Depends(get_current_admin_user),
        db: Session = Depends(get_db)
):
    try:
        logger.info(f"Admin {current_user.email} fetching users list")
        return [UserOut.model_validate(user) for user in user_crud.get_users(db, skip=skip, limit=limit)]
    except Exception as e:
        raise _server_error("fetching users", e)


@user_router.get("/users/{user_id}", response_model=UserOut, status_code=status.HTTP_200_OK)
def get_user_by_id(
        user_id: UUID,
        current_user: User = Depends(get_current_admin_user),
        db: Session = Depends(get_db)
):
    try:
        user = user_crud.get_user_by_id(db, user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return UserOut.model_validate(user)
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"fetching user {user_id}", e)


@user_router.patch("/users/{user_id}", response_model=UserOut, status_code=status.HTTP_200_OK)
def update_user_by_id(
        user_id: UUID,
        user_update: AdminUserUpdate,
        current_user: User = Depends(get_current_admin_user),
        db: Session = Depends(get_db)
):
    try:
        logger.info(f"Admin {current_user.email} updating user {user_id}")
        return UserOut.model_validate(user_crud.update_user(db, user_id, user_update))
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"updating user {user_id}", e)


@user_router.delete("/users/{user_id}", response_model=UserOut, status_code=status.HTTP_200_OK)
def delete_user_by_id(
        user_id: UUID,
        current_user: User = Depends(get_current_admin_user),
        db: Session = Depends(get_db)
):
    """Deactivate an account (admin only)"""
    try:
        logger.info(f"Admin {current_user.email} deactivating user {user_id}")
        return UserOut.model_validate(user_crud.delete_user(db, user_id))
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"deleting user {user_id}", e)
